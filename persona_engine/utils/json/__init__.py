"""JSON utilities package"""

from .json_parser import parse_llm_json_response

__all__ = ["parse_llm_json_response"]
