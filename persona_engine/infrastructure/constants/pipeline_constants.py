"""
Constants for the profile synthesis pipeline.

Defaults for the quality gate, retry bound and timeouts. settings.py reads
the environment on top of these values.
"""

# Judge quality gate: minimum share of approved MIUs before a re-mine is requested
QUALITY_THRESHOLD = 0.7

# Extra Miner passes allowed after the first one (caps Miner invocations at 3)
MAX_QUALITY_RETRIES = 2

# Soft target passed to the Miner prompt, never enforced in code
MIN_MIU_TARGET = 15

# Maximum items kept for the Psychologist's motivation / fear lists
MAX_CORE_DRIVERS = 3

# Timeouts in seconds; each stage may block for tens of seconds on the gateway
STAGE_TIMEOUT_SECONDS = 180.0
RUN_TIMEOUT_SECONDS = 900.0

# Quality gate policies once the retry budget is exhausted
QUALITY_GATE_PROCEED = "proceed"
QUALITY_GATE_FLAG = "flag"
QUALITY_GATE_FAIL = "fail"
DEFAULT_QUALITY_GATE_POLICY = QUALITY_GATE_FLAG

# Environment variable names
ENV_MAX_QUALITY_RETRIES = "PIPELINE_MAX_QUALITY_RETRIES"
ENV_QUALITY_THRESHOLD = "PIPELINE_QUALITY_THRESHOLD"
ENV_QUALITY_GATE_POLICY = "PIPELINE_QUALITY_GATE_POLICY"
ENV_MINER_FEEDBACK = "PIPELINE_MINER_FEEDBACK"
ENV_STAGE_TIMEOUT = "PIPELINE_STAGE_TIMEOUT"
ENV_RUN_TIMEOUT = "PIPELINE_RUN_TIMEOUT"
