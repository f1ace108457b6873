from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    JSON,
    ForeignKey,
    Text,
    Float,
)
from sqlalchemy.orm import relationship

from persona_engine.domain.repositories.profile_repository import JobStatus, ProcessingStatus
from persona_engine.infrastructure.persistence.database import Base, utc_now


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String, primary_key=True)
    user_id = Column(String, unique=True, nullable=False)
    full_name = Column(String, nullable=True)

    # Birth data used to compute the natal chart
    birth_date = Column(DateTime, nullable=True)
    birth_time = Column(String, nullable=True)
    birth_place = Column(String, nullable=True)
    birth_city = Column(String, nullable=True)
    birth_state = Column(String, nullable=True)
    birth_country = Column(String, nullable=True)
    birth_timezone = Column(String, nullable=True)
    birth_latitude = Column(Float, nullable=True)
    birth_longitude = Column(Float, nullable=True)

    # Pipeline inputs
    astro_map_raw = Column(JSON, nullable=True)
    psychometric_answers = Column(JSON, nullable=True)  # {"answers": [...], "bigFive": {...}}
    narrative_decisive_moment = Column(Text, nullable=True)
    narrative_frustration = Column(Text, nullable=True)
    narrative_dream = Column(Text, nullable=True)

    # Pipeline output
    higher_self_profile = Column(JSON, nullable=True)
    processing_status = Column(String, nullable=False, default=ProcessingStatus.PENDING.value)
    processing_job_id = Column(String, nullable=True)

    created_at = Column(DateTime, default=utc_now)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now)

    jobs = relationship("ProcessingJob", back_populates="profile", cascade="all, delete-orphan")


class ProcessingJob(Base):
    __tablename__ = "processing_jobs"

    id = Column(String, primary_key=True)
    profile_id = Column(String, ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False)
    status = Column(String, nullable=False, default=JobStatus.PENDING.value, index=True)
    current_node = Column(String, nullable=True)
    attempts = Column(Integer, nullable=False, default=0)
    error_log = Column(JSON, nullable=True)

    # Intermediate stage outputs kept for auditing
    miner_output = Column(JSON, nullable=True)
    judge_output = Column(JSON, nullable=True)
    psycho_output = Column(JSON, nullable=True)
    shadow_output = Column(JSON, nullable=True)
    synthesizer_output = Column(JSON, nullable=True)

    created_at = Column(DateTime, default=utc_now)
    started_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    profile = relationship("Profile", back_populates="jobs")
