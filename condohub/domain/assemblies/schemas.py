"""Assembly domain schemas - Pydantic models for validation"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, field_validator

DEFAULT_TOPIC_OPTIONS = ["In favour", "Against", "Abstention"]


class AssemblyCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    type: str = "ordinary"
    scheduled_date: datetime
    location: Optional[str] = None
    quorum_percentage: Decimal = Field(Decimal("50"), ge=0, le=100)

    @field_validator("type")
    @classmethod
    def validate_type(cls, v):
        if v not in {"ordinary", "extraordinary"}:
            raise ValueError("type must be ordinary or extraordinary")
        return v


class AssemblyUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    scheduled_date: Optional[datetime] = None
    location: Optional[str] = None
    quorum_percentage: Optional[Decimal] = Field(None, ge=0, le=100)


class AssemblyResponse(BaseModel):
    id: int
    condominium_id: int
    title: str
    description: Optional[str] = None
    type: str
    status: str
    scheduled_date: datetime
    location: Optional[str] = None
    quorum_percentage: Decimal
    convocation_sent_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class AttendeeCreate(BaseModel):
    fraction_id: int
    user_id: Optional[int] = None
    attendance_type: str = "present"
    representative_name: Optional[str] = None
    notes: Optional[str] = None

    @field_validator("attendance_type")
    @classmethod
    def validate_attendance(cls, v):
        if v not in {"present", "represented"}:
            raise ValueError("attendance_type must be present or represented")
        return v


class AttendeeResponse(AttendeeCreate):
    id: int
    assembly_id: int

    class Config:
        from_attributes = True


class QuorumResponse(BaseModel):
    total_permillage: Decimal
    attended_permillage: Decimal
    percentage: Decimal
    required_percentage: Decimal
    reached: bool


class TopicCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    options: list[str] = Field(default_factory=lambda: list(DEFAULT_TOPIC_OPTIONS))
    order_index: int = 0

    @field_validator("options")
    @classmethod
    def validate_options(cls, v):
        cleaned = [option.strip() for option in v if option and option.strip()]
        if len(cleaned) < 2:
            raise ValueError("A topic needs at least two options")
        if len(set(cleaned)) != len(cleaned):
            raise ValueError("Options must be unique")
        return cleaned


class TopicResponse(BaseModel):
    id: int
    assembly_id: int
    title: str
    description: Optional[str] = None
    options: list[str]
    order_index: int
    is_active: bool

    class Config:
        from_attributes = True


class AgendaPointCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    body: Optional[str] = None
    order_index: int = 0
    vote_topic_ids: list[int] = []


class AgendaPointResponse(BaseModel):
    id: int
    assembly_id: int
    title: str
    body: Optional[str] = None
    order_index: int
    vote_topic_ids: list[int] = []


class VoteCreate(BaseModel):
    fraction_id: int
    vote_option: str = Field(..., min_length=1, max_length=100)
    notes: Optional[str] = None


class VoteResponse(BaseModel):
    id: int
    topic_id: int
    fraction_id: int
    user_id: Optional[int] = None
    vote_option: str
    weighted_value: Decimal

    class Config:
        from_attributes = True


class OptionResult(BaseModel):
    permillage: Decimal
    count: int
    percentage: Decimal


class TopicResultsResponse(BaseModel):
    topic_id: int
    title: str
    options: dict[str, OptionResult]
    total_permillage: Decimal
    total_votes: int


# ============================================================================
# STANDALONE VOTES
# ============================================================================


class VoteOptionCreate(BaseModel):
    option_label: str = Field(..., min_length=1, max_length=100)
    order_index: int = 0


class VoteOptionResponse(BaseModel):
    id: int
    option_label: str
    order_index: int
    is_default: bool
    is_active: bool

    class Config:
        from_attributes = True


class StandaloneVoteCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    allowed_options: Optional[list[int]] = None


class StandaloneVoteResponseModel(BaseModel):
    id: int
    condominium_id: int
    title: str
    description: Optional[str] = None
    allowed_options: Optional[list[int]] = None
    status: str
    voting_started_at: Optional[datetime] = None
    voting_ended_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class StandaloneAnswerCreate(BaseModel):
    fraction_id: int
    vote_option_id: int
    notes: Optional[str] = None


class StandaloneAnswerResponse(BaseModel):
    id: int
    standalone_vote_id: int
    fraction_id: int
    vote_option_id: int
    weighted_value: Decimal

    class Config:
        from_attributes = True


class StandaloneOptionResult(BaseModel):
    option_id: int
    option_label: str
    vote_count: int
    weighted_total: Decimal
    fractions_voted: list[str] = []
