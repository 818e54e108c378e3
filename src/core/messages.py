"""
Inbound message models for the ledger processor.

Every message arrives wrapped in a ``MessageEnvelope``; the envelope payload is
validated against one of the four payload models before any ledger transaction
starts. Unknown payload fields are kept so downstream logging sees the full
event.
"""

from datetime import datetime
from typing import Any, Dict

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PositiveInt,
    StrictStr,
)


class _Payload(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class MessageEnvelope(BaseModel):
    """Broker message wrapper shared by all topics."""

    model_config = ConfigDict(populate_by_name=True)

    topic: StrictStr
    originator: StrictStr
    timestamp: datetime
    mime_type: StrictStr = Field(alias="mime-type")
    payload: Dict[str, Any]

    def to_bytes(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> "MessageEnvelope":
        return cls.model_validate_json(data)


class RegistrationData(_Payload):
    challenge_id: PositiveInt = Field(alias="challengeId")
    user_id: PositiveInt = Field(alias="userId")


class RegistrationPayload(_Payload):
    """Challenge notification announcing a member registration."""

    data: RegistrationData


class ReviewPayload(_Payload):
    """Single review of a submission."""

    submission_id: StrictStr = Field(alias="submissionId", min_length=1)
    type_id: StrictStr = Field(alias="typeId", min_length=1)
    score: float


class ReviewSummationPayload(_Payload):
    """Aggregate score computed over all reviews of a submission."""

    submission_id: StrictStr = Field(alias="submissionId", min_length=1)
    aggregate_score: float = Field(alias="aggregateScore")


class ReviewEndPayload(_Payload):
    """Autopilot phase notification."""

    project_id: PositiveInt = Field(alias="projectId")
    phase_type_name: StrictStr = Field(alias="phaseTypeName")
    state: StrictStr


class SubmissionDetails(_Payload):
    """Subset of the submission API resource the processor relies on."""

    id: str | None = None
    created: datetime | None = None
    challenge_id: int | None = Field(default=None, alias="challengeId")
    member_id: int | None = Field(default=None, alias="memberId")
    legacy_submission_id: int | None = Field(default=None, alias="legacySubmissionId")
