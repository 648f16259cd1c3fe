"""
Event Schemas

Raw activity records as delivered by the ingestion collaborator, and their
normalized form. Each known event kind has its own payload shape; the
payload is validated when a raw event is normalized.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import PayloadValidationError


class EventType(str, Enum):
    """Known raw event kinds, plus an explicit catch-all"""
    PULL_REQUEST = "pull_request"
    ISSUE = "issue"
    COMMIT = "commit"
    PR_COMMENT = "pr_comment"
    PR_REVIEW = "pr_review"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str) -> "EventType":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


# ============================================================================
# Payloads (one shape per event kind)
# ============================================================================

class _Payload(BaseModel):
    model_config = ConfigDict(extra="allow")


class PullRequestPayload(_Payload):
    number: int
    title: str = ""
    body: Optional[str] = None
    author: Optional[str] = None
    state: Optional[str] = None


class IssuePayload(_Payload):
    number: int
    title: str = ""
    body: Optional[str] = None
    author: Optional[str] = None
    state: Optional[str] = None


class CommitPayload(_Payload):
    sha: str
    message: str = ""
    author: Optional[str] = None
    author_email: Optional[str] = None


class PRCommentPayload(_Payload):
    pr_number: int
    body: Optional[str] = None
    author: Optional[str] = None


class PRReviewPayload(_Payload):
    pr_number: int
    body: Optional[str] = None
    author: Optional[str] = None
    state: Optional[str] = None


class UnknownPayload(_Payload):
    pass


EventPayload = Union[
    PullRequestPayload,
    IssuePayload,
    CommitPayload,
    PRCommentPayload,
    PRReviewPayload,
    UnknownPayload,
]

PAYLOAD_MODELS: Dict[EventType, Type[_Payload]] = {
    EventType.PULL_REQUEST: PullRequestPayload,
    EventType.ISSUE: IssuePayload,
    EventType.COMMIT: CommitPayload,
    EventType.PR_COMMENT: PRCommentPayload,
    EventType.PR_REVIEW: PRReviewPayload,
    EventType.UNKNOWN: UnknownPayload,
}


# ============================================================================
# Raw and normalized events
# ============================================================================

class RawEvent(BaseModel):
    """Unmodified activity record. Immutable and append-only."""
    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: datetime
    type: str
    action: str = ""
    source: str = "github"
    repository: str
    data: Dict[str, Any] = Field(default_factory=dict)

    @property
    def event_type(self) -> EventType:
        return EventType.parse(self.type)

    def payload(self) -> EventPayload:
        """Validate ``data`` against the payload shape of this event kind.

        Raises:
            PayloadValidationError: if required fields are missing or mistyped
        """
        model = PAYLOAD_MODELS[self.event_type]
        try:
            return model.model_validate(self.data)
        except ValidationError as e:
            raise PayloadValidationError(self.id, self.type, str(e)) from e


class DecisionIndicator(BaseModel):
    """A typed, weighted lexical signal found in event content"""
    type: str
    count: int
    weight: float
    examples: List[str] = Field(default_factory=list, max_length=3)


class NormalizedEvent(BaseModel):
    """A raw event in the uniform author/content/entity schema, plus its score"""
    id: str
    original_event_id: str
    timestamp: datetime
    event_type: EventType
    repository: str

    # Unified author
    author_login: Optional[str] = None
    author_name: Optional[str] = None
    author_email: Optional[str] = None

    # Standardized content
    title: Optional[str] = None
    content: Optional[str] = None
    content_type: str = "unknown"

    # Entity links
    pull_request_number: Optional[int] = None
    issue_number: Optional[int] = None
    commit_sha: Optional[str] = None

    # Decision signals
    decision_indicators: List[DecisionIndicator] = Field(default_factory=list)
    confidence_score: float = Field(ge=0.0, le=1.0, default=0.0)

    @property
    def indicator_types(self) -> List[str]:
        return [i.type for i in self.decision_indicators]


def normalized_event_id(raw_event_id: str) -> str:
    """Derive the normalized event id from its raw event id"""
    return f"norm_{raw_event_id}"
