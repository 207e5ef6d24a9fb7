# Enumerations and pydantic models for grievance records and the HTTP surface

import base64
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

MAX_ATTACHMENTS = 5
MAX_ATTACHMENT_BYTES = 200 * 1024
ALLOWED_ATTACHMENT_TYPES = ("image/jpeg", "image/png", "image/gif")
# base64 expands 3 bytes to 4 chars; leave room for a "data:image/png;base64," header
_MAX_CONTENT_CHARS = (MAX_ATTACHMENT_BYTES + 2) // 3 * 4 + 64


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class Category(str, Enum):
    HOSTEL = "Hostel"
    ACADEMICS = "Academics"
    MESS = "Mess"
    INFRASTRUCTURE = "Infrastructure"
    SAFETY = "Safety"
    HEALTH = "Health"
    OTHER = "Other"

class Urgency(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"

class Sentiment(str, Enum):
    NEUTRAL = "Neutral"
    ANGRY = "Angry"
    DISTRESSED = "Distressed"

class GrievanceStatus(str, Enum):
    SUBMITTED = "submitted"
    VIEWED = "viewed"
    CLEARED = "cleared"


# ---------------------------------------------------------------------------
# Pydantic Models
# ---------------------------------------------------------------------------
class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

class Analysis(BaseModel):
    category: Category
    urgency: Urgency
    sentiment: Sentiment
    summary: str

def decode_content(content: str) -> bytes:
    """Decode base64 text or a ``data:<mime>;base64,<payload>`` URL; ValueError if malformed."""
    payload = content
    if content.startswith("data:"):
        _, sep, payload = content.partition(",")
        if not sep:
            raise ValueError("data URL has no payload")
    return base64.b64decode(payload, validate=True)

class Attachment(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    mime_type: str
    size_bytes: int = Field(..., ge=0, le=MAX_ATTACHMENT_BYTES)
    content: str = Field(..., max_length=_MAX_CONTENT_CHARS)

    @field_validator("mime_type")
    @classmethod
    def validate_mime_type(cls, v):
        if v not in ALLOWED_ATTACHMENT_TYPES:
            raise ValueError(f"Only {', '.join(ALLOWED_ATTACHMENT_TYPES)} attachments are supported")
        return v

    @field_validator("content")
    @classmethod
    def validate_content(cls, v):
        try:
            decode_content(v)
        except ValueError:
            raise ValueError("Attachment content must be base64 encoded")
        return v

    @model_validator(mode="after")
    def check_size_matches_content(self):
        actual = len(decode_content(self.content))
        if actual != self.size_bytes:
            raise ValueError(f"sizeBytes is {self.size_bytes} but the content holds {actual} bytes")
        return self

class GrievanceCreate(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True,
                              str_strip_whitespace=True)

    student_name: str = Field(..., min_length=1, max_length=200)
    student_email: str = Field(..., min_length=3, max_length=320)
    complaint: str = Field(..., min_length=1, max_length=5000)
    attachments: List[Attachment] = Field(default_factory=list, max_length=MAX_ATTACHMENTS)

    @field_validator("student_email")
    @classmethod
    def validate_email(cls, v):
        local, sep, domain = v.partition("@")
        if not sep or not local or "." not in domain:
            raise ValueError("Not a valid email address")
        return v

class Grievance(CamelModel):
    id: str
    student_name: str
    student_email: str
    complaint: str
    category: Category
    urgency: Urgency
    sentiment: Sentiment
    summary: str
    status: GrievanceStatus = GrievanceStatus.SUBMITTED
    attachments: List[Attachment] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime

class SubmitResponse(CamelModel):
    success: bool = True
    grievance_id: str
    analysis: Analysis

class GrievanceListResponse(CamelModel):
    count: int
    grievances: List[Grievance]

class GrievanceDetailResponse(CamelModel):
    grievance: Grievance

class StatusUpdateRequest(CamelModel):
    status: str
    message: Optional[str] = Field(None, max_length=2000)

class StatusUpdateResponse(CamelModel):
    success: bool = True
    grievance: Grievance
    email_notification_sent: bool
    message: str

class DeleteResponse(CamelModel):
    success: bool = True
    message: str
    deleted_grievance_id: str

class StatsResponse(CamelModel):
    total: int
    by_category: Dict[str, int] = Field(default_factory=dict)
    by_urgency: Dict[str, int] = Field(default_factory=dict)
    by_sentiment: Dict[str, int] = Field(default_factory=dict)
    by_status: Dict[str, int] = Field(default_factory=dict)

class AdminLogin(BaseModel):
    email: str
    password: str

class TokenResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
    email: str

class AdminResponse(BaseModel):
    email: str
