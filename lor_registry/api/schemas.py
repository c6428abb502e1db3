"""
Request and response models for the registry HTTP API.
"""

from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

# Empty-text checks belong to the workflow engine so every surface reports
# them as the same VALIDATION_ERROR; these models only bound sizes.
MAX_TEXT_LENGTH = 256


class StudentCreateRequest(BaseModel):
    name: str = Field(..., max_length=MAX_TEXT_LENGTH)
    email: str = Field(..., max_length=MAX_TEXT_LENGTH)
    course: str = Field(..., max_length=MAX_TEXT_LENGTH)


class StudentCreateResponse(BaseModel):
    id: int


class ApproverAuthorizeRequest(BaseModel):
    identity: str = Field(..., max_length=MAX_TEXT_LENGTH)


class StudentResponse(BaseModel):
    id: int
    name: str
    email: str
    course: str
    requested: bool
    approved: bool


class SuccessResponse(BaseModel):
    success: bool = True
    message: str


class CountResponse(BaseModel):
    count: int


class HealthResponse(BaseModel):
    status: str
    version: str
    db_health: bool
    student_count: int


class AuditEventResponse(BaseModel):
    id: int
    ts: datetime
    actor: str
    action: str
    outcome: str
    student_id: Optional[int] = None
    detail: str = ""


class EventListResponse(BaseModel):
    events: List[AuditEventResponse]


class ErrorResponse(BaseModel):
    error_type: str
    message: str
