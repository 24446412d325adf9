from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sessionbridge.service.github import MAX_ISSUE_NUMBERS, IssueStatus, UpdateStatusResult
from sessionbridge.service.sessions import TokenPair

MAX_NAME_LENGTH = 100
MAX_ID_LENGTH = 256


class ErrorBody(BaseModel):
    """Wire shape of every error response."""

    error: str
    error_description: str


class HelloResponse(BaseModel):
    message: str
    timestamp: datetime


class StateResponse(BaseModel):
    state: str
    expires_in: int


class TokenPairResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int

    @classmethod
    def from_pair(cls, pair: TokenPair) -> "TokenPairResponse":
        return cls(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            token_type=pair.token_type,
            expires_in=pair.expires_in,
        )


class VerifyResponse(BaseModel):
    access_token: str


class RefreshRequest(BaseModel):
    # Optional so an empty body reports missing_refresh_token rather than a shape error
    refresh_token: Optional[str] = Field(default=None, max_length=4096)


class StatusRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    owner: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH)
    repo: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH)
    issue_numbers: List[int] = Field(
        ..., alias="issueNumbers", min_length=1, max_length=MAX_ISSUE_NUMBERS
    )

    @field_validator("issue_numbers")
    @classmethod
    def _positive_numbers(cls, value: List[int]) -> List[int]:
        if any(n <= 0 for n in value):
            raise ValueError("issue numbers must be positive")
        return value


class StatusOptionOut(BaseModel):
    id: str
    name: str
    color: str


class IssueStatusOut(BaseModel):
    model_config = ConfigDict(populate_by_name=True, serialize_by_alias=True)

    number: int
    status: Optional[str] = None
    color: Optional[str] = None
    project_id: Optional[str] = Field(default=None, alias="projectId")
    project_item_id: Optional[str] = Field(default=None, alias="projectItemId")
    status_field_id: Optional[str] = Field(default=None, alias="statusFieldId")
    status_options: List[StatusOptionOut] = Field(default_factory=list, alias="statusOptions")

    @classmethod
    def from_status(cls, status: IssueStatus) -> "IssueStatusOut":
        return cls(
            number=status.number,
            status=status.status,
            color=status.color,
            project_id=status.project_id,
            project_item_id=status.project_item_id,
            status_field_id=status.status_field_id,
            status_options=[
                StatusOptionOut(id=o.id, name=o.name, color=o.color)
                for o in status.status_options
            ],
        )


class StatusResponse(BaseModel):
    statuses: List[IssueStatusOut]


class UpdateStatusRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    project_id: str = Field(..., alias="projectId", min_length=1, max_length=MAX_ID_LENGTH)
    item_id: str = Field(..., alias="itemId", min_length=1, max_length=MAX_ID_LENGTH)
    field_id: str = Field(..., alias="fieldId", min_length=1, max_length=MAX_ID_LENGTH)
    option_id: str = Field(..., alias="optionId", min_length=1, max_length=MAX_ID_LENGTH)


class UpdateStatusResponse(BaseModel):
    status: str
    color: str

    @classmethod
    def from_result(cls, result: UpdateStatusResult) -> "UpdateStatusResponse":
        return cls(status=result.status, color=result.color)
