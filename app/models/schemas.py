from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class SignupRequest(BaseModel):
    # Fields are optional here so missing values reach the signup rules and become a 400.
    model_config = ConfigDict(populate_by_name=True)

    username: Optional[str] = None
    password: Optional[str] = None
    request_id: Optional[str] = Field(default=None, alias="requestId")


class SignupResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str = "success"
    message: str
    account_id: int = Field(serialization_alias="accountId")


class ErrorResponse(BaseModel):
    error: str
    details: Optional[Any] = None
