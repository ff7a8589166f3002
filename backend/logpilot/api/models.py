"""
API Request/Response Models
"""

from pydantic import BaseModel, Field
from typing import Any, Optional


class ChatRequest(BaseModel):
    # Validated by the route so every bad shape gets the same 400
    message: Any = Field(default=None, description="User's natural-language question")


class CollectionsResponse(BaseModel):
    collections: list[str]
    total: int


class HealthResponse(BaseModel):
    status: str
    log_store: str
    aws_configured: bool
    llm_configured: bool
    config_errors: list[str] = []
    timestamp: str


class ValidateCredentialsRequest(BaseModel):
    model_config = {"populate_by_name": True}

    access_key_id: str = Field(..., min_length=1, alias="accessKeyId")
    secret_access_key: str = Field(..., min_length=1, alias="secretAccessKey")
    session_token: Optional[str] = Field(default=None, alias="sessionToken")
    region: str = "us-east-1"


class ValidateCredentialsResponse(BaseModel):
    valid: bool
    accountId: str
    arn: str
    userId: str
