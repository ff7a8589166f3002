"""
API Routes and Endpoints

This file only handles:
- HTTP routing
- Request validation
- Turning an orchestrated turn into a streamed response
"""

import asyncio
from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import StreamingResponse

from logpilot.config import ConfigurationError
from logpilot.orchestrator import new_turn_id
from logpilot.services.query_service import QueryFailure
from logpilot.stores.credentials import AwsCredentials, CredentialValidationError, validate_credentials
from logpilot.utils.event_emitter import EventStream
from logpilot.utils.logger import get_logger

from .models import (
    ChatRequest,
    CollectionsResponse,
    HealthResponse,
    ValidateCredentialsRequest,
    ValidateCredentialsResponse,
)

logger = get_logger(__name__)

router = APIRouter()

# Strong references so running turns are not garbage collected mid-flight
_running_turns: set[asyncio.Task] = set()


def _require_store_credentials(request: Request) -> None:
    config = request.app.state.config
    if config.log_store == "cloudwatch" and not config.is_aws_configured():
        raise HTTPException(
            status_code=503,
            detail="AWS credentials are not configured. Set AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY.",
        )


@router.get("/api/health", response_model=HealthResponse)
async def health_check(request: Request):
    config = request.app.state.config
    errors = config.validate()
    return HealthResponse(
        status="healthy" if not errors else "degraded",
        log_store=config.log_store,
        aws_configured=config.is_aws_configured(),
        llm_configured=config.is_llm_configured(),
        config_errors=errors,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@router.post("/api/chat")
async def chat(body: ChatRequest, request: Request):
    """Run one turn and stream its events as newline-delimited JSON."""
    message = body.message
    if not isinstance(message, str) or not message.strip():
        raise HTTPException(status_code=400, detail="Message is required")
    _require_store_credentials(request)

    orchestrator = request.app.state.orchestrator
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="ANTHROPIC_API_KEY is not configured")
    stream = EventStream(turn_id=new_turn_id())
    logger.info("Chat turn accepted", extra={"turn_id": stream.turn_id, "action": "chat_accepted"})

    task = asyncio.create_task(orchestrator.run_turn(message, stream))
    _running_turns.add(task)
    task.add_done_callback(_running_turns.discard)

    return StreamingResponse(
        stream,
        media_type="application/x-ndjson",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.get("/api/collections", response_model=CollectionsResponse)
async def list_collections(request: Request, pattern: str = ""):
    """List log groups, optionally narrowed by a case-insensitive substring."""
    _require_store_credentials(request)
    queries = request.app.state.query_service
    try:
        if pattern:
            groups = await queries.search_collections(pattern)
        else:
            groups = await queries.list_collections()
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except QueryFailure as e:
        raise HTTPException(status_code=502, detail=str(e))
    return CollectionsResponse(collections=groups, total=len(groups))


@router.post("/api/aws/validate", response_model=ValidateCredentialsResponse)
async def validate_aws_credentials(body: ValidateCredentialsRequest):
    """Check a credential set against STS before the user saves it."""
    try:
        info = await validate_credentials(AwsCredentials(
            access_key_id=body.access_key_id,
            secret_access_key=body.secret_access_key,
            session_token=body.session_token,
            region=body.region,
        ))
    except CredentialValidationError as e:
        raise HTTPException(status_code=401, detail=str(e))
    return ValidateCredentialsResponse(valid=True, accountId=info.account_id, arn=info.arn, userId=info.user_id)
