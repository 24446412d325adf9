from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Header, Query

from sessionbridge.api.schemas import (
    HelloResponse,
    IssueStatusOut,
    RefreshRequest,
    StateResponse,
    StatusRequest,
    StatusResponse,
    TokenPairResponse,
    UpdateStatusRequest,
    UpdateStatusResponse,
    VerifyResponse,
)
from sessionbridge.logging import get_logger
from sessionbridge.service.errors import BearerTokenRequired, MissingCode, MissingRefreshToken
from sessionbridge.service.runtime import get_runtime

logger = get_logger(__name__)

router = APIRouter(prefix="/api")

BEARER_PREFIX = "Bearer "


def _bearer_token(authorization: Optional[str]) -> str:
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        raise BearerTokenRequired("authorization header must be 'Bearer <token>'")
    token = authorization[len(BEARER_PREFIX):].strip()
    if not token:
        raise BearerTokenRequired("empty bearer token")
    return token


async def _upstream_credential(authorization: Optional[str]) -> str:
    runtime = get_runtime()
    return await runtime.sessions.verify_session(_bearer_token(authorization))


@router.get("/hello", response_model=HelloResponse, tags=["meta"])
async def hello():
    return HelloResponse(
        message="Hello from GitHub Project Status Viewer API",
        timestamp=datetime.now(timezone.utc),
    )


@router.post("/auth/state", response_model=StateResponse, tags=["auth"])
async def issue_state():
    """Issue a single-use OAuth ``state`` for the extension's authorize redirect."""
    runtime = get_runtime()
    state = await runtime.sessions.issue_oauth_state()
    return StateResponse(state=state, expires_in=runtime.settings.oauth_state_ttl_seconds)


@router.get("/callback", response_model=TokenPairResponse, tags=["auth"])
async def oauth_callback(
    code: Optional[str] = Query(None, max_length=512, description="Authorization code from GitHub"),
    state: Optional[str] = Query(None, max_length=128, description="State parameter for CSRF protection"),
):
    """Complete the GitHub OAuth flow and hand the extension its token pair.

    The GitHub access token never leaves the server; the extension gets a
    short-lived access token and a single-use refresh token instead.
    """
    runtime = get_runtime()
    if not code:
        raise MissingCode("authorization code is required")
    await runtime.sessions.consume_oauth_state(state)
    pair = await runtime.sessions.complete_oauth_callback(code)
    return TokenPairResponse.from_pair(pair)


@router.post("/verify", response_model=VerifyResponse, tags=["auth"])
async def verify(authorization: Optional[str] = Header(None)):
    credential = await _upstream_credential(authorization)
    return VerifyResponse(access_token=credential)


@router.post("/refresh", response_model=TokenPairResponse, tags=["auth"])
async def refresh(body: RefreshRequest):
    if not body.refresh_token:
        raise MissingRefreshToken("refresh_token is required")
    runtime = get_runtime()
    pair = await runtime.sessions.rotate_refresh_token(body.refresh_token)
    return TokenPairResponse.from_pair(pair)


@router.post("/issues/status", response_model=StatusResponse, tags=["issues"])
async def issue_status(body: StatusRequest, authorization: Optional[str] = Header(None)):
    credential = await _upstream_credential(authorization)
    client = get_runtime().projects_client(credential)
    statuses = await client.fetch_project_status(body.owner, body.repo, body.issue_numbers)
    return StatusResponse(statuses=[IssueStatusOut.from_status(s) for s in statuses])


@router.post("/issues/status/update", response_model=UpdateStatusResponse, tags=["issues"])
async def update_issue_status(
    body: UpdateStatusRequest, authorization: Optional[str] = Header(None)
):
    credential = await _upstream_credential(authorization)
    client = get_runtime().projects_client(credential)
    result = await client.update_project_status(
        body.project_id, body.item_id, body.field_id, body.option_id
    )
    logger.info("issue_status_updated", project_item=body.item_id, status=result.status)
    return UpdateStatusResponse.from_result(result)
