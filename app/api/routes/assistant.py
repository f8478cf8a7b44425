from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, Field

from app.db.session import SessionLocal
from app.entitlements.assistant import AnalysisFlow, AnalysisInput, AssistantService
from app.entitlements.errors import EntitlementError
from app.services.analysis_client import AnalysisUnavailableError

from .session_helpers import analysis_unavailable, as_http_exception, require_actor

router = APIRouter(prefix="/api/assistant", tags=["assistant"])


class AnalyzeRequest(BaseModel):
    language: str = Field(default="en", min_length=2, max_length=8)
    timeframe: str | None = Field(default=None, max_length=16)
    image_url: str | None = Field(default=None, max_length=2048)
    user_analysis: str | None = Field(default=None, max_length=8000)


class AnalyzeResponse(BaseModel):
    flow: str
    text: str
    subscription_id: int
    user_message_id: int
    assistant_message_id: int


class AnalysisMessageResponse(BaseModel):
    id: int
    role: str
    content: str
    image_url: str | None = None
    analysis_type: str
    created_at: datetime


class AnalysisHistoryResponse(BaseModel):
    messages: list[AnalysisMessageResponse]


def _parse_flow(raw_flow: str) -> AnalysisFlow:
    try:
        return AnalysisFlow(raw_flow.strip().lower())
    except ValueError as exc:
        raise HTTPException(
            status_code=404,
            detail={"code": "E_NOT_FOUND", "message": f"unknown analysis flow: {raw_flow}"},
        ) from exc


@router.post("/analyze/{flow}", response_model=AnalyzeResponse)
async def analyze(flow: str, payload: AnalyzeRequest, request: Request) -> AnalyzeResponse:
    analysis_flow = _parse_flow(flow)
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            actor = await require_actor(session, request=request, now_utc=now_utc)
            outcome = await AssistantService.analyze(
                session,
                actor=actor,
                flow=analysis_flow,
                payload=AnalysisInput(
                    language=payload.language,
                    timeframe=payload.timeframe,
                    image_url=payload.image_url,
                    user_analysis=payload.user_analysis,
                ),
                now_utc=now_utc,
            )
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    except AnalysisUnavailableError as exc:
        raise analysis_unavailable(exc) from exc

    return AnalyzeResponse(
        flow=outcome.flow.value,
        text=outcome.text,
        subscription_id=outcome.subscription_id,
        user_message_id=outcome.user_message_id,
        assistant_message_id=outcome.assistant_message_id,
    )


@router.get("/messages", response_model=AnalysisHistoryResponse)
async def messages(
    request: Request,
    limit: int = Query(default=50, ge=1, le=200),
) -> AnalysisHistoryResponse:
    now_utc = datetime.now(timezone.utc)
    try:
        async with SessionLocal.begin() as session:
            actor = await require_actor(session, request=request, now_utc=now_utc)
            rows = await AssistantService.messages(session, actor=actor, limit=limit)
    except EntitlementError as exc:
        raise as_http_exception(exc) from exc
    return AnalysisHistoryResponse(
        messages=[
            AnalysisMessageResponse(
                id=row.id,
                role=row.role,
                content=row.content,
                image_url=row.image_url,
                analysis_type=row.analysis_type,
                created_at=row.created_at,
            )
            for row in rows
        ]
    )
