"""HTTP surface for the WingMatch engine.

Authentication happens upstream; the caller's id arrives in `X-User-Id`.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, List, Optional

import sentry_sdk
from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from wingmatch.config import settings
from wingmatch.models.card import DiscoverCard, PoolTab, WingCard
from wingmatch.models.contact import Contact, IncomingInvitation, Wingperson, WingingFor
from wingmatch.models.decision import Decision, DecisionOutcome, PendingSuggestions
from wingmatch.models.match import UserMatch, WingNote
from wingmatch.services import decision_service, match_service, pool_service, relationship_service
from wingmatch.utils.database import init_database
from wingmatch.utils.errors import ValidationError, WingMatchError
from wingmatch.utils.logging import configure_logging, get_logger

logger = get_logger(__name__)

if settings.SENTRY_DSN:
    logger.info("Initializing Sentry...")
    try:
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            environment=settings.ENVIRONMENT,
            traces_sample_rate=1.0 if settings.ENVIRONMENT == "development" else 0.1,
            integrations=[FastApiIntegration(transaction_style="url"), SqlalchemyIntegration()],
        )
        logger.info("Sentry initialized")
    except Exception as e:
        logger.error("Failed to initialize Sentry", error=str(e))


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage application lifespan."""
    configure_logging()
    logger.info("Starting API...")
    try:
        init_database()
    except Exception as e:
        logger.error("Failed to initialize database", error=str(e), details=getattr(e, "details", {}))
        raise
    yield
    logger.info("Shutting down API...")


app = FastAPI(
    title=settings.APP_NAME,
    description="Matching and wingperson suggestion engine",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(WingMatchError)
async def wingmatch_error_handler(request: Request, exc: WingMatchError) -> JSONResponse:
    """Render engine errors with their status code."""
    if exc.status_code >= 500:
        logger.error("Request failed", path=request.url.path, error=exc.message, details=exc.details)
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.__class__.__name__,
            "message": exc.message,
            "details": exc.details,
            "retryable": exc.retryable,
        },
    )


def caller_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """Resolve the authenticated caller."""
    if not x_user_id:
        raise ValidationError("X-User-Id header is required")
    return x_user_id


class DecisionRequest(BaseModel):
    recipient_id: str
    decision: DecisionOutcome


class SuggestionRequest(BaseModel):
    dater_id: str
    recipient_id: str
    note: Optional[str] = None


class WingDeclineRequest(BaseModel):
    dater_id: str
    recipient_id: str


class InviteRequest(BaseModel):
    phone_number: str


class ResolveResponse(BaseModel):
    updated: int


class MatchStatusResponse(BaseModel):
    matched: bool
    wing_note: Optional[WingNote] = None


class WeeklyCountResponse(BaseModel):
    count: int


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "ok", "app": settings.APP_NAME, "environment": settings.ENVIRONMENT})


# Pools


@app.get("/discover/pool", response_model=List[DiscoverCard])
async def get_discover_pool(
    user_id: str = Depends(caller_id),
    filter_winger_id: Optional[str] = Query(default=None),
    tab: PoolTab = Query(default=PoolTab.FOR_YOU),
    page_size: int = Query(default=settings.DISCOVER_PAGE_SIZE),
    page_offset: int = Query(default=0),
) -> List[DiscoverCard]:
    return await run_in_threadpool(
        pool_service.resolve_discover_pool, user_id, filter_winger_id, page_size, page_offset, tab
    )


@app.get("/wing/{dater_id}/pool", response_model=List[WingCard])
async def get_wing_pool(
    dater_id: str,
    user_id: str = Depends(caller_id),
    page_size: int = Query(default=settings.DISCOVER_PAGE_SIZE),
    page_offset: int = Query(default=0),
) -> List[WingCard]:
    return await run_in_threadpool(pool_service.resolve_wing_pool, user_id, dater_id, page_size, page_offset)


# Decisions


@app.post("/decisions", response_model=Decision, status_code=201)
async def post_decision(body: DecisionRequest, user_id: str = Depends(caller_id)) -> Decision:
    return await run_in_threadpool(decision_service.record_direct, user_id, body.recipient_id, body.decision)


@app.post("/decisions/resolve", response_model=ResolveResponse)
async def post_resolve(body: DecisionRequest, user_id: str = Depends(caller_id)) -> ResolveResponse:
    updated = await run_in_threadpool(decision_service.resolve_pending, user_id, body.recipient_id, body.decision)
    return ResolveResponse(updated=updated)


@app.post("/suggestions", response_model=Decision, status_code=201)
async def post_suggestion(body: SuggestionRequest, user_id: str = Depends(caller_id)) -> Decision:
    return await run_in_threadpool(decision_service.suggest, body.dater_id, body.recipient_id, user_id, body.note)


@app.post("/suggestions/decline", response_model=Decision, status_code=201)
async def post_wing_decline(body: WingDeclineRequest, user_id: str = Depends(caller_id)) -> Decision:
    return await run_in_threadpool(decision_service.suggest_decline, body.dater_id, body.recipient_id, user_id)


@app.get("/suggestions/pending", response_model=PendingSuggestions)
async def get_pending_suggestions(user_id: str = Depends(caller_id)) -> PendingSuggestions:
    return await run_in_threadpool(decision_service.pending_suggestions_for, user_id)


# Matches


@app.get("/matches", response_model=List[UserMatch])
async def get_matches(user_id: str = Depends(caller_id)) -> List[UserMatch]:
    return await run_in_threadpool(match_service.get_user_matches, user_id)


@app.get("/matches/{other_id}", response_model=MatchStatusResponse)
async def get_match_status(other_id: str, user_id: str = Depends(caller_id)) -> MatchStatusResponse:
    matched = await run_in_threadpool(match_service.exists, user_id, other_id)
    note = await run_in_threadpool(match_service.get_wing_note_for_match, user_id, other_id) if matched else None
    return MatchStatusResponse(matched=matched, wing_note=note)


# Contacts


@app.post("/contacts/invite", response_model=Contact, status_code=201)
async def post_invite(body: InviteRequest, user_id: str = Depends(caller_id)) -> Contact:
    return await run_in_threadpool(relationship_service.invite, user_id, body.phone_number)


@app.post("/contacts/{contact_id}/accept", response_model=Contact)
async def post_accept(contact_id: str, user_id: str = Depends(caller_id)) -> Contact:
    return await run_in_threadpool(relationship_service.accept, contact_id, user_id)


@app.post("/contacts/{contact_id}/decline", response_model=Contact)
async def post_decline(contact_id: str, user_id: str = Depends(caller_id)) -> Contact:
    return await run_in_threadpool(relationship_service.decline, contact_id, user_id)


@app.post("/contacts/{contact_id}/remove", response_model=Contact)
async def post_remove(contact_id: str, user_id: str = Depends(caller_id)) -> Contact:
    return await run_in_threadpool(relationship_service.remove, contact_id, user_id)


@app.get("/contacts/wingpeople", response_model=List[Wingperson])
async def get_wingpeople(user_id: str = Depends(caller_id)) -> List[Wingperson]:
    return await run_in_threadpool(relationship_service.get_wingpeople, user_id)


@app.get("/contacts/invitations", response_model=List[IncomingInvitation])
async def get_invitations(user_id: str = Depends(caller_id)) -> List[IncomingInvitation]:
    return await run_in_threadpool(relationship_service.get_incoming_invitations, user_id)


@app.get("/contacts/winging-for", response_model=List[WingingFor])
async def get_winging_for(user_id: str = Depends(caller_id)) -> List[WingingFor]:
    return await run_in_threadpool(relationship_service.get_winging_for, user_id)


@app.get("/contacts/weekly-count/{dater_id}", response_model=WeeklyCountResponse)
async def get_weekly_count(dater_id: str, user_id: str = Depends(caller_id)) -> WeeklyCountResponse:
    count = await run_in_threadpool(relationship_service.get_weekly_suggestion_count, user_id, dater_id)
    return WeeklyCountResponse(count=count)
