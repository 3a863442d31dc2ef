from fastapi import FastAPI, Depends, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from datetime import datetime
from typing import Optional
import logging

from .channel import (
    ChannelMembershipChecker,
    HttpChannelChecker,
    StaticChannelChecker,
    refresh_membership,
)
from .config import get_settings
from .database import Base, engine, get_db
from .draw import DrawEngine
from .exceptions import (
    ChannelCheckError,
    GatewayError,
    NoEligibleParticipantsError,
    PartialDrawFailureError,
    StoreFailureError,
)
from .gateway import SmsGatewayClient, sync_from_gateway
from .ingestion import IngestionGate, TimeWindow
from .logger import setup_logger
from .schemas import (
    ChannelStatusOut,
    DrawIn,
    DrawOut,
    IngestOut,
    ParticipantOut,
    SmsEvent,
    SyncOut,
    WinnerPublicOut,
)
from .store import ParticipantStore
from .timeutil import zone

settings = get_settings()
setup_logger(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="SMS Raffle Backend")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


@app.on_event("startup")
def startup_event():
    Base.metadata.create_all(bind=engine)
    logger.info("Participants table ready (%s)", engine.url.get_backend_name())


@app.exception_handler(StoreFailureError)
def store_failure_handler(request: Request, exc: StoreFailureError):
    return JSONResponse(status_code=500, content={"detail": "Database error"})


# --- Dependencies ---

_checker: Optional[ChannelMembershipChecker] = None


def get_channel_checker() -> ChannelMembershipChecker:
    global _checker
    if _checker is None:
        s = get_settings()
        if s.channel_check_url:
            _checker = HttpChannelChecker(s.channel_check_url, s.channel_id, token=s.channel_check_token)
        else:
            _checker = StaticChannelChecker(s.channel_id)
    return _checker


def get_store(db: Session = Depends(get_db)) -> ParticipantStore:
    return ParticipantStore(db)


def get_gate(
    store: ParticipantStore = Depends(get_store),
    checker: ChannelMembershipChecker = Depends(get_channel_checker),
) -> IngestionGate:
    s = get_settings()
    return IngestionGate(
        store,
        accepted_code=s.accepted_code,
        window=TimeWindow(s.window_start_hour, s.window_end_hour, tz=zone(s.window_timezone)),
        enforce_window=s.enforce_window,
        checker=checker,
    )


def get_draw_engine(store: ParticipantStore = Depends(get_store)) -> DrawEngine:
    return DrawEngine(store)


def get_gateway_client() -> SmsGatewayClient:
    s = get_settings()
    if not s.sms_gateway_url:
        raise HTTPException(status_code=500, detail="SMS gateway not configured")
    return SmsGatewayClient(s.sms_gateway_url, token=s.sms_gateway_token)


def require_admin(x_admin_secret: str = Header(None)):
    expected = get_settings().admin_secret
    if expected is None:
        raise HTTPException(status_code=500, detail="Admin secret not configured")
    if x_admin_secret != expected:
        raise HTTPException(status_code=403, detail="Forbidden")


# --- Routes ---

@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/api/sms-webhook", response_model=IngestOut)
def sms_webhook(event: SmsEvent, gate: IngestionGate = Depends(get_gate)):
    result = gate.submit(event.origin, event.payload, event.arrival_time)
    out = IngestOut(accepted=result.accepted, noop=result.noop, reason=result.reason, in_window=result.in_window)
    if not result.accepted:
        return JSONResponse(status_code=400, content=out.model_dump())
    return out


@app.post("/api/sms/sync", response_model=SyncOut)
def sms_sync(
    _: None = Depends(require_admin),
    gate: IngestionGate = Depends(get_gate),
    client: SmsGatewayClient = Depends(get_gateway_client),
):
    try:
        summary = sync_from_gateway(client, gate)
    except GatewayError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return SyncOut(added=summary.added, duplicates=summary.duplicates, rejected=summary.rejected)


@app.get("/api/participants", response_model=list[ParticipantOut])
def list_participants(
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    store: ParticipantStore = Depends(get_store),
    _: None = Depends(require_admin),
):
    return store.list_participants(start=start, end=end)


@app.get("/api/winners", response_model=list[WinnerPublicOut])
def list_winners(store: ParticipantStore = Depends(get_store)):
    return [WinnerPublicOut.from_participant(p) for p in store.list_winners()]


@app.post("/api/raffle/draw", response_model=DrawOut)
def draw_winners(
    payload: Optional[DrawIn] = None,
    draw_engine: DrawEngine = Depends(get_draw_engine),
    _: None = Depends(require_admin),
):
    count = payload.count if payload and payload.count else get_settings().default_winners

    try:
        result = draw_engine.draw(count)
    except NoEligibleParticipantsError:
        raise HTTPException(status_code=400, detail="No eligible participants")
    except PartialDrawFailureError as e:
        raise HTTPException(status_code=409, detail=f"Draw aborted: {str(e)}")

    return DrawOut(
        winners=[ParticipantOut.model_validate(w) for w in result.winners],
        used_fallback=result.used_fallback,
        pool_size=result.pool_size,
    )


@app.post("/api/raffle/reset")
def reset_raffle(draw_engine: DrawEngine = Depends(get_draw_engine), _: None = Depends(require_admin)):
    cleared = draw_engine.reset()
    return {"status": "success", "cleared": cleared}


@app.get("/api/channel/status", response_model=ChannelStatusOut)
def channel_status(checker: ChannelMembershipChecker = Depends(get_channel_checker)):
    status = checker.status()
    return ChannelStatusOut(
        connected=status.connected,
        channel_id=status.channel_id,
        last_checked_at=status.last_checked_at,
    )


@app.post("/api/channel/refresh")
def refresh_channel_membership(
    store: ParticipantStore = Depends(get_store),
    checker: ChannelMembershipChecker = Depends(get_channel_checker),
    _: None = Depends(require_admin),
):
    try:
        updated = refresh_membership(store, checker)
    except ChannelCheckError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"status": "success", "joined": updated}
