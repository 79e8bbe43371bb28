"""FastAPI application: REST endpoints for poker tables."""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from holdem import redis_client, table_manager
from holdem.errors import PokerError
from holdem.models import (
    ActionRequest,
    ActionResponse,
    BalanceResponse,
    ErrorResponse,
    JoinTableRequest,
    MembersResponse,
)
from holdem.timer import action_timer

logger = logging.getLogger(__name__)

# Body returned by the PokerError handler, documented on routes that can raise
_ERRORS = {code: {"model": ErrorResponse} for code in (400, 404, 409)}


@asynccontextmanager
async def lifespan(app: FastAPI):
    action_timer.start()
    yield
    action_timer.stop()
    await redis_client.close()


app = FastAPI(title="Hold'em Table API", lifespan=lifespan)

# ---------- Rate Limiting ----------

_rate_limit_enabled = os.getenv("RATE_LIMIT_ENABLED", "1") != "0"

limiter = Limiter(
    key_func=get_remote_address,
    enabled=_rate_limit_enabled,
)
app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def _rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=429,
        content={"detail": "Rate limit exceeded. Please slow down."},
    )


@app.exception_handler(PokerError)
async def _poker_error_handler(request: Request, exc: PokerError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc), "error": exc.kind},
    )


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # tighten in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------- Lobby ----------


@app.post("/api/tables/{table_id}/join", response_model=MembersResponse, responses=_ERRORS)
@limiter.limit("10/minute")
async def join_table(request: Request, table_id: str, req: JoinTableRequest):
    members = await table_manager.join_table(table_id, req.player_id)
    return MembersResponse(table_id=table_id, members=members)


@app.get("/api/tables/{table_id}/members", response_model=MembersResponse)
@limiter.limit("30/minute")
async def get_members(request: Request, table_id: str):
    return MembersResponse(table_id=table_id, members=table_manager.get_members(table_id))


@app.post("/api/tables/{table_id}/start", responses=_ERRORS)
@limiter.limit("5/minute")
async def start_table(request: Request, table_id: str):
    state = await table_manager.start_table(table_id)
    action_timer.arm(table_id, state)
    return state


@app.delete("/api/tables/{table_id}")
@limiter.limit("10/minute")
async def end_table(request: Request, table_id: str):
    await table_manager.end_table(table_id)
    action_timer.clear(table_id)
    return {"ok": True}


# ---------- Gameplay ----------


@app.get("/api/tables/{table_id}/state/{player_id}", responses=_ERRORS)
@limiter.limit("60/minute")
async def get_player_view(request: Request, table_id: str, player_id: str):
    """The table as one player sees it: their own cards and legal actions."""
    return await table_manager.get_player_view(table_id, player_id)


@app.post("/api/tables/{table_id}/action", response_model=ActionResponse, responses=_ERRORS)
@limiter.limit("60/minute")
async def table_action(request: Request, table_id: str, req: ActionRequest):
    """Process a player's action (fold, check, call, bet, raise)."""
    state = await table_manager.process_action(
        table_id, req.player_id, req.action, req.amount
    )
    action_timer.arm(table_id, state)
    return ActionResponse(hand_over=not state["hand_active"], state=state)


# ---------- Balances ----------


@app.get("/api/balances/{player_id}", response_model=BalanceResponse)
@limiter.limit("30/minute")
async def get_balance(request: Request, player_id: str):
    balance = await redis_client.get_balance(player_id)
    return BalanceResponse(player_id=player_id, balance=balance)
