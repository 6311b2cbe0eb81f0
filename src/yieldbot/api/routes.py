"""JSON endpoints for querying strategies, triggering cycles, and allocating funds."""

from __future__ import annotations

import json

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator

from yieldbot.exceptions import (
    AllocationFailed,
    InsufficientHistory,
    InvalidAllocation,
    LedgerUnavailable,
    TransactionReverted,
    UnknownVenue,
    UpstreamUnavailable,
)
from yieldbot.models import RiskTier, StrategyDecision, TransactionReceipt

log = structlog.get_logger(__name__)

router = APIRouter()


class AllocateRequestBody(BaseModel):
    """Allocation request validated once at the boundary."""

    user_address: str = Field(min_length=1, description="Depositor address")
    amount: int = Field(gt=0, description="Amount in the token's smallest unit")
    target_venue: str = Field(min_length=1, description="Low or high risk venue address")

    @field_validator("user_address", "target_venue")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class AllocateLatestBody(BaseModel):
    """User whose deposit follows the latest decision for their chosen tier."""

    user_address: str = Field(min_length=1, description="Depositor address")

    @field_validator("user_address")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


def _receipt_content(receipt: TransactionReceipt) -> dict:
    return {
        "tx_hash": receipt.tx_hash,
        "block_number": receipt.block_number,
        "status": receipt.status,
        "gas_used": receipt.gas_used,
    }


def render_strategy_text(tier: RiskTier, decision: StrategyDecision | None) -> str:
    """Render a stored decision, or the no-decision message, as response text."""
    if decision is None:
        return (
            f"I could not find a {tier.value}-risk yield strategy at the moment. "
            "The data might not have been calculated yet. Please try again later."
        )
    body = json.dumps(decision.to_dict(), indent=2)
    return f"Here is the current {tier.value}-risk yield strategy:\n```json\n{body}\n```"


@router.get("/strategy/{risk}")
async def get_strategy(request: Request, risk: RiskTier) -> JSONResponse:
    """Return the latest persisted decision for a risk tier."""
    agent = request.app.state.agent
    try:
        decision = await agent.get_decision(risk)
    except Exception as e:
        log.error("strategy_query_failed", tier=risk.value, error=str(e), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "risk": risk.value,
                "available": False,
                "decision": None,
                "text": f"An error occurred while fetching the yield strategy: {e}",
            },
        )

    if decision is None:
        log.warning("strategy_not_found", tier=risk.value)
    return JSONResponse(
        content={
            "risk": risk.value,
            "available": decision is not None,
            "decision": decision.to_dict() if decision is not None else None,
            "text": render_strategy_text(risk, decision),
        }
    )


@router.post("/cycle/{risk}")
async def run_cycle(request: Request, risk: RiskTier) -> JSONResponse:
    """Run one decision cycle on demand."""
    agent = request.app.state.agent
    try:
        decision = await agent.run_cycle(risk)
    except (UpstreamUnavailable, InsufficientHistory) as e:
        return JSONResponse(
            status_code=503,
            content={"risk": risk.value, "outcome": "failed", "decision": None, "text": str(e)},
        )

    if decision is None:
        return JSONResponse(
            content={
                "risk": risk.value,
                "outcome": "no_eligible_pool",
                "decision": None,
                "text": f"No eligible {risk.value}-risk pool found; previous strategy kept.",
            }
        )
    return JSONResponse(
        content={
            "risk": risk.value,
            "outcome": "stored",
            "decision": decision.to_dict(),
            "text": render_strategy_text(risk, decision),
        }
    )


@router.post("/allocate")
async def allocate(request: Request, body: AllocateRequestBody) -> JSONResponse:
    """Submit one allocation transaction and wait for confirmation."""
    executor = request.app.state.agent.executor
    if executor is None:
        return JSONResponse(
            status_code=503,
            content={"ok": False, "text": "Allocation is unavailable: ledger is not configured"},
        )

    try:
        receipt = await executor.allocate(body.user_address, body.amount, body.target_venue)
    except (InvalidAllocation, UnknownVenue) as e:
        return JSONResponse(status_code=400, content={"ok": False, "text": str(e)})
    except (AllocationFailed, LedgerUnavailable) as e:
        return JSONResponse(status_code=502, content={"ok": False, "text": str(e)})

    return JSONResponse(content={"ok": True, **_receipt_content(receipt)})


@router.post("/allocate/latest")
async def allocate_latest(request: Request, body: AllocateLatestBody) -> JSONResponse:
    """Allocate the user's whole deposit to the venue of their chosen tier's latest decision."""
    agent = request.app.state.agent
    try:
        receipt = await agent.allocate_for_user(body.user_address)
    except RuntimeError as e:
        return JSONResponse(status_code=503, content={"ok": False, "text": str(e)})
    except UnknownVenue as e:
        return JSONResponse(status_code=400, content={"ok": False, "text": str(e)})
    except (AllocationFailed, LedgerUnavailable) as e:
        return JSONResponse(status_code=502, content={"ok": False, "text": str(e)})

    if receipt is None:
        return JSONResponse(
            content={
                "ok": True,
                "allocated": False,
                "text": "Nothing to allocate: no stored strategy or no deposit.",
            }
        )
    return JSONResponse(content={"ok": True, "allocated": True, **_receipt_content(receipt)})


@router.post("/preference/{risk}")
async def set_preference(request: Request, risk: RiskTier) -> JSONResponse:
    """Set the signing account's strategy-manager preference to the tier's venue."""
    agent = request.app.state.agent
    try:
        receipt = await agent.set_preference(risk)
    except RuntimeError as e:
        return JSONResponse(status_code=503, content={"ok": False, "text": str(e)})
    except UnknownVenue as e:
        return JSONResponse(status_code=400, content={"ok": False, "text": str(e)})
    except (LedgerUnavailable, TransactionReverted) as e:
        return JSONResponse(status_code=502, content={"ok": False, "text": str(e)})

    return JSONResponse(content={"ok": True, "risk": risk.value, **_receipt_content(receipt)})


@router.get("/status")
async def get_status(request: Request) -> JSONResponse:
    """Agent loop state and last outcome per tier."""
    return JSONResponse(content=request.app.state.agent.get_status())
