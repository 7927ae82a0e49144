"""JSON API endpoints consumed by the browser dashboard.

The page itself (cards, chart widget, table, refresh button, alert banner)
lives outside this package; these routes hand it plain data.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Literal

import structlog
from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from metaltracker.models import (
    AcquisitionResult,
    ChangeResult,
    FieldChange,
    HistoryEntry,
    InsufficientData,
    RateRecord,
)

log = structlog.get_logger(__name__)

router = APIRouter()

#: Days shown by the trend chart and the history table.
RECENT_DAYS = 7


def _record_to_dict(record: RateRecord) -> dict[str, Any]:
    return {
        "gold24k": record.gold_24k_per_gram,
        "gold22k": record.gold_22k_per_gram,
        "silver": record.silver_per_gram,
        "timestamp": record.timestamp_ms,
        "source": record.source,
    }


def _entry_to_row(entry: HistoryEntry) -> dict[str, Any]:
    return {
        "date": entry.date.isoformat(),
        "gold24k": entry.gold_24k_per_gram,
        "gold22k": entry.gold_22k_per_gram,
        "silver": entry.silver_per_gram,
    }


def _field_change_to_dict(change: FieldChange) -> dict[str, Any]:
    return {
        "absolute": change.absolute,
        "percent": str(change.percent) if isinstance(change.percent, Decimal) else None,
        "direction": change.direction.value,
    }


def _change_to_dict(change: ChangeResult | InsufficientData) -> dict[str, Any]:
    if isinstance(change, InsufficientData):
        return {"insufficient_data": True, "available": change.available}
    return {
        "insufficient_data": False,
        "gold24k": _field_change_to_dict(change.gold24k),
        "gold22k": _field_change_to_dict(change.gold22k),
        "silver": _field_change_to_dict(change.silver),
    }


def build_chart(entries: list[HistoryEntry], view: str = "both") -> dict[str, Any]:
    """Chart series for the last RECENT_DAYS entries, oldest first.

    view selects which dataset is visible: "gold", "silver" or "both".
    """
    recent = entries[-RECENT_DAYS:]
    return {
        "labels": [e.date.strftime("%b %d").replace(" 0", " ") for e in recent],
        "datasets": [
            {
                "label": "Gold 24K (₹/g)",
                "data": [e.gold_24k_per_gram for e in recent],
                "hidden": view == "silver",
            },
            {
                "label": "Silver (₹/g)",
                "data": [e.silver_per_gram for e in recent],
                "hidden": view == "gold",
            },
        ],
    }


def _refresh_response(result: AcquisitionResult, notice: str | None) -> dict[str, Any]:
    return {
        "record": _record_to_dict(result.record),
        "used_fallback": result.used_fallback,
        "notice": notice,
    }


@router.get("/rates")
async def get_rates(request: Request) -> JSONResponse:
    """Current rates with day-over-day change and the last update marker."""
    service = request.app.state.rate_service
    record = await service.current()
    change = await service.get_change()

    return JSONResponse(content={
        "rates": _record_to_dict(record) if record is not None else None,
        "change": _change_to_dict(change),
        "last_update": await service.last_update(),
        "notice": service.notice(),
    })


@router.post("/refresh")
async def refresh(request: Request) -> JSONResponse:
    """Manual refresh; joins a refresh already in progress."""
    service = request.app.state.rate_service
    result = await service.acquire_and_persist()
    log.info("manual_refresh", source=result.record.source)
    return JSONResponse(content=_refresh_response(result, service.notice()))


@router.get("/history")
async def get_history(
    request: Request,
    limit: int = Query(RECENT_DAYS, ge=1, le=365),
) -> JSONResponse:
    """History table rows, most recent first."""
    service = request.app.state.rate_service
    entries = await service.get_history()
    rows = [_entry_to_row(e) for e in reversed(entries[-limit:])]
    return JSONResponse(content=rows)


@router.get("/chart")
async def get_chart(
    request: Request,
    view: Literal["both", "gold", "silver"] = "both",
) -> JSONResponse:
    """Trend chart series for the last week."""
    service = request.app.state.rate_service
    entries = await service.get_history()
    return JSONResponse(content=build_chart(entries, view))


@router.get("/status")
async def get_status(request: Request) -> JSONResponse:
    """Refresh bookkeeping: marker, due time, in-flight flag."""
    service = request.app.state.rate_service
    scheduler = getattr(request.app.state, "scheduler", None)

    content: dict[str, Any] = {
        "last_update": await service.last_update(),
        "refresh_in_progress": service.refresh_in_progress,
        "scheduler_running": bool(scheduler and scheduler.running),
    }
    if scheduler is not None:
        content["next_due"] = await scheduler.next_due_ms()
        content["refresh_due"] = await scheduler.is_due()
    return JSONResponse(content=content)
