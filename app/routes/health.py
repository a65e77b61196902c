# app/routes/health.py
"""
Health check endpoints with calendar transport monitoring.
"""

import time

from fastapi import APIRouter

from app.config import settings
from app.services.calendar.google_client import google_calendar_service

router = APIRouter()


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": "tracker-calendar-core"}


@router.get("/readyz")
async def readyz():
    """
    Readiness check including the calendar transport.
    """
    checks = {}

    t0 = time.time()
    try:
        calendar_health = await google_calendar_service.health_check()
        checks["google_calendar"] = {
            "ok": bool(calendar_health.get("healthy")),
            "latency_ms": round((time.time() - t0) * 1000, 1),
            "api_connectivity": calendar_health.get("api_connectivity"),
        }
    except Exception as e:
        checks["google_calendar"] = {"ok": False, "error": f"{type(e).__name__}: {e}"}

    checks["layout"] = {"ok": True, **settings.get_layout_config()}

    overall_ok = all(check["ok"] for check in checks.values())
    return {"overall_ok": overall_ok, "checks": checks}
