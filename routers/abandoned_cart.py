"""
Abandoned Cart Nurture Router
Manual cycle trigger (for external cron) and scheduler status
"""
import hmac

from fastapi import APIRouter, Request, Query, Body
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from core.config import CRON_API_KEY

router = APIRouter(prefix="/api/cart-nurture", tags=["abandoned-cart"])


def _authorized(api_key: str) -> bool:
    return bool(CRON_API_KEY) and hmac.compare_digest(api_key or "", CRON_API_KEY)


@router.post("/run")
async def run_cycle(request: Request, api_key: str = Body(..., embed=True)):
    """
    Run one nurture cycle now.
    Called by external cron job with API key for authentication.
    """
    if not _authorized(api_key):
        return JSONResponse({"error": "Unauthorized"}, status_code=401)

    scheduler = request.app.state.cart_scheduler
    report = await run_in_threadpool(scheduler.run_cycle)
    return {
        "ok": True,
        "processed": report.processed,
        "sent": report.sent,
        "failed": report.failed,
        "skipped": report.skipped,
        "reason": report.reason,
    }


@router.get("/status")
async def status(request: Request, api_key: str = Query(...)):
    if not _authorized(api_key):
        return JSONResponse({"error": "Unauthorized"}, status_code=401)

    scheduler = request.app.state.cart_scheduler
    return {
        "running": scheduler.running,
        "interval_seconds": scheduler.interval_seconds,
        "thresholds": scheduler.thresholds.as_dict(),
        "last_cycle": scheduler.last_report.to_dict() if scheduler.last_report else None,
    }
