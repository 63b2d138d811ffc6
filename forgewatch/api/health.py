"""Health check endpoint."""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health(request: Request):
    scheduler = getattr(request.app.state, "scheduler", None)
    return {
        "status": "ok",
        "monitor": "running" if scheduler is not None else "stopped",
        "refresh_timer": bool(scheduler and scheduler.timer_active),
    }
