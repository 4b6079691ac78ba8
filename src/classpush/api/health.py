"""Liveness endpoint."""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/")
async def health(request: Request) -> dict:
    notifier = getattr(request.app.state, "push_notifier", None)
    return {"status": "ok", "push_enabled": notifier is not None}
