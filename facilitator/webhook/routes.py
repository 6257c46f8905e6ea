from typing import Any

from fastapi import APIRouter, Request

from facilitator.container import get_services

router = APIRouter()


@router.post("/webhook")
async def handle_webhook(request: Request):
    try:
        payload: Any = await request.json()
    except ValueError:
        payload = None
    return await get_services(request).relay.handle_event(payload)
