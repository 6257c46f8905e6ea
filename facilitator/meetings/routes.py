from fastapi import APIRouter, HTTPException, Request, WebSocket, status
from fastapi.responses import JSONResponse

from facilitator.container import get_services
from facilitator.services.recall_client import BotGatewayError

router = APIRouter()


@router.post("/meetings", status_code=status.HTTP_201_CREATED)
async def create_meeting(request: Request):
    try:
        payload = await request.json()
    except ValueError:
        payload = None
    if not isinstance(payload, dict):
        return JSONResponse(status_code=400, content={"error": "Request body must be a JSON object"})

    controller = get_services(request).meetings
    try:
        return await controller.create_meeting(payload)
    except ValueError as exc:
        return JSONResponse(status_code=400, content={"error": str(exc)})
    except BotGatewayError as exc:
        return JSONResponse(
            status_code=500,
            content={"error": "Failed to create meeting", "details": exc.details, "message": exc.message},
        )


@router.get("/meetings/{session_id}")
async def get_meeting(session_id: str, request: Request):
    try:
        return await get_services(request).meetings.get_meeting(session_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail="Meeting not found") from exc


@router.websocket("/meetings/{session_id}/ws")
async def meeting_updates(websocket: WebSocket, session_id: str):
    await get_services(websocket).meetings.stream_updates(websocket, session_id)
