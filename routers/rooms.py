from fastapi import APIRouter, HTTPException, Request
import time

from backend import relay_backend
from logging_config import get_logger
from schemas.rooms import HealthResponse, ListRoomsResponse, RoomStatus

logger = get_logger(__name__)

status_router = APIRouter(tags=["status"])
rooms_router = APIRouter(prefix="/rooms", tags=["rooms"])


@status_router.get("/health", response_model=HealthResponse, response_model_by_alias=True)
async def health(request: Request):
    """
    Read-only view of the relay:
    - clients: number of open connections
    - rooms: number of non-empty rooms
    - roomDetails: member count per room
    - uptime: seconds since the application started
    """
    snapshot = relay_backend.snapshot()
    uptime = time.monotonic() - request.app.state.started_at
    logger.debug(f"Health check: {snapshot.clients} clients, {snapshot.rooms} rooms")
    return HealthResponse(**snapshot.model_dump(), uptime=uptime)


@rooms_router.get("", response_model=ListRoomsResponse, response_model_by_alias=True)
async def list_rooms():
    return ListRoomsResponse(rooms=relay_backend.snapshot().room_details)


@rooms_router.get("/{room_id}", response_model=RoomStatus, response_model_by_alias=True)
async def get_room(room_id: str):
    room = relay_backend.room_status(room_id)
    if room is None:
        logger.info(f"Room details failed: Room {room_id} not found")
        raise HTTPException(status_code=404, detail="Room not found")
    return room
