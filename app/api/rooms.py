from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import BadRequest
from app.core.security import Principal, require_admin
from app.models.api_models import RoomCreate, RoomOut, RoomUpdate
from app.services.booking_service import parse_day
from app.services.db_service import db_service, get_session
from app.services.room_service import RoomService

router = APIRouter()

@router.get("", response_model=List[RoomOut])
async def list_rooms(date: Optional[str] = None, session: AsyncSession = Depends(get_session)):
    """All rooms, or only the rooms free for the whole of `date` (YYYY-MM-DD)."""
    day = None
    if date:
        day = parse_day(date)
        if day is None:
            raise BadRequest("Invalid date, expected YYYY-MM-DD")

    with db_service.guard("Failed to fetch rooms"):
        return await RoomService(session).list_rooms(day)

@router.get("/{room_id}", response_model=RoomOut)
async def get_room(room_id: int, session: AsyncSession = Depends(get_session)):
    with db_service.guard("Failed to fetch room"):
        return await RoomService(session).get_room(room_id)

@router.post("", status_code=status.HTTP_201_CREATED, response_model=RoomOut)
async def create_room(
    req: RoomCreate,
    admin: Principal = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    with db_service.guard("Failed to create room"):
        return await RoomService(session).create_room(req)

# No admin check here, unlike create/delete. Kept as deployed.
@router.put("/{room_id}", response_model=RoomOut)
async def update_room(room_id: int, req: RoomUpdate, session: AsyncSession = Depends(get_session)):
    with db_service.guard("Failed to update room"):
        return await RoomService(session).update_room(room_id, req)

@router.delete("/{room_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_room(
    room_id: int,
    admin: Principal = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    with db_service.guard("Failed to delete room"):
        await RoomService(session).delete_room(room_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
