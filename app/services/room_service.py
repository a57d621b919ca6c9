from datetime import date
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import BadRequest, Conflict, NotFound
from app.core.logger import logger
from app.models.api_models import RoomCreate, RoomUpdate
from app.models.db_models import Room
from app.services.availability_service import free_rooms

class RoomService:
    """CRUD over rooms (exposed as /products and /rooms)."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_rooms(self, day: Optional[date] = None) -> List[Room]:
        if day is not None:
            return await free_rooms(self.session, day)
        result = await self.session.execute(select(Room).order_by(Room.id))
        return list(result.scalars().all())

    async def get_room(self, room_id: int) -> Room:
        room = await self.session.get(Room, room_id)
        if room is None:
            raise NotFound("Room not found")
        return room

    async def create_room(self, data: RoomCreate) -> Room:
        name = (data.name or "").strip()
        if not name:
            raise BadRequest("name is required")
        if data.capacity < 1:
            raise BadRequest("capacity must be at least 1")

        room = Room(name=name, capacity=data.capacity, description=data.description)
        self.session.add(room)
        await self.session.commit()
        await self.session.refresh(room)
        logger.info(f"🆕 Room created: {room.name} (ID {room.id})")
        return room

    async def update_room(self, room_id: int, data: RoomUpdate) -> Room:
        """Partial update: fields left out of the request keep their value."""
        room = await self.get_room(room_id)

        if data.name is not None:
            if not data.name.strip():
                raise BadRequest("name must not be empty")
            room.name = data.name.strip()
        if data.capacity is not None:
            if data.capacity < 1:
                raise BadRequest("capacity must be at least 1")
            room.capacity = data.capacity
        if data.description is not None:
            room.description = data.description

        await self.session.commit()
        return room

    async def delete_room(self, room_id: int):
        room = await self.get_room(room_id)
        await self.session.delete(room)
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise Conflict("Room still has bookings") from e
        logger.info(f"🗑️ Room {room_id} deleted")
