from datetime import date, datetime, time, timezone
from typing import List, Tuple

from sqlalchemy import and_, exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.db_models import Booking, Room

# Whole-day windows end at 23:59:59, not midnight. A booking that starts in
# the last second of the day is therefore invisible to day-level queries.
DAY_START = time(0, 0, 0)
DAY_END = time(23, 59, 59)

def day_window(day: date) -> Tuple[datetime, datetime]:
    return (
        datetime.combine(day, DAY_START, tzinfo=timezone.utc),
        datetime.combine(day, DAY_END, tzinfo=timezone.utc),
    )

def overlaps(start: datetime, end: datetime):
    """Half-open intersection of [Booking.start_time, Booking.end_time) with [start, end)."""
    return and_(Booking.start_time < end, Booking.end_time > start)

async def is_available(session: AsyncSession, room_id: int, start: datetime, end: datetime) -> bool:
    statement = (
        select(Booking.id)
        .where(Booking.room_id == room_id, overlaps(start, end))
        .limit(1)
    )
    result = await session.execute(statement)
    return result.first() is None

async def is_available_on(session: AsyncSession, room_id: int, day: date) -> bool:
    start, end = day_window(day)
    return await is_available(session, room_id, start, end)

async def free_rooms(session: AsyncSession, day: date) -> List[Room]:
    """Rooms without any booking intersecting the given day."""
    start, end = day_window(day)
    busy = exists().where(Booking.room_id == Room.id, overlaps(start, end))
    result = await session.execute(select(Room).where(~busy).order_by(Room.id))
    return list(result.scalars().all())
