from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import BadRequest, Conflict, NotFound, sqlstate_of
from app.core.logger import logger
from app.core.policy import booking_owner_for, ensure_can_delete_booking
from app.core.security import Principal
from app.models.api_models import BookingCreate
from app.models.db_models import OVERLAP_CONSTRAINT, Booking, Room, User, as_utc
from app.services.availability_service import day_window, is_available

MAX_DURATION = timedelta(hours=24)
DEFAULT_STATUS = "pending"
UNAVAILABLE_MESSAGE = "Room unavailable for selected date/time"

EXCLUSION_VIOLATION = "23P01"
FOREIGN_KEY_VIOLATION = "23503"

@dataclass(frozen=True)
class NormalizedBooking:
    room_id: int
    user_id: Optional[int]
    start_time: datetime
    end_time: datetime
    notes: Optional[str] = None

def utc_today() -> date:
    return datetime.now(timezone.utc).date()

def parse_instant(value: Optional[str]) -> Optional[datetime]:
    """ISO 8601 instant in UTC. A trailing Z is accepted and naive values are taken as UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except (ValueError, AttributeError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)

def parse_day(value: Optional[str]) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(value.strip())
    except (ValueError, AttributeError):
        return None

def booking_to_dict(booking: Booking) -> Dict[str, Any]:
    return {
        "id": booking.id,
        "room_id": booking.room_id,
        "user_id": booking.user_id,
        "start_time": as_utc(booking.start_time),
        "end_time": as_utc(booking.end_time),
        "status": booking.status,
        "notes": booking.notes,
    }

def validate_and_normalize(request: BookingCreate, principal: Optional[Principal], today: Optional[date] = None) -> NormalizedBooking:
    """
    Structural and business checks for a new booking, in order, stopping at
    the first failure. Availability is checked separately against the store.
    """
    today = today or utc_today()

    if request.room_id is None:
        raise BadRequest("room_id required")

    start_raw, end_raw = request.start_time, request.end_time
    if request.date:
        day = parse_day(request.date)
        if day is None:
            raise BadRequest("Invalid date, expected YYYY-MM-DD")
        if day < today:
            raise BadRequest("Cannot create booking for past dates")
        start, end = day_window(day)
    else:
        if not start_raw or not end_raw:
            raise BadRequest("start_time and end_time (or date) required")
        start, end = parse_instant(start_raw), parse_instant(end_raw)
        if start is None or end is None or start >= end:
            raise BadRequest("Invalid start_time/end_time")

    if start.date() != end.date() or end - start > MAX_DURATION:
        raise BadRequest("Reservation must be within one day")

    if start.date() < today:
        raise BadRequest("Cannot create booking for past dates")

    user_id = booking_owner_for(principal, request.user_id)

    return NormalizedBooking(
        room_id=request.room_id,
        user_id=user_id,
        start_time=start,
        end_time=end,
        notes=request.notes,
    )

class BookingService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_booking(self, request: BookingCreate, principal: Optional[Principal]) -> Booking:
        normalized = validate_and_normalize(request, principal)

        logger.info(
            f"📥 Booking Request - Room: {normalized.room_id}, "
            f"{normalized.start_time.isoformat()} -> {normalized.end_time.isoformat()}"
        )

        # Check and insert share one transaction; on PostgreSQL the exclusion
        # constraint closes the remaining race between concurrent requests.
        if not await is_available(self.session, normalized.room_id, normalized.start_time, normalized.end_time):
            logger.info(f"⛔ Room {normalized.room_id} already booked for the requested range")
            raise Conflict(UNAVAILABLE_MESSAGE)

        booking = Booking(
            room_id=normalized.room_id,
            user_id=normalized.user_id,
            start_time=normalized.start_time,
            end_time=normalized.end_time,
            status=DEFAULT_STATUS,
            notes=normalized.notes,
        )
        self.session.add(booking)
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            code = sqlstate_of(e)
            if code == EXCLUSION_VIOLATION or OVERLAP_CONSTRAINT in str(e):
                logger.info(f"⛔ Overlap rejected by the database for room {normalized.room_id}")
                raise Conflict(UNAVAILABLE_MESSAGE) from e
            if code == FOREIGN_KEY_VIOLATION:
                raise BadRequest("room_id or user_id does not exist") from e
            raise

        await self.session.refresh(booking)
        logger.info(f"✅ Booking {booking.id} created for room {booking.room_id}")
        return booking

    def _detail_query(self):
        return (
            select(
                Booking,
                Room.name.label("room_name"),
                User.email.label("user_email"),
                User.name.label("user_name"),
            )
            .outerjoin(Room, Booking.room_id == Room.id)
            .outerjoin(User, Booking.user_id == User.id)
        )

    @staticmethod
    def _detail_row(row) -> Dict[str, Any]:
        booking, room_name, user_email, user_name = row
        detail = booking_to_dict(booking)
        detail.update(room_name=room_name, user_email=user_email, user_name=user_name)
        return detail

    async def list_bookings(
        self,
        user: Optional[str] = None,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        status: Optional[str] = None,
        room_id: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Admin listing with optional filters, joined with room and user details."""
        statement = self._detail_query()

        if room_id is not None:
            statement = statement.where(Booking.room_id == room_id)
        if status:
            statement = statement.where(Booking.status == status)
        if date_from:
            day = parse_day(date_from)
            if day is None:
                raise BadRequest("Invalid date_from, expected YYYY-MM-DD")
            statement = statement.where(Booking.start_time >= day_window(day)[0])
        if date_to:
            day = parse_day(date_to)
            if day is None:
                raise BadRequest("Invalid date_to, expected YYYY-MM-DD")
            statement = statement.where(Booking.end_time <= day_window(day)[1])
        if user:
            pattern = f"%{user}%"
            statement = statement.where(or_(User.email.ilike(pattern), User.name.ilike(pattern)))

        result = await self.session.execute(statement.order_by(Booking.start_time))
        return [self._detail_row(row) for row in result.all()]

    async def list_for_user(self, user_id: int) -> List[Dict[str, Any]]:
        statement = self._detail_query().where(Booking.user_id == user_id).order_by(Booking.start_time)
        result = await self.session.execute(statement)
        return [self._detail_row(row) for row in result.all()]

    async def get_booking(self, booking_id: int) -> Booking:
        booking = await self.session.get(Booking, booking_id)
        if booking is None:
            raise NotFound("Booking not found")
        return booking

    async def get_booking_detail(self, booking_id: int) -> Dict[str, Any]:
        result = await self.session.execute(self._detail_query().where(Booking.id == booking_id))
        row = result.first()
        if row is None:
            raise NotFound("Booking not found")
        return self._detail_row(row)

    async def update_status(self, booking_id: int, status: Optional[str]) -> Dict[str, Any]:
        status = (status or "").strip()
        if not status:
            raise BadRequest("status required")

        booking = await self.get_booking(booking_id)
        old_status = booking.status
        booking.status = status
        await self.session.commit()
        logger.info(f"📝 Booking {booking_id} status: '{old_status}' -> '{status}'")
        return await self.get_booking_detail(booking_id)

    async def delete_booking(self, booking_id: int, principal: Optional[Principal]):
        booking = await self.get_booking(booking_id)
        ensure_can_delete_booking(principal, booking.user_id)

        await self.session.delete(booking)
        await self.session.commit()
        logger.info(f"🗑️ Booking {booking_id} deleted by user {principal.id if principal else None}")
