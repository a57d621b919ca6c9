from typing import List, Optional

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import BadRequest
from app.core.logger import logger
from app.core.security import Principal, get_current_principal, require_admin, require_auth
from app.models.api_models import (
    AvailabilityResponse,
    BookingCreate,
    BookingDetailOut,
    BookingOut,
    BookingStatusUpdate,
)
from app.services.availability_service import is_available_on
from app.services.booking_service import BookingService, booking_to_dict, parse_day
from app.services.db_service import db_service, get_session

router = APIRouter()

def trace(request: Request, principal: Optional[Principal], label: str):
    caller = f"{principal.id}/{principal.role}" if principal else "none"
    has_auth = bool(request.headers.get("authorization"))
    logger.debug(f"[bookings] {label} {request.method} {request.url.path} auth={has_auth} user={caller}")

@router.get("", response_model=List[BookingDetailOut])
async def list_bookings(
    request: Request,
    user: Optional[str] = None,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    status: Optional[str] = None,
    room_id: Optional[int] = None,
    admin: Principal = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    trace(request, admin, "list")
    with db_service.guard("Failed to fetch bookings"):
        return await BookingService(session).list_bookings(
            user=user, date_from=date_from, date_to=date_to, status=status, room_id=room_id
        )

@router.get("/my", response_model=List[BookingDetailOut])
async def my_bookings(
    request: Request,
    principal: Principal = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    trace(request, principal, "my")
    with db_service.guard("Failed to fetch bookings"):
        return await BookingService(session).list_for_user(principal.id)

@router.get("/availability", response_model=AvailabilityResponse)
async def availability(
    room_id: Optional[int] = None,
    date: Optional[str] = None,
    session: AsyncSession = Depends(get_session),
):
    """Whether the room is free for the whole of `date` (YYYY-MM-DD, UTC)."""
    if room_id is None or not date:
        raise BadRequest("room_id and date required")
    day = parse_day(date)
    if day is None:
        raise BadRequest("Invalid date, expected YYYY-MM-DD")

    with db_service.guard("Availability check failed"):
        available = await is_available_on(session, room_id, day)
    return AvailabilityResponse(available=available)

@router.get("/{booking_id}", response_model=BookingOut)
async def get_booking(booking_id: int, session: AsyncSession = Depends(get_session)):
    with db_service.guard("Failed to fetch booking"):
        booking = await BookingService(session).get_booking(booking_id)
    return booking_to_dict(booking)

@router.post("", status_code=status.HTTP_201_CREATED, response_model=BookingOut)
async def create_booking(
    req: BookingCreate,
    request: Request,
    principal: Optional[Principal] = Depends(get_current_principal),
    session: AsyncSession = Depends(get_session),
):
    trace(request, principal, "create")
    with db_service.guard("Failed to create booking"):
        booking = await BookingService(session).create_booking(req, principal)
    return booking_to_dict(booking)

@router.patch("/{booking_id}/status", response_model=BookingDetailOut)
async def update_booking_status(
    booking_id: int,
    req: BookingStatusUpdate,
    admin: Principal = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    with db_service.guard("Failed to update booking status"):
        return await BookingService(session).update_status(booking_id, req.status)

@router.delete("/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_booking(
    booking_id: int,
    request: Request,
    principal: Principal = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
):
    trace(request, principal, "delete")
    with db_service.guard("Failed to delete booking"):
        await BookingService(session).delete_booking(booking_id, principal)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
