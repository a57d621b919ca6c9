from pydantic import BaseModel, ConfigDict
from typing import Optional, Literal
from datetime import datetime

# --- Incoming Request Models ---
# Required fields are Optional here on purpose: the handlers report missing
# values with their own messages instead of a generic validation error.

class RegisterRequest(BaseModel):
    email: Optional[str] = None
    name: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None

class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None

class RoomCreate(BaseModel):
    name: Optional[str] = None
    capacity: int = 1
    description: Optional[str] = None

class RoomUpdate(BaseModel):
    name: Optional[str] = None
    capacity: Optional[int] = None
    description: Optional[str] = None

class BookingCreate(BaseModel):
    room_id: Optional[int] = None
    user_id: Optional[int] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    date: Optional[str] = None
    notes: Optional[str] = None

class BookingStatusUpdate(BaseModel):
    status: Optional[str] = None


# --- Outgoing Response Models ---

class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: Optional[str] = None
    role: str
    created_at: Optional[datetime] = None

class AuthResponse(BaseModel):
    user: UserOut
    token: str

class RoomOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    capacity: int
    description: Optional[str] = None

class BookingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    room_id: int
    user_id: Optional[int] = None
    start_time: datetime
    end_time: datetime
    status: str
    notes: Optional[str] = None

class BookingDetailOut(BookingOut):
    """Booking joined with its room and user, as shown in listings."""
    room_name: Optional[str] = None
    user_email: Optional[str] = None
    user_name: Optional[str] = None

class AvailabilityResponse(BaseModel):
    available: bool

class HealthResponse(BaseModel):
    status: str
    db: Literal["ok", "down", "unconfigured", "error"]
    backend_image: str
    frontend_image: str
