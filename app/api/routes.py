from fastapi import FastAPI

from app.api import auth, bookings, health, rooms

# path prefix -> router. Rooms are served under both names.
ROUTE_TABLE = (
    ("/auth", auth.router, ["Auth"]),
    ("/book", bookings.router, ["Bookings"]),
    ("/products", rooms.router, ["Rooms"]),
    ("/rooms", rooms.router, ["Rooms"]),
    ("", health.router, ["Health"]),
)

def include_routes(app: FastAPI):
    for prefix, router, tags in ROUTE_TABLE:
        app.include_router(router, prefix=prefix, tags=tags)
