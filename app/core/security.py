import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import bcrypt
import jwt
from fastapi import Depends, Header

from app.core.config import Settings, settings
from app.core.errors import Forbidden, Unauthorized
from app.core.logger import logger

JWT_ALGORITHM = "HS256"
BCRYPT_ROUNDS = 10
DEV_IDENTITY_HEADER = "x-session-user"

@dataclass(frozen=True)
class Principal:
    """Identity of the caller for a single request."""
    id: int
    role: str = "user"
    email: Optional[str] = None
    name: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS)).decode("utf-8")

def verify_password(password: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False

def issue_token(user, secret: Optional[str] = None, expires_hours: Optional[int] = None) -> str:
    """Signs a time-boxed token carrying the claims a Principal is built from."""
    now = datetime.now(timezone.utc)
    hours = expires_hours if expires_hours is not None else settings.JWT_EXPIRES_HOURS
    payload = {
        "id": user.id,
        "role": user.role,
        "email": user.email,
        "name": user.name,
        "iat": now,
        "exp": now + timedelta(hours=hours),
    }
    return jwt.encode(payload, secret or settings.JWT_SECRET, algorithm=JWT_ALGORITHM)

def principal_from_claims(claims: Dict[str, Any]) -> Optional[Principal]:
    try:
        principal_id = int(claims["id"])
    except (KeyError, TypeError, ValueError):
        return None

    role = claims.get("role") or "user"
    return Principal(
        id=principal_id,
        role=str(role),
        email=claims.get("email"),
        name=claims.get("name"),
    )

class BearerIdentityProvider:
    def __init__(self, secret: str):
        self.secret = secret

    def resolve(self, authorization: Optional[str]) -> Optional[Principal]:
        if not authorization or not authorization.startswith("Bearer "):
            return None

        token = authorization[len("Bearer "):]
        try:
            claims = jwt.decode(token, self.secret, algorithms=[JWT_ALGORITHM])
        except jwt.PyJWTError as e:
            # Not an error: the next provider gets a chance
            logger.debug(f"Bearer token rejected: {e}")
            return None
        return principal_from_claims(claims)

class DevIdentityProvider:
    """
    Development-only identity taken verbatim from the x-session-user header
    (a JSON object such as {"id": 5, "role": "user"}). Nothing is verified,
    so it is only ever built outside production.
    """

    def resolve(self, raw: Optional[str]) -> Optional[Principal]:
        if not raw:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            return None
        if not isinstance(data, dict):
            return None
        return principal_from_claims(data)

class IdentityResolver:
    def __init__(self, bearer: BearerIdentityProvider, dev: Optional[DevIdentityProvider] = None):
        self.bearer = bearer
        self.dev = dev

    def resolve(self, authorization: Optional[str], dev_header: Optional[str] = None) -> Optional[Principal]:
        principal = self.bearer.resolve(authorization)
        if principal is not None:
            return principal
        if self.dev is not None:
            return self.dev.resolve(dev_header)
        return None

def build_identity_resolver(config: Settings) -> IdentityResolver:
    dev = None
    if config.dev_identity_allowed:
        logger.warning(f"⚠️ Unverified {DEV_IDENTITY_HEADER} header accepted (development only)")
        dev = DevIdentityProvider()
    return IdentityResolver(BearerIdentityProvider(config.JWT_SECRET), dev)

identity_resolver = build_identity_resolver(settings)


# --- FastAPI dependencies ---

async def get_current_principal(
    authorization: Optional[str] = Header(None),
    x_session_user: Optional[str] = Header(None),
) -> Optional[Principal]:
    return identity_resolver.resolve(authorization, x_session_user)

async def require_auth(principal: Optional[Principal] = Depends(get_current_principal)) -> Principal:
    if principal is None:
        raise Unauthorized()
    return principal

async def require_admin(principal: Optional[Principal] = Depends(get_current_principal)) -> Principal:
    if principal is None:
        raise Unauthorized()
    if not principal.is_admin:
        raise Forbidden("Admin required")
    return principal
