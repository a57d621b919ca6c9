from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from app.core.errors import BadRequest, Conflict, Unauthorized
from app.core.logger import logger
from app.core.security import hash_password, issue_token, verify_password
from app.models.api_models import LoginRequest, RegisterRequest
from app.models.db_models import User

ROLES = ("user", "admin")
# bcrypt only looks at the first 72 bytes
MAX_PASSWORD_BYTES = 72

class UserService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def register(self, data: RegisterRequest) -> Tuple[User, str]:
        """Creates the account and returns it with a freshly signed token."""
        email = (data.email or "").strip()
        if not email or not data.password:
            raise BadRequest("email and password required")

        if len(data.password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise BadRequest(f"password must be at most {MAX_PASSWORD_BYTES} bytes")

        role = data.role or "user"
        if role not in ROLES:
            raise BadRequest(f"role must be one of: {', '.join(ROLES)}")

        # bcrypt is CPU bound, keep it off the event loop
        hashed = await run_in_threadpool(hash_password, data.password)
        user = User(
            email=email,
            name=data.name or None,
            hashed_password=hashed,
            role=role,
        )
        self.session.add(user)
        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            raise Conflict("Email already exists") from e

        await self.session.refresh(user)
        logger.info(f"🆕 New user registered: {user.email} (ID {user.id}, role {user.role})")
        return user, issue_token(user)

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.email == email))
        return result.scalars().first()

    async def login(self, data: LoginRequest) -> Tuple[User, str]:
        email = (data.email or "").strip()
        if not email or not data.password:
            raise BadRequest("email and password required")

        user = await self.get_by_email(email)
        if user is None or not await run_in_threadpool(verify_password, data.password, user.hashed_password):
            logger.info(f"🔒 Failed login for {email}")
            raise Unauthorized("Invalid credentials")

        return user, issue_token(user)
