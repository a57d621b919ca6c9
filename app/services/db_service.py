import asyncio
from contextlib import asynccontextmanager, contextmanager
from enum import Enum
from typing import AsyncIterator, Iterator, Optional

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.config import Settings, settings as default_settings
from app.core.errors import InternalError, ServiceUnavailable, classify_db_error, is_connection_error, needs_reconnect
from app.core.logger import logger
from app.models.db_models import Base

class PoolState(str, Enum):
    UNCONFIGURED = "unconfigured"
    HEALTHY = "healthy"
    RECONNECTING = "reconnecting"
    FAILED = "failed"

class DBService:
    """
    Owner of the process-wide connection pool.

    Callers only acquire sessions; every state transition (initial connect,
    reconnect with exponential backoff, giving up) happens here.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self.state = PoolState.UNCONFIGURED
        self._engine: Optional[AsyncEngine] = None
        self._sessionmaker: Optional[async_sessionmaker] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._recovered: Optional[asyncio.Event] = None

    @property
    def engine(self) -> Optional[AsyncEngine]:
        return self._engine

    def _build_engine(self, url: str) -> AsyncEngine:
        s = self.settings
        if url.startswith("sqlite"):
            # One shared connection, so in-memory databases survive across sessions
            return create_async_engine(
                url,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )

        connect_args = {
            "timeout": s.DB_CONNECT_TIMEOUT,
            "command_timeout": s.DB_QUERY_TIMEOUT,
            "server_settings": {"application_name": s.DB_APP_NAME},
        }
        if s.DB_SSL:
            connect_args["ssl"] = "require"

        return create_async_engine(
            url,
            pool_size=s.DB_POOL_SIZE,
            max_overflow=s.DB_MAX_OVERFLOW,
            pool_timeout=s.DB_POOL_TIMEOUT,
            pool_pre_ping=True,
            connect_args=connect_args,
        )

    def _install_engine(self, engine: AsyncEngine):
        self._engine = engine
        self._sessionmaker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def connect(self):
        """Creates the pool at startup. A failing database never stops the process."""
        url = self.settings.database_url
        if not url:
            logger.warning("⚠️ No DATABASE_URL provided; DB pool will not be created.")
            self.state = PoolState.UNCONFIGURED
            return

        self._install_engine(self._build_engine(url))
        try:
            await self.ping()
            if self.settings.DB_AUTO_CREATE:
                await self.create_schema()
            self.state = PoolState.HEALTHY
            logger.info("✅ Database connected")
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            logger.warning(f"⚠️ Database connect failed (continuing): {e}")
            self._schedule_reconnect()

    async def create_schema(self):
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("🗄️ Database schema ensured")

    async def ping(self):
        if self._engine is None:
            raise InternalError("DB not configured")

        async def _select_one():
            async with self._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))

        await asyncio.wait_for(_select_one(), timeout=self.settings.DB_CONNECT_TIMEOUT)

    def backoff_delay(self, attempt: int) -> float:
        delay = self.settings.DB_RECONNECT_BASE_DELAY * (2 ** attempt)
        return min(delay, self.settings.DB_RECONNECT_MAX_DELAY)

    def report_connection_error(self, exc: BaseException):
        """Called whenever a request hits a connectivity failure."""
        if self.state in (PoolState.HEALTHY, PoolState.FAILED):
            logger.error(f"❌ Unexpected database client error (non-fatal): {exc}")
            self._schedule_reconnect()

    def _schedule_reconnect(self):
        if self._reconnect_task is not None and not self._reconnect_task.done():
            return
        self.state = PoolState.RECONNECTING
        self._recovered = asyncio.Event()
        self._reconnect_task = asyncio.create_task(self._reconnect_loop())

    async def _reconnect_loop(self):
        url = self.settings.database_url
        attempts = self.settings.DB_RECONNECT_MAX_ATTEMPTS

        for attempt in range(attempts):
            delay = self.backoff_delay(attempt)
            logger.warning(f"🔄 Recreating DB pool in {delay:.1f}s (attempt {attempt + 1}/{attempts})")
            await asyncio.sleep(delay)

            old_engine = self._engine
            try:
                if old_engine is not None:
                    await old_engine.dispose()
                self._install_engine(self._build_engine(url))
                await self.ping()
            except Exception as e:
                logger.error(f"❌ DB reconnect attempt {attempt + 1} failed: {e}")
                continue

            self.state = PoolState.HEALTHY
            self._recovered.set()
            logger.info("✅ DB pool recreated")
            return

        self.state = PoolState.FAILED
        self._recovered.set()
        logger.critical(f"❌ Giving up on the database after {attempts} reconnect attempts")

    async def _wait_until_usable(self):
        if self.state == PoolState.UNCONFIGURED:
            raise InternalError("DB not configured")

        if self.state == PoolState.FAILED:
            self._schedule_reconnect()

        if self.state == PoolState.RECONNECTING:
            try:
                await asyncio.wait_for(self._recovered.wait(), timeout=self.settings.DB_POOL_TIMEOUT)
            except asyncio.TimeoutError:
                raise ServiceUnavailable()

        if self.state != PoolState.HEALTHY:
            raise ServiceUnavailable()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Acquire a session, waiting (bounded) while the pool is being recreated."""
        await self._wait_until_usable()
        async with self._sessionmaker() as session:
            yield session

    @contextmanager
    def guard(self, fallback_message: str) -> Iterator[None]:
        """Translates store failures inside the block into API errors."""
        try:
            yield
        except (SQLAlchemyError, OSError, asyncio.TimeoutError) as e:
            if needs_reconnect(e):
                self.report_connection_error(e)
            raise classify_db_error(e, fallback_message) from e

    async def health(self) -> str:
        if self.state == PoolState.UNCONFIGURED:
            return "unconfigured"
        if self.state != PoolState.HEALTHY:
            return "down"
        try:
            await self.ping()
            return "ok"
        except Exception as e:
            if is_connection_error(e):
                if needs_reconnect(e):
                    self.report_connection_error(e)
                return "down"
            logger.error(f"❌ Health check query failed: {e}")
            return "error"

    async def close(self):
        if self._reconnect_task is not None and not self._reconnect_task.done():
            self._reconnect_task.cancel()
            try:
                await self._reconnect_task
            except asyncio.CancelledError:
                pass
        self._reconnect_task = None
        if self._engine is not None:
            await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None
        self.state = PoolState.UNCONFIGURED
        logger.info("🛑 DB pool closed")

db_service = DBService()

async def get_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding a pooled session."""
    async with db_service.session() as session:
        yield session
