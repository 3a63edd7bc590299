import logging
import ssl

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
	AsyncEngine,
	async_sessionmaker,
	create_async_engine,
)
from sqlalchemy.pool import NullPool

from docintegrity.core.config import Settings, get_settings

from .base import Base

logger = logging.getLogger(__name__)


def _enable_sqlite_immediate_transactions(engine: AsyncEngine) -> None:
	# pysqlite's implicit BEGIN takes no lock, so two concurrent writers can
	# dead-lock on lock upgrade. BEGIN IMMEDIATE makes them queue instead.
	@event.listens_for(engine.sync_engine, "connect")
	def do_connect(dbapi_connection, connection_record):
		dbapi_connection.isolation_level = None

	@event.listens_for(engine.sync_engine, "begin")
	def do_begin(conn):
		conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_engine(settings: Settings | None = None, url: str | None = None) -> AsyncEngine:
	settings = settings or get_settings()
	url = url or settings.async_db_url

	connect_args = {}
	if url.startswith("sqlite"):
		connect_args["timeout"] = 30
		engine = create_async_engine(url, connect_args=connect_args)
		_enable_sqlite_immediate_transactions(engine)
		return engine

	if settings.db_ssl:
		# asyncpg requires an SSL context, not sslmode
		ssl_context = ssl.create_default_context()
		ssl_context.check_hostname = False
		ssl_context.verify_mode = ssl.CERT_NONE
		connect_args["ssl"] = ssl_context

	return create_async_engine(
		url,
		poolclass=NullPool,
		connect_args=connect_args,
	)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
	return async_sessionmaker(engine, expire_on_commit=False)


async def create_all(engine: AsyncEngine) -> None:
	# Register every mapped class before emitting DDL
	from docintegrity.core import orm  # noqa: F401

	async with engine.begin() as conn:
		await conn.run_sync(Base.metadata.create_all)
	logger.info("Metadata schema ready")
