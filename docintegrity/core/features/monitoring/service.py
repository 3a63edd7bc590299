# (c) Copyright Datacraft, 2026
import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import async_sessionmaker

from docintegrity.core.storage.base import StorageBackend

logger = logging.getLogger(__name__)


async def check_db_status(session_factory: async_sessionmaker) -> bool:
	try:
		async with session_factory() as session:
			await session.execute(text("SELECT 1"))
		return True
	except Exception as e:
		logger.error(f"Database health check failed: {e}")
		return False


async def check_storage_status(backend: StorageBackend) -> bool:
	try:
		return await backend.ping()
	except Exception as e:
		logger.error(f"Storage health check failed for {backend.name}: {e}")
		return False
