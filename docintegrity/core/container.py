# (c) Copyright Datacraft, 2026
"""
Process-scoped wiring of the engine.

One ``Container`` per process holds the engine, the storage tiers, the
per-document lock table and every service. Routers reach it through the
``get_container`` dependency; nothing else is shared between requests.
"""
import logging
from dataclasses import dataclass
from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from docintegrity.core.config import Settings, get_settings
from docintegrity.core.db.engine import create_engine, create_session_factory
from docintegrity.core.features.audit.db.api import RecoveryEventDB
from docintegrity.core.features.audit.health import HealthReporter
from docintegrity.core.features.audit.recorder import AuditRecorder
from docintegrity.core.features.document.db.api import DocumentDB
from docintegrity.core.features.document.service import DocumentService
from docintegrity.core.features.gateway.service import StorageGateway
from docintegrity.core.features.integrity.service import IntegrityVerifier
from docintegrity.core.features.recovery.db.api import RetryQueueDB
from docintegrity.core.features.recovery.queue import RetryQueue
from docintegrity.core.features.recovery.scheduler import RetrySweepScheduler
from docintegrity.core.features.recovery.service import RecoveryOrchestrator
from docintegrity.core.features.versions.service import VersionHistoryManager
from docintegrity.core.locks import DocumentLocks, InMemoryDocumentLocks, RedisDocumentLocks
from docintegrity.core.storage import (
	StorageBackend,
	create_cache_backend,
	create_primary_backend,
)
from docintegrity.core.types import LockBackend

logger = logging.getLogger(__name__)


def create_locks(settings: Settings) -> DocumentLocks:
	if settings.lock_backend == LockBackend.REDIS:
		if not settings.redis_url:
			raise ValueError("lock_backend=redis requires redis_url")
		return RedisDocumentLocks(settings.redis_url, lease_seconds=settings.lock_lease_seconds)
	return InMemoryDocumentLocks()


@dataclass
class Container:
	settings: Settings
	engine: AsyncEngine
	session_factory: async_sessionmaker
	primary: StorageBackend
	cache: StorageBackend
	locks: DocumentLocks
	documents: DocumentDB
	audit: AuditRecorder
	retry_queue: RetryQueue
	gateway: StorageGateway
	verifier: IntegrityVerifier
	versions: VersionHistoryManager
	orchestrator: RecoveryOrchestrator
	health: HealthReporter
	document_service: DocumentService
	scheduler: RetrySweepScheduler

	@classmethod
	def build(
		cls,
		settings: Settings | None = None,
		primary: StorageBackend | None = None,
		cache: StorageBackend | None = None,
		engine: AsyncEngine | None = None,
		locks: DocumentLocks | None = None,
	) -> "Container":
		settings = settings or get_settings()
		engine = engine or create_engine(settings)
		session_factory = create_session_factory(engine)
		primary = primary or create_primary_backend(settings)
		cache = cache or create_cache_backend(settings)
		locks = locks or create_locks(settings)

		documents = DocumentDB(session_factory)
		events = RecoveryEventDB(session_factory)
		retry_db = RetryQueueDB(session_factory)
		audit = AuditRecorder(events)

		retry_queue = RetryQueue(
			retry_db,
			documents,
			audit,
			base_delay_seconds=settings.retry_base_delay_seconds,
			max_delay_seconds=settings.retry_max_delay_seconds,
			max_attempts=settings.retry_max_attempts,
		)
		gateway = StorageGateway(
			primary,
			cache,
			documents,
			retry_queue,
			locks,
			timeout=settings.storage_timeout_seconds,
			checksum_audit=settings.checksum_audit_on_read,
		)
		verifier = IntegrityVerifier(gateway, documents, concurrency=settings.scan_concurrency)
		versions = VersionHistoryManager(
			gateway,
			documents,
			locks,
			lock_timeout=settings.retry_attempt_timeout_seconds,
		)
		orchestrator = RecoveryOrchestrator(
			gateway,
			verifier,
			versions,
			documents,
			retry_queue,
			audit,
			locks,
			scan_concurrency=settings.scan_concurrency,
			scan_verify_checksums=settings.scan_verify_checksums,
			retry_concurrency=settings.retry_concurrency,
			attempt_timeout=settings.retry_attempt_timeout_seconds,
		)

		return cls(
			settings=settings,
			engine=engine,
			session_factory=session_factory,
			primary=primary,
			cache=cache,
			locks=locks,
			documents=documents,
			audit=audit,
			retry_queue=retry_queue,
			gateway=gateway,
			verifier=verifier,
			versions=versions,
			orchestrator=orchestrator,
			health=HealthReporter(documents, events, retry_db, audit),
			document_service=DocumentService(documents, gateway, versions, audit),
			scheduler=RetrySweepScheduler(
				orchestrator, interval=settings.retry_sweep_interval_seconds
			),
		)

	async def close(self) -> None:
		"""Stop background work and release resources."""
		if self.scheduler.running:
			await self.scheduler.stop()
		await self.orchestrator.drain()
		await self.gateway.drain()
		await self.audit.flush()
		await self.locks.close()
		await self.engine.dispose()
		logger.info("Container closed")


def get_container(request: Request) -> Container:
	return request.app.state.container


ContainerDep = Annotated[Container, Depends(get_container)]


def get_actor_id(request: Request) -> str | None:
	"""Acting user id taken from the configured remote-user header."""
	container = get_container(request)
	return request.headers.get(container.settings.remote_user_header)


ActorDep = Annotated[str | None, Depends(get_actor_id)]
