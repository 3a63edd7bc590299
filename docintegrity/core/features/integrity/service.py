# (c) Copyright Datacraft, 2026
"""
Integrity verifier.

Recomputes content checksums and compares them with the digest recorded
for the document's current version. Verification never changes the
document's content or locations; the caller decides what to do with a
mismatch.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Iterable

from docintegrity.core.exceptions import (
	DocumentNotFoundError,
	NotFoundError,
	StorageUnavailableError,
)
from docintegrity.core.features.document.db.api import DocumentDB
from docintegrity.core.features.gateway.service import StorageGateway
from docintegrity.core.types import TierName, VerifyStatus
from docintegrity.core.utils.hash import compute_checksum

logger = logging.getLogger(__name__)

__all__ = ["IntegrityVerifier", "VerificationResult", "BatchVerification", "compute_checksum"]


@dataclass
class VerificationResult:
	document_id: str
	status: VerifyStatus
	digest: str | None = None
	expected: str | None = None
	tier: TierName | None = None
	error: str | None = None

	@property
	def is_valid(self) -> bool:
		return self.status is VerifyStatus.VALID


class IntegrityVerifier:

	def __init__(self, gateway: StorageGateway, documents: DocumentDB, concurrency: int = 8):
		self.gateway = gateway
		self.documents = documents
		self.concurrency = concurrency

	async def verify(self, document_id: str, timeout: float | None = None) -> VerificationResult:
		"""
		Check whatever bytes the gateway can currently produce.

		The read bypasses the read-time audit and does not rehydrate, so a
		verification leaves no trace beyond ``last_verified_at``.

		Raises:
			DocumentNotFoundError: no metadata record for ``document_id``
		"""
		document = await self.documents.require_document(document_id)
		locations = self.gateway.document_locations(document)

		if not locations:
			return VerificationResult(
				document_id=document_id,
				status=VerifyStatus.UNREADABLE,
				expected=document.checksum,
				error="No storage location recorded",
			)

		try:
			read = await self.gateway.read_first(locations, document_id=document_id, timeout=timeout)
		except (NotFoundError, StorageUnavailableError) as e:
			return VerificationResult(
				document_id=document_id,
				status=VerifyStatus.UNREADABLE,
				expected=document.checksum,
				error=str(e),
			)

		digest = compute_checksum(read.data)
		status = VerifyStatus.VALID if digest == document.checksum else VerifyStatus.MISMATCH
		await self.documents.mark_verified(document_id)

		if status is VerifyStatus.MISMATCH:
			logger.warning(
				f"Verification of {document_id} from {read.tier.value} tier: "
				f"expected {document.checksum}, got {digest}"
			)

		return VerificationResult(
			document_id=document_id,
			status=status,
			digest=digest,
			expected=document.checksum,
			tier=read.tier,
		)

	def verify_batch(
		self,
		document_ids: Iterable[str],
		concurrency: int | None = None,
	) -> "BatchVerification":
		return BatchVerification(self, list(document_ids), concurrency or self.concurrency)


class BatchVerification:
	"""
	Lazy, finite stream of verification results.

	Iterating again starts over. At most ``concurrency`` verifications run
	at once; results are yielded in input order. Unknown document ids yield
	an ``unreadable`` result rather than stopping the stream.
	"""

	def __init__(self, verifier: IntegrityVerifier, document_ids: list[str], concurrency: int):
		self.verifier = verifier
		self.document_ids = document_ids
		self.concurrency = max(1, concurrency)

	def __len__(self) -> int:
		return len(self.document_ids)

	async def _verify(self, document_id: str) -> VerificationResult:
		try:
			return await self.verifier.verify(document_id)
		except DocumentNotFoundError as e:
			return VerificationResult(
				document_id=document_id,
				status=VerifyStatus.UNREADABLE,
				error=str(e),
			)

	async def __aiter__(self) -> AsyncIterator[VerificationResult]:
		pending: list[asyncio.Task] = []
		ids = iter(self.document_ids)
		try:
			for document_id in ids:
				pending.append(asyncio.create_task(self._verify(document_id)))
				if len(pending) >= self.concurrency:
					yield await pending.pop(0)
			while pending:
				yield await pending.pop(0)
		finally:
			for task in pending:
				task.cancel()

	async def collect(self) -> list[VerificationResult]:
		return [result async for result in self]
