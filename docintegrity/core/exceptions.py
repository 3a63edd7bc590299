# (c) Copyright Datacraft, 2026
"""Error taxonomy of the integrity engine.

Transient storage failures are retried by the gateway and the retry queue.
Checksum mismatches and abandoned recoveries are always surfaced.
"""


class IntegrityEngineError(Exception):
	"""Base class for all engine errors."""

	def __init__(self, message: str, document_id: str | None = None):
		self.document_id = document_id
		super().__init__(message)


class DocumentNotFoundError(IntegrityEngineError):
	"""No metadata record exists for the requested document."""

	def __init__(self, document_id: str):
		super().__init__(f"Document not found: {document_id}", document_id)


class VersionNotFoundError(IntegrityEngineError):
	def __init__(self, document_id: str, version_number: int):
		self.version_number = version_number
		super().__init__(
			f"Version {version_number} not found for document {document_id}",
			document_id,
		)


class NotFoundError(IntegrityEngineError):
	"""Content is absent from both storage tiers. Recoverable."""

	def __init__(self, document_id: str | None, key: str | None = None):
		self.key = key
		super().__init__(
			f"Content for {document_id or key} is absent from every storage tier",
			document_id,
		)


class ChecksumMismatchError(IntegrityEngineError):
	"""Content is present but its digest disagrees with the recorded one."""

	def __init__(self, document_id: str | None, expected: str, actual: str):
		self.expected = expected
		self.actual = actual
		super().__init__(
			f"Checksum mismatch for {document_id}: expected {expected}, got {actual}",
			document_id,
		)


class StorageUnavailableError(IntegrityEngineError):
	"""Transient storage failure; retried with backoff."""


class StorageTimeoutError(StorageUnavailableError):
	"""A storage call exceeded its caller supplied timeout."""


class AlreadyInFlightError(IntegrityEngineError):
	"""A recovery for this document is already running. Try again later."""

	def __init__(self, document_id: str):
		super().__init__(f"Recovery already in flight for {document_id}", document_id)


class AbandonedError(NotFoundError):
	"""Content is absent and retries are exhausted; needs operator attention."""

	def __init__(self, document_id: str, attempts: int):
		self.key = None
		self.attempts = attempts
		IntegrityEngineError.__init__(
			self,
			f"Recovery for {document_id} abandoned after {attempts} attempts, needs manual review",
			document_id,
		)