# (c) Copyright Datacraft, 2026
"""Central ORM model exports."""
from .features.document.db.orm import Document, DocumentVersion
from .features.audit.db.orm import RecoveryEvent
from .features.recovery.db.orm import RetryQueueItem

__all__ = [
	'Document',
	'DocumentVersion',
	'RecoveryEvent',
	'RetryQueueItem',
]
