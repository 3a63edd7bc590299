# (c) Copyright Datacraft, 2026
from .orm import Document, DocumentVersion, StorageLocation

__all__ = [
	'Document',
	'DocumentVersion',
	'StorageLocation',
]
