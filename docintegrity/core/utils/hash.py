# (c) Copyright Datacraft, 2026
"""Utilities for calculating SHA-256 content checksums."""
import hashlib

CHUNK_SIZE = 65536


def compute_checksum(data: bytes) -> str:
	"""
	Calculate the hex SHA-256 digest of raw content.

	Args:
		data: Raw bytes.

	Returns:
		The hex-encoded SHA-256 hash.
	"""
	return hashlib.sha256(data).hexdigest()


def calculate_file_checksum(file_path: str) -> str:
	"""
	Calculate the SHA-256 hash of a file without loading it whole.

	Args:
		file_path: Path to the file.

	Returns:
		The hex-encoded SHA-256 hash.
	"""
	hasher = hashlib.sha256()
	with open(file_path, "rb") as f:
		for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
			hasher.update(chunk)
	return hasher.hexdigest()
