# (c) Copyright Datacraft, 2026
"""S3-compatible object storage backend, used for the primary tier."""
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator

import aioboto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .base import (
	ObjectNotFoundError,
	StorageBackend,
	StorageError,
	UploadResult,
)

if TYPE_CHECKING:
	from types_aiobotocore_s3 import S3Client


NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}


def _is_not_found(exc: Exception) -> bool:
	if isinstance(exc, ClientError):
		code = str(exc.response.get("Error", {}).get("Code", ""))
		return code in NOT_FOUND_CODES
	return False


class S3StorageBackend(StorageBackend):
	"""AWS S3, or any endpoint speaking the S3 API such as MinIO."""

	name = "s3"

	def __init__(
		self,
		bucket: str,
		access_key_id: str | None = None,
		secret_access_key: str | None = None,
		region: str = "us-east-1",
		endpoint_url: str | None = None,
		prefix: str = "",
	):
		"""
		Args:
			bucket: Bucket holding the primary copies
			access_key_id: Access key; the default AWS credential chain is
				used when omitted
			secret_access_key: Secret key
			region: Bucket region
			endpoint_url: Endpoint of an S3-compatible store
			prefix: Key prefix applied to every object
		"""
		if not bucket:
			raise ValueError("S3 backend requires a bucket name")

		self.bucket = bucket
		self.key_prefix = f"{prefix.strip('/')}/" if prefix.strip("/") else ""
		self.endpoint_url = endpoint_url
		self.session = aioboto3.Session(
			aws_access_key_id=access_key_id,
			aws_secret_access_key=secret_access_key,
			region_name=region,
		)
		# Retries are owned by the retry queue, not botocore
		self.client_config = Config(
			signature_version="s3v4",
			retries={"max_attempts": 1, "mode": "standard"},
		)

	def object_key(self, key: str) -> str:
		return self.key_prefix + key.lstrip("/")

	@asynccontextmanager
	async def _client(self, operation: str, key: str) -> AsyncIterator["S3Client"]:
		"""S3 client whose errors surface as storage errors."""
		try:
			async with self.session.client(
				"s3",
				endpoint_url=self.endpoint_url,
				config=self.client_config,
			) as client:
				yield client
		except ObjectNotFoundError:
			raise
		except (ClientError, BotoCoreError, OSError) as e:
			if _is_not_found(e):
				raise ObjectNotFoundError(key) from e
			raise StorageError(f"S3 {operation} of {key} in {self.bucket} failed: {e}", e) from e

	async def put(
		self,
		key: str,
		data: bytes,
		content_type: str | None = None,
		metadata: dict[str, str] | None = None,
	) -> UploadResult:
		extra: dict = {}
		if content_type:
			extra["ContentType"] = content_type
		if metadata:
			extra["Metadata"] = metadata

		async with self._client("put", key) as client:
			response = await client.put_object(
				Bucket=self.bucket,
				Key=self.object_key(key),
				Body=data,
				**extra,
			)
		return UploadResult(
			key=key,
			etag=response.get("ETag", "").strip('"'),
			size=len(data),
			version_id=response.get("VersionId"),
		)

	async def get(self, key: str) -> bytes:
		async with self._client("get", key) as client:
			response = await client.get_object(Bucket=self.bucket, Key=self.object_key(key))
			async with response["Body"] as body:
				return await body.read()

	async def exists(self, key: str) -> bool:
		try:
			async with self._client("head", key) as client:
				await client.head_object(Bucket=self.bucket, Key=self.object_key(key))
		except ObjectNotFoundError:
			return False
		return True

	async def delete(self, key: str) -> None:
		async with self._client("delete", key) as client:
			await client.delete_object(Bucket=self.bucket, Key=self.object_key(key))

	async def ping(self) -> bool:
		try:
			async with self._client("head_bucket", "") as client:
				await client.head_bucket(Bucket=self.bucket)
		except (StorageError, ObjectNotFoundError):
			return False
		return True
