# (c) Copyright Datacraft, 2026
from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator


def utcnow() -> datetime:
	return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
	"""Timezone-aware UTC datetimes on every backend, SQLite included."""
	impl = DateTime(timezone=True)
	cache_ok = True

	def process_bind_param(self, value, dialect):
		if value is not None and value.tzinfo is not None:
			value = value.astimezone(timezone.utc)
		return value

	def process_result_value(self, value, dialect):
		if value is not None and value.tzinfo is None:
			value = value.replace(tzinfo=timezone.utc)
		return value


class Base(DeclarativeBase):
	type_annotation_map = {
		datetime: UTCDateTime(),
	}
