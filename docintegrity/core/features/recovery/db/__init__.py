# (c) Copyright Datacraft, 2026
from .orm import RetryQueueItem

__all__ = ['RetryQueueItem']
