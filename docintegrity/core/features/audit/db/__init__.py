# (c) Copyright Datacraft, 2026
from .orm import RecoveryEvent

__all__ = ['RecoveryEvent']
