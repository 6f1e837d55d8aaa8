from __future__ import annotations

from datetime import datetime
from typing import Optional


class SentinelError(Exception):
    """Base class for sentinel errors."""


class InsufficientData(SentinelError):
    """Master series missing, empty or too short; raised before any replay step."""


class ClassifierError(SentinelError):
    """Raised by classifier implementations. The replay treats it as a skipped step."""


class StepFailure(SentinelError):
    def __init__(self, index: int, timestamp: Optional[datetime], reason: str):
        super().__init__(f"step {index} at {timestamp}: {reason}")
        self.index = index
        self.timestamp = timestamp
        self.reason = reason


class ConfigError(SentinelError, ValueError):
    pass
