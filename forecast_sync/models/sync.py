"""Sync pipeline state, failure taxonomy and results."""

from dataclasses import dataclass
from enum import StrEnum


class SyncState(StrEnum):
    IDLE = "IDLE"
    FETCHING = "FETCHING"
    PARSING = "PARSING"
    STORING = "STORING"


class SyncStatus(StrEnum):
    SYNCED = "SYNCED"
    SKIPPED = "SKIPPED"  # cache already covers the horizon
    COALESCED = "COALESCED"  # another sync was in flight
    FAILED = "FAILED"


class ParseFailure(StrEnum):
    MALFORMED = "MALFORMED"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    MISSING_FIELD = "MISSING_FIELD"


class NetworkFailure(StrEnum):
    TIMEOUT = "TIMEOUT"
    UNREACHABLE = "UNREACHABLE"
    OTHER = "OTHER"


class SyncFailureKind(StrEnum):
    NETWORK = "NETWORK"
    PARSE = "PARSE"
    STORAGE = "STORAGE"


@dataclass(frozen=True)
class SyncFailure:
    kind: SyncFailureKind
    detail: str
    network: NetworkFailure | None = None
    parse: ParseFailure | None = None
    field_name: str | None = None

    def __str__(self) -> str:
        reason = self.network or self.parse
        label = f"{self.kind}:{reason}" if reason else str(self.kind)
        if self.field_name:
            label = f"{label}({self.field_name})"
        return f"{label} {self.detail}".strip()


@dataclass(frozen=True)
class SyncResult:
    status: SyncStatus
    entries_written: int = 0
    evicted: int = 0
    failure: SyncFailure | None = None
    duration_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status != SyncStatus.FAILED
