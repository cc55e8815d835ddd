"""Response cache keyed by document identity and request parameters."""

from __future__ import annotations

import hashlib
import json
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from app.core.logging import get_logger
from app.modules.questions.models import GenerationResult, Quantities

logger = get_logger(__name__)


@dataclass(frozen=True)
class DocumentIdentity:
    name: str
    size: int
    modified_at: Optional[float] = None
    # Content digest, for inputs that have no meaningful modification time
    digest: Optional[str] = None

    @classmethod
    def for_text(cls, name: str, content: str) -> "DocumentIdentity":
        data = content.encode("utf-8")
        return cls(name=name, size=len(data), digest=hashlib.md5(data).hexdigest())

    @classmethod
    def for_bytes(
        cls, name: str, data: bytes, modified_at: Optional[float] = None
    ) -> "DocumentIdentity":
        return cls(
            name=name,
            size=len(data),
            modified_at=modified_at,
            digest=hashlib.md5(data).hexdigest(),
        )


def request_fingerprint(
    identity: DocumentIdentity,
    quantities: Quantities,
    custom_instruction: Optional[str] = None,
) -> str:
    payload = {
        "name": identity.name,
        "size": identity.size,
        "modified": identity.modified_at,
        "digest": identity.digest,
        "quantities": quantities.model_dump(by_alias=True),
        "instruction": (custom_instruction or "").strip(),
    }
    raw = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.md5(raw.encode("utf-8")).hexdigest()


class ResponseCache(Protocol):
    def get(self, fingerprint: str) -> Optional[GenerationResult]: ...

    def put(
        self, fingerprint: str, result: GenerationResult, ttl: Optional[float] = None
    ) -> None: ...


@dataclass
class _Entry:
    result: GenerationResult
    expires_at: float
    stored_at: float


class InMemoryResponseCache:
    """Process-local TTL cache; the oldest entries are pruned past ``max_entries``.

    Entries are copied on the way in and out so callers cannot alter what
    other requests will read.
    """

    def __init__(
        self,
        ttl_seconds: float = 24 * 60 * 60,
        max_entries: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, _Entry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, fingerprint: str) -> Optional[GenerationResult]:
        entry = self._entries.get(fingerprint)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            del self._entries[fingerprint]
            return None
        return entry.result.model_copy(deep=True)

    def put(
        self, fingerprint: str, result: GenerationResult, ttl: Optional[float] = None
    ) -> None:
        now = self._clock()
        self._entries[fingerprint] = _Entry(
            result=result.model_copy(deep=True),
            expires_at=now + (self.ttl_seconds if ttl is None else ttl),
            stored_at=now,
        )
        self._prune(now)

    def clear(self) -> None:
        self._entries.clear()

    def _prune(self, now: float) -> None:
        expired = [k for k, e in self._entries.items() if e.expires_at <= now]
        for key in expired:
            del self._entries[key]
        overflow = len(self._entries) - self.max_entries
        if overflow > 0:
            oldest = sorted(self._entries, key=lambda k: self._entries[k].stored_at)
            for key in oldest[:overflow]:
                del self._entries[key]
            logger.debug("Pruned %d cache entries", overflow)
