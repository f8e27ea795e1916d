"""Exact-duplicate and change detection over content hashes."""

from __future__ import annotations

import hashlib
import logging
import threading
from typing import Callable, Iterable, Mapping

from .types import DedupOutcome, DedupResult


LOGGER = logging.getLogger(__name__)


def content_hash(content: bytes | str) -> str:
    """SHA-256 hex digest of raw content."""

    data = content.encode("utf-8") if isinstance(content, str) else content
    return hashlib.sha256(data).hexdigest()


class ChangeDetector:
    """Per-session URL -> content-hash map.

    `check_and_record` compares and records under one lock so two workers
    can never both treat the same content as new. Only exact hash equality
    counts as a duplicate.
    """

    def __init__(
        self,
        *,
        previous_hashes: Mapping[str, str] | None = None,
        exists_by_hash: Callable[[str], bool] | None = None,
    ) -> None:
        self._lock = threading.Lock()
        self._visited: dict[str, str] = dict(previous_hashes or {})
        self._exists_by_hash = exists_by_hash

    def check_and_record(self, url: str, content: bytes | str) -> DedupResult:
        """Hash `content`, classify it against the prior hash for `url`, record it."""

        digest = content_hash(content)
        with self._lock:
            previous = self._visited.get(url)
            self._visited[url] = digest

            if previous is None:
                if self._exists_by_hash is not None and self._known_elsewhere(digest):
                    return DedupResult(DedupOutcome.DUPLICATE, digest)
                return DedupResult(DedupOutcome.NEW, digest)
            if previous == digest:
                return DedupResult(DedupOutcome.DUPLICATE, digest, previous_hash=previous)
            return DedupResult(DedupOutcome.CHANGED, digest, previous_hash=previous)

    def _known_elsewhere(self, digest: str) -> bool:
        try:
            return bool(self._exists_by_hash(digest))
        except Exception as exc:
            LOGGER.warning("Cross-session hash lookup failed, treating as new: %s", exc)
            return False

    def restore(self, url: str, previous_hash: str | None) -> None:
        """Undo a `check_and_record` for a target whose pass was abandoned."""

        with self._lock:
            if previous_hash is None:
                self._visited.pop(url, None)
            else:
                self._visited[url] = previous_hash

    def hash_for(self, url: str) -> str | None:
        with self._lock:
            return self._visited.get(url)

    def snapshot(self) -> dict[str, str]:
        """Copy of the visited map for checkpointing."""

        with self._lock:
            return dict(self._visited)

    def load(self, entries: Iterable[tuple[str, str]]) -> int:
        """Merge persisted `(url, hash)` pairs; returns how many were loaded."""

        count = 0
        with self._lock:
            for url, digest in entries:
                self._visited[url] = digest
                count += 1
        return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._visited)


__all__ = ["ChangeDetector", "content_hash"]
