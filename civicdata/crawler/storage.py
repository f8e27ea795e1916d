"""Filesystem-backed persistence for crawl records and session artifacts.

Storage owns the on-disk layout. Other modules should use this API instead of
building paths manually.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Mapping, Protocol

from .config import CrawlConfig
from .constants import JSON_INDENT
from .types import ErrorRecord, JSONDict, PersistRecord


LOGGER = logging.getLogger(__name__)


class Persistence(Protocol):
    """Outbound storage contract the crawl pipeline depends on."""

    def persist(self, record: PersistRecord) -> str:
        """Store one record and return its id; raise on failure."""
        ...

    def exists_by_hash(self, content_hash: str) -> bool:
        ...


def record_id(record: PersistRecord) -> str:
    payload = f"{record.url}\n{record.content_hash}".encode("utf-8")
    return hashlib.sha1(payload).hexdigest()


class JsonlStorage:
    """Persist crawl outputs under a single `output_dir` root."""

    def __init__(self, output_dir: str | Path, *, load_existing: bool = True) -> None:
        self.output_dir = Path(output_dir)

        self.records_dir = self.output_dir / "records"
        self.manifests_dir = self.output_dir / "manifests"
        self.checkpoints_dir = self.output_dir / "checkpoints"
        self.logs_dir = self.output_dir / "logs"

        self.records_path = self.records_dir / "records.jsonl"
        self.errors_path = self.records_dir / "errors.jsonl"
        self.visited_hashes_path = self.manifests_dir / "visited_hashes.json"
        self.crawl_config_path = self.manifests_dir / "crawl_config.json"
        self.report_path = self.manifests_dir / "crawl_report.json"

        self._jsonl_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._known_hashes: set[str] = set()
        self._record_count = 0

        self._ensure_layout()
        if load_existing:
            self._load_known_hashes()

    @property
    def paths(self) -> JSONDict:
        """Return important output paths for logging/CLI status messages."""

        return {
            "output_dir": str(self.output_dir),
            "records": str(self.records_path),
            "errors": str(self.errors_path),
            "visited_hashes": str(self.visited_hashes_path),
            "crawl_config": str(self.crawl_config_path),
            "report": str(self.report_path),
            "checkpoints_dir": str(self.checkpoints_dir),
            "log_dir": str(self.logs_dir),
        }

    def _ensure_layout(self) -> None:
        for directory in (self.records_dir, self.manifests_dir, self.checkpoints_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def _load_known_hashes(self) -> None:
        if not self.records_path.exists():
            return
        with self.records_path.open("r", encoding="utf-8") as handle:
            for line in handle:
                line = line.strip()
                if not line:
                    continue
                try:
                    payload = json.loads(line)
                except json.JSONDecodeError:
                    continue
                digest = payload.get("content_hash")
                if isinstance(digest, str) and digest:
                    self._known_hashes.add(digest)
                self._record_count += 1

    # -- persistence contract ----------------------------------------------------

    def persist(self, record: PersistRecord) -> str:
        """Append one record to `records/records.jsonl` and return its id."""

        rid = record_id(record)
        payload = record.to_json()
        payload["id"] = rid
        self._append_jsonl(self.records_path, payload)
        with self._state_lock:
            self._known_hashes.add(record.content_hash)
            self._record_count += 1
        return rid

    def exists_by_hash(self, content_hash: str) -> bool:
        with self._state_lock:
            return content_hash in self._known_hashes

    def record_count(self) -> int:
        with self._state_lock:
            return self._record_count

    # -- session artifacts -------------------------------------------------------

    def save_error(self, record: ErrorRecord) -> None:
        """Append error record to `records/errors.jsonl`."""

        self._append_jsonl(self.errors_path, record.to_json())

    def save_crawl_config(self, config: CrawlConfig | Mapping[str, Any]) -> None:
        payload = config.to_dict() if isinstance(config, CrawlConfig) else dict(config)
        self._atomic_write_json(self.crawl_config_path, payload)

    def save_checkpoint(self, payload: Mapping[str, Any], *, label: str) -> Path:
        """Write `checkpoints/checkpoint-<label>.json` and refresh `latest.json`."""

        path = self.checkpoints_dir / f"checkpoint-{label}.json"
        self._atomic_write_json(path, payload)
        self._atomic_write_json(self.checkpoints_dir / "latest.json", payload)
        return path

    def save_report(self, report: Mapping[str, Any]) -> Path:
        self._atomic_write_json(self.report_path, report)
        return self.report_path

    def save_visited_hashes(self, visited: Mapping[str, str]) -> None:
        self._atomic_write_json(self.visited_hashes_path, dict(visited))

    def load_visited_hashes(self) -> dict[str, str]:
        """URL -> content hash map from a previous session, empty when absent."""

        if not self.visited_hashes_path.exists():
            return {}
        try:
            payload = json.loads(self.visited_hashes_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            LOGGER.warning("Ignoring unreadable %s: %s", self.visited_hashes_path, exc)
            return {}
        if not isinstance(payload, dict):
            return {}
        return {str(url): str(digest) for url, digest in payload.items() if isinstance(digest, str)}

    # -- file helpers ------------------------------------------------------------

    def _append_jsonl(self, path: Path, payload: Mapping[str, Any]) -> None:
        line = json.dumps(payload, ensure_ascii=False, sort_keys=True)
        with self._jsonl_lock:
            with path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")

    @staticmethod
    def _atomic_write_json(path: Path, payload: Mapping[str, Any]) -> None:
        content = json.dumps(payload, ensure_ascii=False, indent=JSON_INDENT, sort_keys=True) + "\n"
        tmp_fd, tmp_path = tempfile.mkstemp(
            dir=str(path.parent),
            prefix=path.name + ".",
            suffix=".tmp",
        )
        try:
            with os.fdopen(tmp_fd, "w", encoding="utf-8") as handle:
                handle.write(content)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, path)
        except Exception:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise


__all__ = ["JsonlStorage", "Persistence", "record_id"]
