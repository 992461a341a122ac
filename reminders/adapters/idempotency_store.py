"""Idempotency stores: the "already notified" key sets.

Mental model refresher:
- A key is written only after a send succeeded, so a key present means
  "this exact notification already went out".
- `JsonFileIdempotencyStore` persists `{key: sent_at_epoch_ms}` and prunes
  entries older than the retention horizon every time it loads.
- One process owns one store file. Two dispatchers sharing a file can race
  between `contains` and `record` and double-send.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
import time
from pathlib import Path
from typing import Callable

from ..errors import PersistenceError

logger = logging.getLogger(__name__)

DEFAULT_RETENTION_DAYS = 7
MS_PER_DAY = 24 * 60 * 60 * 1000

Clock = Callable[[], float]


class InMemoryIdempotencyStore:
    """Process-local store for tests and demos. Nothing survives a restart."""

    def __init__(self, clock: Clock = time.time) -> None:
        self._clock = clock
        self._records: dict[str, int] = {}

    def load(self) -> set[str]:
        return set(self._records)

    def contains(self, key: str) -> bool:
        return key in self._records

    def record(self, key: str) -> None:
        self._records[key] = _now_ms(self._clock)

    def snapshot(self) -> dict[str, int]:
        return dict(self._records)


class JsonFileIdempotencyStore:
    """Durable store backed by one JSON file.

    `strict=False` (the default) logs a failed write and keeps the key in
    memory, so the running process still suppresses the duplicate; only a
    restart inside the same window could resend. `strict=True` raises
    `PersistenceError` instead.
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        *,
        retention_days: float = DEFAULT_RETENTION_DAYS,
        strict: bool = False,
        clock: Clock = time.time,
    ) -> None:
        self.path = Path(path)
        self.retention_days = retention_days
        self.strict = strict
        self._clock = clock
        self._records: dict[str, int] = {}
        self._lock = threading.Lock()

    def load(self) -> set[str]:
        """Read, prune, write back, and return the surviving keys."""
        with self._lock:
            raw = self._read()
            if raw is None:
                self._records = {}
                return set()

            cutoff = _now_ms(self._clock) - int(self.retention_days * MS_PER_DAY)
            kept = {key: sent_at for key, sent_at in raw.items() if sent_at > cutoff}
            self._records = kept
            pruned = len(raw) - len(kept)
            try:
                self._write(kept)
            except OSError as exc:
                logger.warning("[STORE WRITE FAILED] path=%s error=%s", self.path, exc)

        logger.info(
            "[STORE LOADED] path=%s keys=%d pruned=%d",
            self.path,
            len(kept),
            pruned,
        )
        return set(kept)

    def contains(self, key: str) -> bool:
        with self._lock:
            return key in self._records

    def record(self, key: str) -> None:
        with self._lock:
            self._records[key] = _now_ms(self._clock)
            try:
                self._write(self._records)
            except OSError as exc:
                if self.strict:
                    raise PersistenceError(
                        f"Could not persist dedup key {key!r} to {self.path}: {exc}"
                    ) from exc
                logger.warning(
                    "[STORE WRITE FAILED] path=%s key=%s error=%s",
                    self.path,
                    key,
                    exc,
                )

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return dict(self._records)

    def _read(self) -> dict[str, int] | None:
        if not self.path.exists():
            return None
        try:
            parsed = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("[STORE LOAD FAILED] path=%s error=%s", self.path, exc)
            return None
        if not isinstance(parsed, dict):
            logger.warning("[STORE LOAD FAILED] path=%s error=not a JSON object", self.path)
            return None

        records: dict[str, int] = {}
        for key, sent_at in parsed.items():
            if isinstance(sent_at, bool) or not isinstance(sent_at, (int, float)):
                continue
            records[str(key)] = int(sent_at)
        return records

    def _write(self, records: dict[str, int]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as file_handle:
                json.dump(records, file_handle, indent=2, sort_keys=True)
                file_handle.flush()
                os.fsync(file_handle.fileno())
            os.replace(tmp_name, self.path)
        except OSError:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise


def _now_ms(clock: Clock) -> int:
    return int(clock() * 1000)
