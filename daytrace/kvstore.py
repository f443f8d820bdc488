"""Key-value storage behind a narrow interface.

The daily store and the detector state only need ``get``/``set``/``delete`` and
a prefix scan, so anything offering those four calls can back them. Two
implementations live here:

    - ``InMemoryKeyValueStore`` for tests and throwaway sessions.
    - ``JsonFileKeyValueStore``: a JSON snapshot plus an append-only journal,
      so a crash between writes never loses an acknowledged ``set``.

Values are bytes at the interface. The file store keeps them as UTF-8 text so
the snapshot stays human-readable; non-UTF-8 values are rejected.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """A read or write against the backing storage failed."""


class KeyValueStore(Protocol):
    def get(self, key: str) -> bytes | None: ...

    def set(self, key: str, value: bytes) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys_with_prefix(self, prefix: str) -> list[str]: ...


class InMemoryKeyValueStore:
    """Dict-backed store. Nothing survives the process."""

    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}

    def get(self, key: str) -> bytes | None:
        return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        self._data[key] = bytes(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys_with_prefix(self, prefix: str) -> list[str]:
        return sorted(k for k in self._data if k.startswith(prefix))


class JsonFileKeyValueStore:
    """A tiny JSON store persisted on disk (key -> UTF-8 text).

    Args:
        path: Snapshot file path.
        compact_after: Fold the journal into a fresh snapshot once it holds this
            many records, so a long-running writer keeps it bounded.
    """

    def __init__(self, path: str | Path, compact_after: int = 200) -> None:
        if compact_after < 1:
            raise ValueError(f"compact_after 必须为正数：{compact_after}")
        self._path = Path(path)
        # Write-ahead journal for crash-safe incremental persistence.
        # Example: daytrace.json -> daytrace.journal.jsonl
        self._journal_path = self._path.with_name(f"{self._path.stem}.journal.jsonl")
        self._compact_after = compact_after
        self._journal_records = 0
        self._data: dict[str, str] = {}
        self._loaded = False

    @property
    def path(self) -> Path:
        return self._path

    @property
    def journal_path(self) -> Path:
        return self._journal_path

    def load(self) -> None:
        """Load snapshot and replay the journal (no-op if already loaded)."""

        if self._loaded:
            return
        self._data = self._read_snapshot()
        # Replay journal (if any) so that even if the program crashed, we keep the latest writes.
        self._replay_journal()
        self._loaded = True

    def get(self, key: str) -> bytes | None:
        self.load()
        text = self._data.get(key)
        return text.encode("utf-8") if text is not None else None

    def set(self, key: str, value: bytes) -> None:
        self.load()
        try:
            text = bytes(value).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ValueError(f"值必须是 UTF-8 文本：key={key!r}") from exc
        self._append_journal({"k": key, "v": text})
        self._data[key] = text
        self._compact_if_needed()

    def delete(self, key: str) -> None:
        self.load()
        if key not in self._data:
            return
        self._append_journal({"k": key, "d": True})
        del self._data[key]
        self._compact_if_needed()

    def keys_with_prefix(self, prefix: str) -> list[str]:
        self.load()
        return sorted(k for k in self._data if k.startswith(prefix))

    def flush(self) -> None:
        """Persist a full snapshot (atomic-ish) and clear the journal."""

        self.load()
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(self._data, ensure_ascii=False, indent=2), encoding="utf-8")
            tmp.replace(self._path)
        except OSError as exc:
            raise StorageError(f"写入快照失败：{self._path}") from exc
        # After we persisted the full snapshot, it's safe to clear the journal.
        self._clear_journal()
        self._journal_records = 0

    def _compact_if_needed(self) -> None:
        if self._journal_records >= self._compact_after:
            logger.debug("日志达到 %s 条，写入快照", self._journal_records)
            try:
                self.flush()
            except StorageError:
                # the write itself is already in the journal; compaction retries on the next write
                logger.warning("日志压缩失败，稍后重试：%s", self._path, exc_info=True)

    def _backup_broken(self, text: str) -> None:
        backup = self._path.with_suffix(self._path.suffix + ".broken")
        backup.write_text(text, encoding="utf-8")
        logger.warning("快照文件损坏，已备份到 %s", backup)

    def _read_snapshot(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            text = self._path.read_text(encoding="utf-8").strip()
        except OSError as exc:
            raise StorageError(f"读取快照失败：{self._path}") from exc
        if not text:
            return {}
        try:
            raw = json.loads(text)
        except json.JSONDecodeError:
            # Snapshot corrupted: keep a backup and start fresh (journal still replays on top)
            self._backup_broken(text)
            return {}
        if not isinstance(raw, dict):
            self._backup_broken(text)
            return {}
        return {str(k): str(v) for k, v in raw.items()}

    def _append_journal(self, record: dict[str, object]) -> None:
        """Append a single update to the journal for crash-safe persistence."""

        try:
            self._journal_path.parent.mkdir(parents=True, exist_ok=True)
            with self._journal_path.open("a", encoding="utf-8", newline="\n") as f:
                f.write(json.dumps(record, ensure_ascii=False) + "\n")
        except OSError as exc:
            raise StorageError(f"写入日志失败：{self._journal_path}") from exc
        self._journal_records += 1

    def _replay_journal(self) -> None:
        """Replay journal entries into memory (best-effort)."""

        if not self._journal_path.exists():
            return
        try:
            with self._journal_path.open("r", encoding="utf-8") as f:
                for line in f:
                    s = line.strip()
                    if not s:
                        continue
                    self._journal_records += 1
                    try:
                        rec = json.loads(s)
                    except json.JSONDecodeError:
                        # ignore broken tail lines
                        continue
                    if not isinstance(rec, dict):
                        continue
                    k = rec.get("k")
                    if not isinstance(k, str):
                        continue
                    if rec.get("d"):
                        self._data.pop(k, None)
                        continue
                    v = rec.get("v")
                    if isinstance(v, str):
                        self._data[k] = v
        except OSError as exc:
            raise StorageError(f"读取日志失败：{self._journal_path}") from exc

    def _clear_journal(self) -> None:
        """Clear journal file if exists (best-effort)."""

        try:
            if self._journal_path.exists():
                self._journal_path.unlink()
        except OSError:
            logger.warning("无法删除日志文件 %s，下次加载会重放", self._journal_path)
