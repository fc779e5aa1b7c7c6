"""Lock snapshot model and its on-disk JSON form.

The lock file is a single JSON object whose keys are ``"<name>@<range>"``
and whose values hold ``version``, ``resolvedUrl``, ``integrity`` and
``dependencies``. Keys are written sorted with two-space indentation and a
trailing newline, so loading and re-serializing an unchanged file yields the
same bytes.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Mapping, Optional, Tuple, Union

from common.errors import LockfileError, LockPersistenceFailure
from common.fs import atomic_write_text
from registry.base import VersionRecord

logger = logging.getLogger(__name__)

LockKey = Tuple[str, str]


def format_key(name: str, range_expr: str) -> str:
    return f"{name}@{range_expr}"


def parse_key(key: str) -> LockKey:
    """Split ``"<name>@<range>"``; a leading '@' belongs to a scoped name."""
    idx = key.rfind("@")
    if idx <= 0:
        raise LockfileError(f"Malformed lock key: {key!r}")
    return key[:idx], key[idx + 1:]


@dataclass(frozen=True)
class LockEntry:
    """Locked resolution of one (name, range) requirement."""

    version: str
    resolved: str
    integrity: str
    dependencies: Tuple[Tuple[str, str], ...] = ()

    @classmethod
    def from_record(cls, record: VersionRecord) -> "LockEntry":
        return cls(record.version, record.tarball_url, record.integrity, record.dependencies)

    @classmethod
    def from_dict(cls, key: str, data: Mapping) -> "LockEntry":
        if not isinstance(data, Mapping):
            raise LockfileError(f"Lock entry {key!r} must be an object")
        try:
            version = data["version"]
            resolved = data["resolvedUrl"]
            integrity = data["integrity"]
        except KeyError as exc:
            raise LockfileError(f"Lock entry {key!r} is missing {exc.args[0]!r}") from exc
        deps = data.get("dependencies") or {}
        if not isinstance(deps, Mapping):
            raise LockfileError(f"Lock entry {key!r}: dependencies must be an object")
        return cls(
            str(version),
            str(resolved),
            str(integrity),
            tuple(sorted((str(k), str(v)) for k, v in deps.items())),
        )

    def to_dict(self) -> dict:
        return {
            "version": self.version,
            "resolvedUrl": self.resolved,
            "integrity": self.integrity,
            "dependencies": dict(self.dependencies),
        }

    def to_record(self, name: str) -> VersionRecord:
        return VersionRecord(name, self.version, self.resolved, self.integrity, self.dependencies)


class LockSnapshot:
    """Immutable-by-convention mapping of (name, range) to LockEntry."""

    def __init__(self, entries: Optional[Mapping[LockKey, LockEntry]] = None):
        self._entries: Dict[LockKey, LockEntry] = dict(entries or {})

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[LockKey]:
        return iter(sorted(self._entries))

    def __eq__(self, other: object) -> bool:
        return isinstance(other, LockSnapshot) and self._entries == other._entries

    def get(self, name: str, range_expr: str) -> Optional[LockEntry]:
        return self._entries.get((name, range_expr))

    def items(self) -> List[Tuple[LockKey, LockEntry]]:
        """All entries in key order."""
        return sorted(self._entries.items())

    def for_name(self, name: str) -> List[Tuple[LockKey, LockEntry]]:
        """Entries locked for ``name``, in key order."""
        return [(k, e) for k, e in self.items() if k[0] == name]

    def updated(self, changes: Mapping[LockKey, LockEntry]) -> "LockSnapshot":
        """Return a new snapshot with ``changes`` applied over this one."""
        merged = dict(self._entries)
        merged.update(changes)
        return LockSnapshot(merged)

    def to_dict(self) -> dict:
        return {format_key(*k): e.to_dict() for k, e in self.items()}

    def dumps(self) -> str:
        return json.dumps(self.to_dict(), indent=2, sort_keys=True, ensure_ascii=False) + "\n"

    @classmethod
    def loads(cls, text: str) -> "LockSnapshot":
        """Parse lock file text.

        Raises:
            LockfileError: when the document is not a valid lock file.
        """
        if not text.strip():
            return cls()
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise LockfileError(f"Lock file is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise LockfileError("Lock file must contain a JSON object")
        return cls({parse_key(key): LockEntry.from_dict(key, value) for key, value in data.items()})

    @classmethod
    def read(cls, path: Union[str, Path]) -> "LockSnapshot":
        """Load the snapshot at ``path``; a missing file is an empty snapshot."""
        try:
            text = Path(path).read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info("No lock file at %s; starting from an empty snapshot", path)
            return cls()
        except OSError as exc:
            raise LockfileError(f"Could not read lock file {path}: {exc}") from exc
        snapshot = cls.loads(text)
        logger.debug("Loaded %d lock entries from %s", len(snapshot), path)
        return snapshot

    def write(self, path: Union[str, Path]) -> bool:
        """Persist atomically; returns False when the file already holds these bytes.

        Raises:
            LockPersistenceFailure: if the replace could not complete. The
                previous file is left untouched in that case.
        """
        path = Path(path)
        content = self.dumps()
        try:
            if path.read_text(encoding="utf-8") == content:
                logger.debug("Lock file %s unchanged; not rewriting", path)
                return False
        except FileNotFoundError:
            pass
        except (OSError, UnicodeDecodeError) as exc:
            logger.debug("Could not compare existing lock file %s: %s", path, exc)
        try:
            atomic_write_text(path, content)
        except OSError as exc:
            raise LockPersistenceFailure(f"Could not write lock file {path}: {exc}") from exc
        logger.info("Wrote lock file %s (%d entries)", path, len(self))
        return True
