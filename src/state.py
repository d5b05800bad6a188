"""
Handle Store - Persistence of reconciled identifiers.

The orchestrator keeps exactly one identifier per resource address, along
with the attributes last applied, so later runs can read, update or delete
the object. This module defines the store interface and a JSON file backend;
db.py provides the PostgreSQL backend.
"""

import asyncio
import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class ResourceRecord:
    """A persisted handle for one reconciled object."""

    address: str
    kind: str
    identifier: str
    attributes: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResourceRecord":
        return cls(
            address=data["address"],
            kind=data["kind"],
            identifier=data["identifier"],
            attributes=data.get("attributes") or {},
        )


class HandleStore(ABC):
    """Abstract persistence for resource records, keyed by address."""

    async def connect(self) -> None:
        """Open any underlying connection."""

    async def close(self) -> None:
        """Release any underlying connection."""

    @abstractmethod
    async def get(self, address: str) -> Optional[ResourceRecord]:
        pass

    @abstractmethod
    async def put(self, record: ResourceRecord) -> None:
        pass

    @abstractmethod
    async def remove(self, address: str) -> bool:
        """Remove a record; returns True if one existed."""
        pass

    @abstractmethod
    async def list(self) -> List[ResourceRecord]:
        pass


class FileHandleStore(HandleStore):
    """
    Stores records in a single JSON document.

    Writes go to a temporary file that replaces the original, so a crash
    never leaves a half-written state file.
    """

    VERSION = 1

    def __init__(self, path: str):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _load(self) -> Dict[str, ResourceRecord]:
        if not self.path.exists():
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        version = data.get("version")
        if version != self.VERSION:
            raise ValueError(
                f"Unsupported state file version {version!r} in {self.path}"
            )
        return {
            entry["address"]: ResourceRecord.from_dict(entry)
            for entry in data.get("resources", [])
        }

    def _save(self, records: Dict[str, ResourceRecord]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        document = {
            "version": self.VERSION,
            "resources": [records[a].to_dict() for a in sorted(records)],
        }
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except BaseException:
            os.unlink(tmp_path)
            raise

    async def get(self, address: str) -> Optional[ResourceRecord]:
        async with self._lock:
            return self._load().get(address)

    async def put(self, record: ResourceRecord) -> None:
        async with self._lock:
            records = self._load()
            records[record.address] = record
            self._save(records)
        logger.debug(f"Stored handle for {record.address}: {record.identifier}")

    async def remove(self, address: str) -> bool:
        async with self._lock:
            records = self._load()
            if address not in records:
                return False
            del records[address]
            self._save(records)
        logger.debug(f"Removed handle for {address}")
        return True

    async def list(self) -> List[ResourceRecord]:
        async with self._lock:
            records = self._load()
        return [records[a] for a in sorted(records)]
