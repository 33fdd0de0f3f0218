"""
Pending-payment ledger.

Client-held record of the one checkout in flight: {reference, provider, planId}.
Written before the redirect to the gateway and read back on return, so a
callback URL with missing parameters can still be verified.

Single slot: recording a new checkout replaces the previous one.
"""
import json
import logging
import os
import tempfile
from dataclasses import dataclass
from typing import Any, Dict, Iterator, MutableMapping, Optional

logger = logging.getLogger("payflow")

LEDGER_KEY = "pending_payment"


@dataclass(frozen=True)
class PendingPayment:
    reference: str
    provider: str
    plan_id: str

    def to_dict(self) -> Dict[str, str]:
        return {"reference": self.reference, "provider": self.provider, "planId": self.plan_id}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PendingPayment":
        return cls(
            reference=str(data["reference"]),
            provider=str(data["provider"]),
            plan_id=str(data.get("planId") or data.get("plan_id") or ""),
        )


class JsonFileStorage(MutableMapping):
    """String key-value storage persisted as one JSON object on disk."""

    def __init__(self, path: str):
        self.path = path

    def _load(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"[ledger] unreadable storage file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, str]) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".ledger-")
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f)
        os.replace(tmp_path, self.path)

    def __getitem__(self, key: str) -> str:
        return self._load()[key]

    def __setitem__(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def __delitem__(self, key: str) -> None:
        data = self._load()
        del data[key]
        self._save(data)

    def __iter__(self) -> Iterator[str]:
        return iter(self._load())

    def __len__(self) -> int:
        return len(self._load())


class PendingPaymentLedger:
    """Single-slot ledger over any string key-value storage."""

    def __init__(self, storage: Optional[MutableMapping] = None, key: str = LEDGER_KEY):
        self.storage = storage if storage is not None else {}
        self.key = key

    def record(self, entry: PendingPayment) -> None:
        """Overwrite the slot with a new checkout."""
        self.storage[self.key] = json.dumps(entry.to_dict())

    def consume(self) -> Optional[PendingPayment]:
        """
        Read the slot without clearing it.

        Repeated calls return the same entry until clear(). A corrupt value
        reads as None.
        """
        raw = self.storage.get(self.key)
        if raw is None:
            return None
        try:
            data = json.loads(raw)
            return PendingPayment.from_dict(data)
        except (ValueError, TypeError, KeyError) as e:
            logger.warning(f"[ledger] ignoring corrupt pending payment: {e}")
            return None

    def clear(self) -> None:
        self.storage.pop(self.key, None)
