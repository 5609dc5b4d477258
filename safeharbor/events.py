"""
SafeHarbor Events

Every successful mutation returns one event and hands it to the configured
EventSink. Delivery is fire-and-forget: a sink failure is logged by the caller
and never undoes or fails the mutation that produced the event.
"""

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .pubkey import Pubkey


def _ts(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


def _key(value: Optional[Pubkey]) -> Optional[str]:
    return str(value) if value is not None else None


@dataclass
class RegistryInitialized:
    registry: Pubkey
    owner: Pubkey
    networks: List[str]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    event_type = "RegistryInitialized"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type,
            "registry": str(self.registry),
            "owner": str(self.owner),
            "networks": list(self.networks),
            "timestamp": _ts(self.timestamp),
        }


@dataclass
class RecognizedNetworksChanged:
    """
    Emitted by both add and remove.

    networks: ids named in the request
    recognized: True for add, False for remove
    snapshot: full recognized set after the change
    """
    registry: Pubkey
    owner: Pubkey
    networks: List[str]
    recognized: bool
    snapshot: List[str]
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    event_type = "RecognizedNetworksChanged"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type,
            "registry": str(self.registry),
            "owner": str(self.owner),
            "networks": list(self.networks),
            "recognized": self.recognized,
            "snapshot": list(self.snapshot),
            "timestamp": _ts(self.timestamp),
        }


@dataclass
class AgreementUpdated:
    agreement: Pubkey
    owner: Pubkey
    update_type: str
    data_hash: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    event_type = "AgreementUpdated"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type,
            "agreement": str(self.agreement),
            "owner": str(self.owner),
            "update_type": self.update_type,
            "data_hash": self.data_hash,
            "timestamp": _ts(self.timestamp),
        }


@dataclass
class SafeHarborAdopted:
    adopter: Pubkey
    adoption: Pubkey
    network_id: str
    old_agreement: Optional[Pubkey]
    new_agreement: Pubkey
    asset_recovery_address: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    event_type = "SafeHarborAdopted"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type,
            "adopter": str(self.adopter),
            "adoption": str(self.adoption),
            "network_id": self.network_id,
            "old_agreement": _key(self.old_agreement),
            "new_agreement": str(self.new_agreement),
            "asset_recovery_address": self.asset_recovery_address,
            "timestamp": _ts(self.timestamp),
        }


@dataclass
class AdoptionUpdated:
    adopter: Pubkey
    adoption: Pubkey
    network_id: str
    update_type: str
    old_agreement: Pubkey
    new_agreement: Pubkey
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    event_type = "AdoptionUpdated"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event_type": self.event_type,
            "adopter": str(self.adopter),
            "adoption": str(self.adoption),
            "network_id": self.network_id,
            "update_type": self.update_type,
            "old_agreement": str(self.old_agreement),
            "new_agreement": str(self.new_agreement),
            "timestamp": _ts(self.timestamp),
        }


class EventSink(ABC):
    """Where emitted events go."""

    @abstractmethod
    def emit(self, event) -> None:
        pass

    @abstractmethod
    def query(self, event_type: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
        """Most recent events first."""
        pass


class InMemoryEventLog(EventSink):
    """
    In-memory event log for development/testing.

    Not persistent across restarts.
    """

    def __init__(self):
        self._events: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    def emit(self, event) -> None:
        with self._lock:
            self._events.append(event.to_dict())

    def query(self, event_type: Optional[str] = None, limit: int = 100) -> List[Dict[str, Any]]:
        with self._lock:
            results = [e for e in self._events if event_type is None or e["event_type"] == event_type]
        return list(reversed(results))[:limit]

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
