"""Data models for the thermostat reader."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from .exceptions import UsageError

ADDRESS_PATTERN = re.compile(r"^[0-9a-f]{2}(:[0-9a-f]{2}){5}$")

# Credential (reset code) length in bytes
CREDENTIAL_LENGTH = 4

DEFAULT_POLL_INTERVAL = 0.5
DEFAULT_CONNECT_TIMEOUT = 20.0
DEFAULT_UNREADABLE_WARNING_THRESHOLD = 20


def canonical_address(address: str) -> str:
    """Return the lower-case colon-hex form of a BLE address.

    Raises UsageError if the address is not six colon-separated octets.
    """
    normalized = address.strip().lower()
    if not ADDRESS_PATTERN.match(normalized):
        raise UsageError(f"Invalid device address: {address!r} (expected e.g. 90:fd:9f:12:34:56)")
    return normalized


class Mode(Enum):
    """What the reader was asked to do."""

    SCAN = "scan"
    READ = "read"


class SessionPhase(Enum):
    """Phases of a read session, in the order they are entered."""

    IDLE = "idle"
    SCANNING = "scanning"
    CONNECTING = "connecting"
    DISCOVERING = "discovering"
    AUTHENTICATING = "authenticating"
    POLLING = "polling"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class Advertisement:
    """A single advertisement received while scanning.

    ``manufacturer_data`` is the raw field: 2-byte little-endian company
    identifier followed by the vendor payload.
    """

    address: str
    local_name: str
    manufacturer_data: bytes = b""


@dataclass(frozen=True)
class AdvertisementDecision:
    """Result of classifying an advertisement."""

    accept: bool
    pairing_mode: bool = False


@dataclass(frozen=True)
class StatsFields:
    """Fields decoded from a real-time stats packet."""

    target_temperature: float
    room_temperature: float
    relay_is_on: bool


@dataclass(frozen=True)
class DeviceReading:
    """A single thermostat reading, as emitted to the caller."""

    address: str
    device_name: str
    relay_is_on: bool
    room_temperature: float
    target_temperature: float
    timestamp: datetime

    @classmethod
    def from_stats(
        cls,
        address: str,
        device_name: str,
        stats: StatsFields,
        timestamp: Optional[datetime] = None,
    ) -> DeviceReading:
        return cls(
            address=address,
            device_name=device_name,
            relay_is_on=stats.relay_is_on,
            room_temperature=stats.room_temperature,
            target_temperature=stats.target_temperature,
            timestamp=timestamp or datetime.now(timezone.utc),
        )

    def to_record(self) -> dict[str, Any]:
        """Return the JSON-serializable output record."""
        timestamp = self.timestamp.astimezone(timezone.utc)
        return {
            "address": self.address,
            "deviceName": self.device_name,
            "relayIsOn": self.relay_is_on,
            "roomTemperature": round(self.room_temperature, 1),
            "targetTemperature": round(self.target_temperature, 1),
            "timestamp": timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        }


@dataclass(frozen=True)
class SessionConfig:
    """Immutable settings for one invocation."""

    mode: Mode
    target_address: Optional[str] = None
    keep_reading: bool = False
    verbosity: int = 0
    pairing_dir: Path = Path(".")
    poll_interval: float = DEFAULT_POLL_INTERVAL
    scan_timeout: Optional[float] = None
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    unreadable_warning_threshold: int = DEFAULT_UNREADABLE_WARNING_THRESHOLD

    def __post_init__(self) -> None:
        if self.mode == Mode.READ and not self.target_address:
            raise UsageError("Read mode needs a target device address")
        if self.target_address:
            object.__setattr__(self, "target_address", canonical_address(self.target_address))


@dataclass
class SessionState:
    """Mutable bookkeeping for a single session."""

    phase: SessionPhase = SessionPhase.IDLE
    history: list[SessionPhase] = field(default_factory=lambda: [SessionPhase.IDLE])
    pairing_mode_detected: bool = False
    authenticated: bool = False
    keep_polling: bool = False
    readings_emitted: int = 0
    undecodable_reads: int = 0

    def enter(self, phase: SessionPhase) -> None:
        self.phase = phase
        self.history.append(phase)


@dataclass
class SessionOutcome:
    """How a session ended."""

    success: bool
    phase: SessionPhase
    error: Optional[Exception] = None
    readings_emitted: int = 0

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1
