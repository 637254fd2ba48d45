"""Fakes for the BLE transport seam."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Optional

import pytest

from enstoreader.const import DEVICE_NAME_UUID, RESET_CODE_UUID, STATS_UUID
from enstoreader.models import Advertisement, Mode, SessionConfig

ADDRESS = "90:fd:9f:12:34:56"

PAIRING_MANUFACTURER_DATA = b"\x06\x28ECO16BT;1;0;0;"
NORMAL_MANUFACTURER_DATA = b"\x06\x28ECO16BT;0;0;0;"

NAME_RAW = bytes([0x09]) + b"Livingroom" + b"\x00" * 4
RESET_CODE_RAW = bytes([0x11, 0x22, 0x33, 0x44, 0x00, 0x00])
STATS_0x80 = bytes([0x80, 0xC3, 0x00, 0x00, 0xCD, 0x00, 0x00, 0x00, 0x01, 0x00])
STATS_OTHER = bytes([0x01, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00])


def thermostat_advertisement(
    address: str = ADDRESS,
    pairing: bool = False,
    name: str = "ECO16BT 123456",
) -> Advertisement:
    data = PAIRING_MANUFACTURER_DATA if pairing else NORMAL_MANUFACTURER_DATA
    return Advertisement(address=address, local_name=name, manufacturer_data=data)


class FakeStream:
    def __init__(self, advertisements: list[Advertisement], endless: bool = False) -> None:
        self._advertisements = list(advertisements)
        self._endless = endless
        self.open = False
        self.closed = False

    async def __aenter__(self) -> FakeStream:
        self.open = True
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.open = False
        self.closed = True

    def __aiter__(self) -> FakeStream:
        return self

    async def __anext__(self) -> Advertisement:
        if not self._advertisements:
            if self._endless:
                await asyncio.Event().wait()
            raise StopAsyncIteration
        return self._advertisements.pop(0)


class FakeLink:
    def __init__(
        self,
        address: str,
        stats: Optional[list[bytes]] = None,
        characteristics: Optional[set[str]] = None,
        drop_on_stats_read: Optional[int] = None,
    ) -> None:
        self.address = address
        self.disconnected = asyncio.Event()
        self.connected = False
        self.disconnect_called = False
        self.reads: list[str] = []
        self.writes: list[tuple[str, bytes, bool]] = []
        self._stats = list(stats or [STATS_0x80])
        self._characteristics = (
            characteristics
            if characteristics is not None
            else {DEVICE_NAME_UUID, RESET_CODE_UUID, STATS_UUID}
        )
        self._drop_on_stats_read = drop_on_stats_read
        self._stats_reads = 0
        self.scan_was_open_on_connect: Optional[bool] = None

    async def connect(self) -> None:
        self.connected = True

    async def discover(self) -> set[str]:
        return set(self._characteristics)

    async def read(self, uuid: str) -> bytes:
        self.reads.append(uuid)
        if uuid == DEVICE_NAME_UUID:
            return NAME_RAW
        if uuid == RESET_CODE_UUID:
            return RESET_CODE_RAW
        if uuid == STATS_UUID:
            self._stats_reads += 1
            if self._drop_on_stats_read == self._stats_reads:
                # Device vanishes; the read itself never completes
                self.disconnected.set()
                await asyncio.Event().wait()
            if len(self._stats) > 1:
                return self._stats.pop(0)
            return self._stats[0]
        raise AssertionError(f"unexpected read of {uuid}")

    async def write(self, uuid: str, data: bytes, response: bool = False) -> None:
        self.writes.append((uuid, bytes(data), response))

    async def disconnect(self) -> None:
        self.disconnect_called = True
        self.disconnected.set()

    @property
    def stats_reads(self) -> int:
        return self._stats_reads


class FakeTransport:
    def __init__(
        self,
        advertisements: list[Advertisement],
        link: Optional[FakeLink] = None,
        endless: bool = False,
    ) -> None:
        self.stream = FakeStream(advertisements, endless)
        self.link_obj = link or FakeLink(ADDRESS)
        self.linked_address: Optional[str] = None

    def scan(self) -> FakeStream:
        return self.stream

    def link(self, address: str, timeout: float) -> FakeLink:
        self.linked_address = address
        self.link_obj.scan_was_open_on_connect = self.stream.open
        return self.link_obj


@pytest.fixture
def make_config(tmp_path: Path):
    def _make(**overrides) -> SessionConfig:
        values = {
            "mode": Mode.READ,
            "target_address": ADDRESS,
            "pairing_dir": tmp_path,
            "poll_interval": 0.01,
        }
        values.update(overrides)
        return SessionConfig(**values)

    return _make
