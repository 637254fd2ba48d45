"""BLE transport built on Bleak: advertisement stream and GATT link."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from bleak import BleakClient, BleakScanner
from bleak.backends.device import BLEDevice
from bleak.backends.scanner import AdvertisementData
from bleak.exc import BleakError

from ..exceptions import DisconnectedError, TransportError
from ..models import Advertisement

logger = logging.getLogger(__name__)

# Errors Bleak raises for radio or GATT failures
TRANSPORT_ERRORS = (BleakError, asyncio.TimeoutError, OSError)


def raw_manufacturer_data(advertisement_data: AdvertisementData) -> bytes:
    """Rebuild the raw manufacturer data field from Bleak's parsed dict.

    Bleak splits off the company identifier; the pairing flag offset is
    defined against the raw field, so put it back in front.
    """
    for company_id, payload in advertisement_data.manufacturer_data.items():
        return company_id.to_bytes(2, "little") + bytes(payload)
    return b""


class AdvertisementStream:
    """Async iterator over advertisements, scanning while the context is open."""

    # Timeout for stop() operation - don't let it hang forever
    STOP_TIMEOUT_SECONDS = 10

    def __init__(self, devices: dict[str, BLEDevice]) -> None:
        self._devices = devices
        self._queue: asyncio.Queue[Advertisement] = asyncio.Queue()
        self._scanner: Optional[BleakScanner] = None

    def _detection_callback(
        self,
        device: BLEDevice,
        advertisement_data: AdvertisementData,
    ) -> None:
        address = device.address.lower()
        self._devices[address] = device
        self._queue.put_nowait(
            Advertisement(
                address=address,
                local_name=advertisement_data.local_name or device.name or "",
                manufacturer_data=raw_manufacturer_data(advertisement_data),
            )
        )

    async def __aenter__(self) -> AdvertisementStream:
        logger.debug("Starting BLE scanner")
        self._scanner = BleakScanner(detection_callback=self._detection_callback)
        try:
            await self._scanner.start()
        except TRANSPORT_ERRORS as e:
            self._scanner = None
            raise TransportError(f"Could not start scanning: {e}") from e
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        if self._scanner is None:
            return

        try:
            await asyncio.wait_for(self._scanner.stop(), timeout=self.STOP_TIMEOUT_SECONDS)
            logger.debug("BLE scanner stopped")
        except asyncio.TimeoutError:
            logger.warning("Scanner stop() timed out after %ds", self.STOP_TIMEOUT_SECONDS)
        except BleakError as e:
            logger.debug("Error stopping scanner: %s", e)
        finally:
            self._scanner = None

    def __aiter__(self) -> AdvertisementStream:
        return self

    async def __anext__(self) -> Advertisement:
        return await self._queue.get()


class BleakLink:
    """GATT connection to a single thermostat."""

    def __init__(self, target: BLEDevice | str, address: str, timeout: float) -> None:
        self.address = address
        self.disconnected = asyncio.Event()
        self._client = BleakClient(
            target,
            disconnected_callback=self._on_disconnected,
            timeout=timeout,
        )

    def _on_disconnected(self, client: BleakClient) -> None:
        logger.debug("Device %s disconnected", self.address)
        self.disconnected.set()

    async def connect(self) -> None:
        try:
            await self._client.connect()
        except TRANSPORT_ERRORS as e:
            raise TransportError(f"Could not connect to {self.address}: {e}") from e

    async def discover(self) -> set[str]:
        """Return the UUIDs of all characteristics the device exposes.

        Bleak resolves services while connecting, so this only walks the
        cached service collection.
        """
        try:
            services = self._client.services
        except BleakError as e:
            raise TransportError(f"Service discovery failed for {self.address}: {e}") from e

        uuids = set()
        for service in services:
            for characteristic in service.characteristics:
                uuids.add(characteristic.uuid.lower())
        logger.debug("Characteristics of %s: %s", self.address, sorted(uuids))
        return uuids

    async def read(self, uuid: str) -> bytes:
        try:
            return bytes(await self._client.read_gatt_char(uuid))
        except TRANSPORT_ERRORS as e:
            if not self._client.is_connected:
                raise DisconnectedError(f"{self.address} disconnected during read") from e
            raise TransportError(f"Reading {uuid} failed: {e}") from e

    async def write(self, uuid: str, data: bytes, response: bool = False) -> None:
        try:
            await self._client.write_gatt_char(uuid, data, response=response)
        except TRANSPORT_ERRORS as e:
            if not self._client.is_connected:
                raise DisconnectedError(f"{self.address} disconnected during write") from e
            raise TransportError(f"Writing {uuid} failed: {e}") from e

    async def disconnect(self) -> None:
        try:
            await self._client.disconnect()
        except TRANSPORT_ERRORS as e:
            raise TransportError(f"Disconnect from {self.address} failed: {e}") from e


class BleakTransport:
    """Entry point to the platform BLE stack."""

    def __init__(self) -> None:
        # Devices seen while scanning, reused when connecting
        self._devices: dict[str, BLEDevice] = {}

    def scan(self) -> AdvertisementStream:
        return AdvertisementStream(self._devices)

    def link(self, address: str, timeout: float) -> BleakLink:
        target: BLEDevice | str = self._devices.get(address, address)
        return BleakLink(target, address, timeout)
