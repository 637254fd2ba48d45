"""Session controller: scan, connect, authenticate and poll one thermostat."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Protocol, TypeVar

from .auth import Authenticator
from .ble.advertisement import classify
from .ble.telemetry import decode_device_name, decode_stats
from .const import DEVICE_NAME_UUID, REQUIRED_CHARACTERISTICS, STATS_UUID
from .exceptions import (
    CredentialMissingError,
    DisconnectedError,
    EnstoReaderError,
    TransportError,
)
from .models import (
    Advertisement,
    AdvertisementDecision,
    DeviceReading,
    SessionConfig,
    SessionOutcome,
    SessionPhase,
    SessionState,
)
from .output import JsonLinesWriter
from .pairing_store import PairingStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRY_HINT = (
    "The first read after the thermostat starts up often fails; "
    "retrying right away usually works."
)


class Link(Protocol):
    """Connected device as provided by the transport."""

    address: str
    disconnected: asyncio.Event

    async def connect(self) -> None: ...

    async def discover(self) -> set[str]: ...

    async def read(self, uuid: str) -> bytes: ...

    async def write(self, uuid: str, data: bytes, response: bool = False) -> None: ...

    async def disconnect(self) -> None: ...


class Transport(Protocol):
    def scan(self) -> Any: ...

    def link(self, address: str, timeout: float) -> Link: ...


class SessionLink:
    """Wraps a link so every operation fails fast when the device drops."""

    def __init__(self, link: Link) -> None:
        self._link = link

    @property
    def address(self) -> str:
        return self._link.address

    async def _guard(self, awaitable: Awaitable[T]) -> T:
        """Await an operation, racing it against the disconnect event."""
        operation = asyncio.ensure_future(awaitable)
        if self._link.disconnected.is_set():
            operation.cancel()
            raise DisconnectedError(f"{self.address} is disconnected")

        lost = asyncio.ensure_future(self._link.disconnected.wait())
        try:
            done, _ = await asyncio.wait({operation, lost}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for future in (operation, lost):
                if not future.done():
                    future.cancel()

        if operation in done:
            return operation.result()
        raise DisconnectedError(f"{self.address} disconnected")

    async def discover(self) -> set[str]:
        return await self._guard(self._link.discover())

    async def read(self, uuid: str) -> bytes:
        return await self._guard(self._link.read(uuid))

    async def write(self, uuid: str, data: bytes, response: bool = False) -> None:
        await self._guard(self._link.write(uuid, data, response=response))

    async def sleep(self, seconds: float) -> None:
        await self._guard(asyncio.sleep(seconds))


class SessionController:
    """Runs one read session against the configured target device.

    Never exits the process and never retries: any failure ends the
    session and is reported through the returned SessionOutcome.
    """

    def __init__(
        self,
        config: SessionConfig,
        transport: Transport,
        on_reading: Optional[Callable[[DeviceReading], None]] = None,
        store: Optional[PairingStore] = None,
    ) -> None:
        self._config = config
        self._transport = transport
        self._on_reading = on_reading or JsonLinesWriter()
        self._store = store or PairingStore(config.pairing_dir)
        self._authenticator = Authenticator(self._store)
        self.state = SessionState(keep_polling=config.keep_reading)

    async def run(self) -> SessionOutcome:
        """Run the session to completion."""
        try:
            await self._run()
        except EnstoReaderError as e:
            phase = self.state.phase
            self._report_failure(e)
            self.state.enter(SessionPhase.TERMINATED)
            return SessionOutcome(
                success=False,
                phase=phase,
                error=e,
                readings_emitted=self.state.readings_emitted,
            )

        phase = self.state.phase
        self.state.enter(SessionPhase.TERMINATED)
        return SessionOutcome(
            success=True,
            phase=phase,
            readings_emitted=self.state.readings_emitted,
        )

    async def _run(self) -> None:
        address = self._config.target_address
        self.state.pairing_mode_detected = await self._find_target(address)

        self.state.enter(SessionPhase.CONNECTING)
        logger.info("Connecting to %s", address)
        link = self._transport.link(address, self._config.connect_timeout)
        await link.connect()

        try:
            await self._session(SessionLink(link))
        finally:
            await self._release(link)

    async def _find_target(self, address: str) -> bool:
        """Scan until the target advertises; return its pairing flag."""
        self.state.enter(SessionPhase.SCANNING)
        logger.info("Searching for %s", address)

        async with self._transport.scan() as stream:
            try:
                decision = await asyncio.wait_for(
                    self._wait_for(stream, address),
                    timeout=self._config.scan_timeout,
                )
            except asyncio.TimeoutError as e:
                raise TransportError(
                    f"Device {address} not seen within {self._config.scan_timeout:.0f}s"
                ) from e

        logger.debug("Found target device, scanning stopped")
        if decision.pairing_mode:
            logger.info("Device %s is in pairing mode", address)
        return decision.pairing_mode

    @staticmethod
    async def _wait_for(stream: Any, address: str) -> AdvertisementDecision:
        async for advertisement in stream:
            decision = classify(advertisement)
            if decision.accept and advertisement.address == address:
                return decision
        raise TransportError("Advertisement stream ended before the device was found")

    async def _session(self, link: SessionLink) -> None:
        self.state.enter(SessionPhase.DISCOVERING)
        logger.debug("Discovering services and characteristics")
        uuids = await link.discover()
        missing = [uuid for uuid in REQUIRED_CHARACTERISTICS if uuid not in uuids]
        if missing:
            raise TransportError(f"Device {link.address} lacks characteristics: {', '.join(missing)}")

        self.state.enter(SessionPhase.AUTHENTICATING)
        await self._authenticator.authenticate(link, self.state.pairing_mode_detected)
        self.state.authenticated = True

        # Name may have been set by the user in the Ensto Heat app
        device_name = decode_device_name(await link.read(DEVICE_NAME_UUID))
        logger.debug("Device name: %r", device_name)

        self.state.enter(SessionPhase.POLLING)
        await self._poll(link, device_name)

    async def _poll(self, link: SessionLink, device_name: str) -> None:
        while True:
            packet = await link.read(STATS_UUID)
            logger.debug("Received stats %s", packet.hex())

            stats = decode_stats(packet)
            if stats is None:
                self._count_undecodable()
            else:
                self.state.undecodable_reads = 0
                reading = DeviceReading.from_stats(link.address, device_name, stats)
                self._on_reading(reading)
                self.state.readings_emitted += 1

                if not self.state.keep_polling:
                    return

            logger.debug("Waiting...")
            await link.sleep(self._config.poll_interval)

    def _count_undecodable(self) -> None:
        """Track reads without a temperature packet.

        The device gives no authentication result, so a long run of these
        is the only hint that the stored reset code is not accepted.
        """
        self.state.undecodable_reads += 1
        if self.state.undecodable_reads == self._config.unreadable_warning_threshold:
            logger.warning(
                "No temperature data after %d reads; the stored reset code may be stale. "
                "Enable pairing mode on the device and run again to re-pair.%s",
                self.state.undecodable_reads,
                "" if self.state.keep_polling else " Still waiting for a first reading; stop with ctrl-c.",
            )

    async def _release(self, link: Link) -> None:
        if link.disconnected.is_set():
            return
        try:
            await link.disconnect()
        except TransportError as e:
            logger.debug("Error disconnecting: %s", e)

    def _report_failure(self, error: EnstoReaderError) -> None:
        if isinstance(error, CredentialMissingError):
            logger.error("%s", error)
        elif isinstance(error, DisconnectedError):
            logger.error("Error: device disconnected, exiting (%s). %s", error, RETRY_HINT)
        elif isinstance(error, TransportError):
            logger.error("Error: %s. %s", error, RETRY_HINT)
        else:
            logger.error("Error: %s", error)


async def run_scan(
    transport: Transport,
    on_found: Optional[Callable[[Advertisement, AdvertisementDecision], None]] = None,
) -> SessionOutcome:
    """List thermostats as they advertise.

    Runs until cancelled; returns early only when the advertisement stream
    ends or scanning fails.
    """
    seen: dict[str, bool] = {}
    logger.info("Scanning, press ctrl-c to quit...")

    try:
        async with transport.scan() as stream:
            async for advertisement in stream:
                decision = classify(advertisement)
                if not decision.accept:
                    continue

                # Report new devices and pairing flag changes only
                if seen.get(advertisement.address) == decision.pairing_mode:
                    continue
                seen[advertisement.address] = decision.pairing_mode

                logger.info(
                    "Found %s (%s), pairing=%s",
                    advertisement.address,
                    advertisement.local_name,
                    decision.pairing_mode,
                )
                if on_found:
                    on_found(advertisement, decision)
    except EnstoReaderError as e:
        logger.error("Error: %s", e)
        return SessionOutcome(success=False, phase=SessionPhase.SCANNING, error=e)

    return SessionOutcome(success=True, phase=SessionPhase.SCANNING)
