"""Pairing and authentication handshake."""

from __future__ import annotations

import logging
from typing import Protocol

from .const import RESET_CODE_UUID
from .exceptions import CredentialMissingError, MalformedPacketError, NotFoundError
from .models import CREDENTIAL_LENGTH
from .pairing_store import PairingStore

logger = logging.getLogger(__name__)


class GattLink(Protocol):
    """Read/write access to a connected device's characteristics."""

    address: str

    async def read(self, uuid: str) -> bytes: ...

    async def write(self, uuid: str, data: bytes, response: bool = False) -> None: ...


class Authenticator:
    """Obtains or loads the reset code and presents it to the device.

    The device never confirms the write. A wrong reset code only shows up
    later as stats reads that carry no temperature packet.
    """

    def __init__(self, store: PairingStore) -> None:
        self._store = store

    async def authenticate(self, link: GattLink, pairing_mode: bool) -> bytes:
        """Authenticate the session and return the reset code used.

        Raises:
            CredentialMissingError: not in pairing mode and never paired
            MalformedPacketError: pairing-mode response shorter than 4 bytes
        """
        if pairing_mode:
            credential = await self._pair(link)
        else:
            credential = self._load(link.address)

        logger.debug("Authenticating with reset code %s", list(credential))
        await link.write(RESET_CODE_UUID, credential, response=False)
        return credential

    async def _pair(self, link: GattLink) -> bytes:
        logger.info("Pairing...")
        response = await link.read(RESET_CODE_UUID)
        logger.debug("Received reset code response %s", response.hex())

        if len(response) < CREDENTIAL_LENGTH:
            raise MalformedPacketError(
                f"Reset code response too short: {len(response)} bytes"
            )

        # Factory reset id is the first four bytes
        credential = bytes(response[:CREDENTIAL_LENGTH])
        path = self._store.save(link.address, credential)
        logger.info("Pairing successful, reset code stored in %s", path)
        return credential

    def _load(self, address: str) -> bytes:
        try:
            return self._store.load(address)
        except NotFoundError as e:
            raise CredentialMissingError(
                f"Existing pairing info not found for {address}: {e}. "
                "Please enable pairing mode on the device and try again."
            ) from e
