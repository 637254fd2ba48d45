"""File-backed storage for thermostat reset codes."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from .exceptions import InvalidPairingRecordError, NotFoundError, PairingStoreError
from .models import CREDENTIAL_LENGTH, canonical_address

logger = logging.getLogger(__name__)


class PairingStore:
    """One JSON file per paired device, named after its address."""

    def __init__(self, directory: Path = Path(".")) -> None:
        self._directory = Path(directory)

    def path_for(self, address: str) -> Path:
        """Get the pairing file path for a device address."""
        key = canonical_address(address).replace(":", "")
        return self._directory / f"pairing-{key}.json"

    def load(self, address: str) -> bytes:
        """Load the reset code for a device.

        Raises:
            NotFoundError: no pairing file exists for the address
            InvalidPairingRecordError: the file exists but is unusable
        """
        path = self.path_for(address)
        logger.debug("Reading %s", path)

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError as e:
            raise NotFoundError(f"No pairing record for {address} ({path})") from e
        except (OSError, ValueError) as e:
            raise InvalidPairingRecordError(f"Unreadable pairing record {path}: {e}") from e

        code = data.get("resetCode") if isinstance(data, dict) else None
        if (
            not isinstance(code, list)
            or len(code) != CREDENTIAL_LENGTH
            or not all(isinstance(b, int) and not isinstance(b, bool) and 0 <= b <= 255 for b in code)
        ):
            raise InvalidPairingRecordError(f"Pairing record {path} has no valid resetCode")

        return bytes(code)

    def save(self, address: str, credential: bytes) -> Path:
        """Create or overwrite the pairing record for a device."""
        if len(credential) != CREDENTIAL_LENGTH:
            raise ValueError(f"Reset code must be {CREDENTIAL_LENGTH} bytes, got {len(credential)}")

        path = self.path_for(address)
        payload = json.dumps({"resetCode": list(credential)})
        logger.debug("Writing '%s' to %s", payload, path)

        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=path.name, suffix=".tmp", dir=self._directory)
        except OSError as e:
            raise PairingStoreError(f"Cannot write pairing record {path}: {e}") from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise PairingStoreError(f"Cannot write pairing record {path}: {e}") from e
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        return path
