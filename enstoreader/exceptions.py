"""Error types raised by the thermostat reader.

Every error is fatal for the running session. The session controller
catches ``EnstoReaderError`` and turns it into a failed outcome; nothing
is retried internally.
"""


class EnstoReaderError(Exception):
    """Base class for all reader errors."""


class NotFoundError(EnstoReaderError):
    """No pairing record exists for the address."""


class InvalidPairingRecordError(NotFoundError):
    """A pairing record exists but does not hold a usable reset code."""


class CredentialMissingError(NotFoundError):
    """Authentication needs a stored reset code but none is available."""


class MalformedPacketError(EnstoReaderError):
    """A payload read from the device is too short to decode."""


class DisconnectedError(EnstoReaderError):
    """The device dropped the connection mid-session."""


class TransportError(EnstoReaderError):
    """The BLE transport failed to connect, discover, read or write."""


class UsageError(EnstoReaderError):
    """Invalid command line invocation or configuration."""


class PairingStoreError(EnstoReaderError):
    """A pairing record could not be written."""
