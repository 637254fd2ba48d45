"""BLE advertisement filtering, payload decoding and transport."""

from .advertisement import classify
from .telemetry import decode_device_name, decode_stats

__all__ = ["classify", "decode_device_name", "decode_stats"]
