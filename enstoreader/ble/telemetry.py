"""Decoders for the thermostat's GATT payloads."""

import logging
import struct
from typing import Optional

from ..exceptions import MalformedPacketError
from ..models import StatsFields

logger = logging.getLogger(__name__)

# First byte of the real-time stats packet carrying temperatures.
# The device alternates it with a second packet kind that we skip.
STATS_PACKET_KIND = 0x80

# Relay flag is the last field read
STATS_MIN_LENGTH = 9


def _decitemp(packet: bytes, offset: int) -> float:
    """Unsigned little-endian 16-bit value with one implied decimal."""
    return struct.unpack_from("<H", packet, offset)[0] / 10.0


def decode_stats(packet: bytes) -> Optional[StatsFields]:
    """
    Decode a real-time stats packet.

    Format (kind 0x80):
    - Byte 0: Packet kind (0x80)
    - Bytes 1-2: Target temperature (0.1 degree per unit, little-endian)
    - Byte 3: Unused here
    - Bytes 4-5: Room temperature (0.1 degree per unit, little-endian)
    - Bytes 6-7: Floor temperature (same encoding, not reported)
    - Byte 8: Relay state (1 = on)

    Returns:
        StatsFields for a 0x80 packet, None for any other packet kind

    Raises:
        MalformedPacketError: a 0x80 packet is too short
    """
    if not packet or packet[0] != STATS_PACKET_KIND:
        return None

    if len(packet) < STATS_MIN_LENGTH:
        raise MalformedPacketError(
            f"Stats packet too short: {len(packet)} bytes, need {STATS_MIN_LENGTH}"
        )

    return StatsFields(
        target_temperature=_decitemp(packet, 1),
        room_temperature=_decitemp(packet, 4),
        relay_is_on=packet[8] == 1,
    )


def decode_device_name(raw: bytes) -> str:
    """Decode the device name characteristic.

    The first byte is a prefix, the rest is text padded with NUL bytes.
    """
    return bytes(raw[1:]).decode("utf-8", errors="replace").replace("\x00", "")
