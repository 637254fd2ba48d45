"""Ensto ECO16BT advertisement classification."""

from __future__ import annotations

import logging

from ..models import Advertisement, AdvertisementDecision

logger = logging.getLogger(__name__)

# Only this device family is supported
DEVICE_NAME_PREFIX = "ECO16BT "

# Raw manufacturer data is a 2-byte company id followed by "ECO16BT;1;0;0;"
# ("<name>;<pairingFlag>;...;"), where "1" means pairing mode.
PAIRING_FLAG_OFFSET = 10
PAIRING_FLAG_ON = ord("1")

REJECTED = AdvertisementDecision(accept=False)


def is_thermostat(advertisement: Advertisement) -> bool:
    """Check if the advertisement comes from a supported thermostat."""
    return (advertisement.local_name or "").startswith(DEVICE_NAME_PREFIX)


def pairing_flag(manufacturer_data: bytes) -> bool:
    """Read the pairing flag from raw manufacturer data.

    Short or missing data means the device is not in pairing mode.
    """
    if not manufacturer_data or len(manufacturer_data) <= PAIRING_FLAG_OFFSET:
        return False
    return manufacturer_data[PAIRING_FLAG_OFFSET] == PAIRING_FLAG_ON


def classify(advertisement: Advertisement) -> AdvertisementDecision:
    """Decide whether to accept an advertisement and whether it signals pairing mode."""
    if not is_thermostat(advertisement):
        return REJECTED

    pairing = pairing_flag(advertisement.manufacturer_data)
    logger.debug(
        "Thermostat advertisement from %s (%s), pairing=%s",
        advertisement.address,
        advertisement.local_name,
        pairing,
    )
    return AdvertisementDecision(accept=True, pairing_mode=pairing)
