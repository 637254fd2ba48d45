"""GATT characteristics of the Ensto thermostat."""

# 2.1.2 Device name (standard)
DEVICE_NAME_UUID = "00002a00-0000-1000-8000-00805f9b34fb"

# 2.2.21 Device factory reset ID: read in pairing mode, written to authenticate
RESET_CODE_UUID = "f366dddb-ebe2-43ee-83c0-472ded74c8fa"

# 2.2.23 Real time indication, temperature and mode
STATS_UUID = "66ad3e6b-3135-4ada-bb2b-8b22916b21d4"

REQUIRED_CHARACTERISTICS = (DEVICE_NAME_UUID, RESET_CODE_UUID, STATS_UUID)
