"""Reader for Ensto ECO16BT Bluetooth thermostats."""

__version__ = "0.3.0"
