"""Entry point for the thermostat reader: python -m enstoreader."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

from .exceptions import UsageError
from .models import Mode, canonical_address

EPILOG = """\
Pairing a device:

  1) Find the device address with --scan, or in the Ensto Heat app
     (three dots, then "Information...").
  2) Enable pairing mode: pull out the potentiometer and push the button
     for more than 0.5 and less than 7 seconds. A blue LED starts blinking.
  3) While the LED blinks, run --read <address>. The reset code is written
     to pairing-<address>.json and used for every later read.

The first --read after the thermostat starts up often fails. Retry it
right away and it usually works.
"""


def setup_logging(verbosity: int) -> None:
    """Configure logging on stderr; stdout carries the readings."""
    level = logging.DEBUG if verbosity >= 1 else logging.INFO
    format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[logging.StreamHandler(sys.stderr)],
    )

    # Reduce noise from libraries
    if verbosity < 2:
        logging.getLogger("bleak").setLevel(logging.WARNING)


def _address(value: str) -> str:
    try:
        return canonical_address(value)
    except UsageError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="enstoreader",
        description="Read Ensto ECO16BT Bluetooth thermostats",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    mode = parser.add_mutually_exclusive_group(required=True)
    mode.add_argument(
        "--scan",
        action="store_true",
        help="Scan for thermostats and list them (runs until ctrl-c)",
    )
    mode.add_argument(
        "--read",
        type=_address,
        metavar="ADDRESS",
        help="Connect to the thermostat at ADDRESS (e.g. 90:fd:9f:12:34:56) and print a reading",
    )

    parser.add_argument(
        "--keep-reading",
        action="store_true",
        help="Stay connected and keep printing readings",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="More logging to stderr (repeat for more)",
    )

    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to an optional YAML configuration file",
    )

    parser.add_argument(
        "--pairing-dir",
        type=Path,
        default=None,
        metavar="DIR",
        help="Directory for pairing files (default: current directory)",
    )

    return parser


async def _run(args: argparse.Namespace, config_path: Optional[Path]) -> int:
    # Deferred so --help works without a BLE stack installed
    from .ble.transport import BleakTransport
    from .config import build_session_config
    from .session import SessionController, run_scan

    mode = Mode.SCAN if args.scan else Mode.READ
    config = build_session_config(
        mode=mode,
        target_address=args.read,
        keep_reading=args.keep_reading,
        verbosity=args.verbose,
        config_path=config_path,
        pairing_dir=args.pairing_dir,
    )

    transport = BleakTransport()
    if config.mode == Mode.SCAN:
        outcome = await run_scan(transport)
    else:
        outcome = await SessionController(config, transport).run()
    return outcome.exit_code


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose)

    logger = logging.getLogger(__name__)

    try:
        return asyncio.run(_run(args, args.config))
    except UsageError as e:
        parser.print_usage(sys.stderr)
        logger.error("%s", e)
        return 2
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0


if __name__ == "__main__":
    sys.exit(main())
