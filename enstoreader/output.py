"""JSON lines output of thermostat readings."""

from __future__ import annotations

import json
import sys
from typing import Optional, TextIO

from .models import DeviceReading


class JsonLinesWriter:
    """Writes one JSON object per reading and flushes immediately."""

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self._stream = stream

    def __call__(self, reading: DeviceReading) -> None:
        stream = self._stream or sys.stdout
        stream.write(json.dumps(reading.to_record(), ensure_ascii=False) + "\n")
        stream.flush()
