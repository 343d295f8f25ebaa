"""
Scan-sample parser: read (location, networks) samples from JSON-lines files.

Each non-blank line is one sample:
  {"lat": 40.0, "lon": -75.0, "networks": [{"bssid": "...", "ssid": "...",
   "rssi": -50, "frequency": 2412, "capabilities": "[WPA2-PSK-CCMP]"}]}
"""

from pathlib import Path
from typing import Iterator

from pydantic import ValidationError

from wmap.utils.log import get_logger
from wmap.utils.validate import ScanSample

logger = get_logger(__name__)


def parse_samples(file_path: str | Path) -> Iterator[ScanSample]:
    """
    Yield one ScanSample per valid line of `file_path`.

    Blank lines are skipped; malformed lines are logged and skipped so one
    bad record does not abort a long capture.

    Lines are read as bytes so invalid UTF-8 fails validation for that line
    only, instead of breaking the file iterator.
    """
    with open(file_path, "rb") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                yield ScanSample.model_validate_json(line)
            except ValidationError as e:
                logger.warning(
                    "%s:%d: skipping malformed sample (%d errors)",
                    file_path, lineno, e.error_count(),
                )
