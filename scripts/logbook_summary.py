#!/usr/bin/env python3
"""
Print a summary of a QRZ logbook and optionally export it as ADIF.

Reads QRZ_API_KEY and QRZ_USER_AGENT from the environment.

Usage:
    python -m scripts.logbook_summary
    python -m scripts.logbook_summary --band 20m
    python -m scripts.logbook_summary --export mylog.adi
"""

import asyncio
import logging
import os
import sys
from collections import Counter

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from adif_codec import to_adif_file
from fetch_filter import FetchFilter
from logging_config import configure_logging
from qrz_client import QRZLogbookClient
from qrz_errors import QRZLogbookError

logger = logging.getLogger(__name__)


def parse_args(argv):
    """Return (band, export_path) from --band/--export flags."""
    band = None
    export_path = None
    args = list(argv)
    while args:
        flag = args.pop(0)
        if flag in ("--band", "--export") and args:
            value = args.pop(0)
            if flag == "--band":
                band = value
            else:
                export_path = value
        else:
            raise SystemExit(__doc__)
    return band, export_path


async def summarize(client: QRZLogbookClient, band=None, export_path=None) -> dict:
    """
    Fetch status and every matching QSO, print a per-band/mode breakdown,
    and write the records to export_path if given.
    """
    status = await client.get_status()
    for key, value in sorted(status.data.items()):
        print(f"{key:<20} {value}")

    fetch_filter = FetchFilter.all()
    if band:
        fetch_filter.band(band)
    result = await client.fetch_all_qsos(fetch_filter)

    by_band_mode = Counter((q.band or "-", q.mode or "-") for q in result.qsos)
    print(f"\n{'Band':<8} {'Mode':<10} {'QSOs'}")
    print("-" * 26)
    for (qso_band, mode), count in sorted(by_band_mode.items()):
        print(f"{qso_band:<8} {mode:<10} {count}")
    print(f"\nTotal: {len(result)} QSOs in {result.pages} pages")

    if export_path:
        with open(export_path, "w", encoding="utf-8") as f:
            f.write(to_adif_file(result.qsos))
        logger.info(f"Wrote {len(result)} QSOs to {export_path}")

    return {"total": len(result), "pages": result.pages, "by_band_mode": dict(by_band_mode)}


async def main():
    """Summarize the logbook named by the environment."""
    configure_logging()
    band, export_path = parse_args(sys.argv[1:])

    try:
        client = QRZLogbookClient.from_env()
        return await summarize(client, band=band, export_path=export_path)
    except (QRZLogbookError, ValueError) as e:
        logger.error(f"Summary failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
