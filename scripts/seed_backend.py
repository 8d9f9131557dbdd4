"""
Copy the bundled mosque listings into the configured backend.

Listings whose name and location already exist in the backend are skipped,
so the script can be re-run safely. Uploads into a non-empty backend are
refused by default: the copies would get fresh ids and be listed next to
the bundled listings.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from iftar_tracker.catalog import CatalogError
from iftar_tracker.dependencies import get_catalog_client
from iftar_tracker.seed import SeedIdMismatchError, upload_seed_mosques

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description="Upload seed mosques to the backend")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Only report which listings would be inserted",
    )
    parser.add_argument(
        "--allow-new-ids",
        action="store_true",
        help="Upload into a non-empty backend even though listings will appear twice",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    catalog = get_catalog_client()
    if catalog is None:
        logger.error("No backend configured; set SUPABASE_URL/SUPABASE_ANON_KEY or DATABASE_URL")
        return 1

    try:
        inserted = upload_seed_mosques(
            catalog, dry_run=args.dry_run, allow_new_ids=args.allow_new_ids
        )
    except SeedIdMismatchError as exc:
        logger.error("%s (pass --allow-new-ids to upload anyway)", exc)
        return 1
    except CatalogError as exc:
        logger.error("Seed upload failed: %s", exc)
        return 1

    logger.info("Done, inserted %d mosques", len(inserted))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
