"""
Follow the backend change feed and log the ranked listing after every
refresh. Handy for checking realtime wiring without the UI.
"""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from iftar_tracker.dependencies import get_controller

logger = logging.getLogger(__name__)


def _log_ranking(controller, search: str | None, limit: int) -> None:
    for mosque in controller.list_mosques(search)[:limit]:
        logger.info(
            "%+d  %s (%s)  true=%d fake=%d",
            mosque.net_score,
            mosque.name,
            mosque.location,
            mosque.true_count,
            mosque.fake_count,
        )


def main() -> int:
    parser = argparse.ArgumentParser(description="Watch mosque vote changes")
    parser.add_argument("-q", "--search", type=str, default=None, help="Search term")
    parser.add_argument("-n", "--limit", type=int, default=10, help="Rows to print")
    parser.add_argument(
        "--once",
        action="store_true",
        help="Print the current ranking and exit",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s %(levelname)s %(asctime)s %(message)s",
        datefmt="%m/%d/%Y %I:%M:%S %p",
    )

    controller = get_controller()
    controller.start()
    _log_ranking(controller, args.search, args.limit)
    if args.once:
        controller.stop()
        return 0

    last_refresh = controller.state.refreshed_at
    try:
        while True:
            time.sleep(1)
            state = controller.state
            if state.refreshed_at != last_refresh:
                last_refresh = state.refreshed_at
                _log_ranking(controller, args.search, args.limit)
    except KeyboardInterrupt:
        logger.info("Stopping")
    finally:
        controller.stop()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
