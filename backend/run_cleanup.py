"""Run the expired session / OAuth state sweeper as a standalone process."""

import argparse
import logging
import time

from wordle_identity.api.deps import get_auth_service
from wordle_identity.config import settings
from wordle_identity.core.database import SessionLocal
from wordle_identity.services.cleanup_worker import CleanupWorker


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--once", action="store_true", help="sweep once and exit")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    worker = CleanupWorker(
        sweep=lambda db: get_auth_service().cleanup(db),
        session_factory=SessionLocal,
        interval_seconds=settings.CLEANUP_INTERVAL_SECONDS,
    )

    if args.once:
        logging.getLogger(__name__).info("Sweep result: %s", worker.run_once())
        return

    worker.start()
    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        worker.stop()


if __name__ == "__main__":
    main()
