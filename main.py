"""
Reservation core entry point.

Runs the periodic hold sweeper against the configured backend, or the
offline console demo for development.

Usage:
    Sweeper:      python main.py sweep
    Single pass:  python main.py sweep --once
    Console mode: python main.py console
"""

import logging
import sys
import time

from reservation_core.config import settings

logger = logging.getLogger(__name__)


def _run_sweeper(once: bool = False) -> None:
    """Purge expired holds every HOLD_SWEEP_INTERVAL seconds until interrupted."""
    from reservation_core.bootstrap import build_core
    from reservation_core.errors import UnavailableError
    from reservation_core.logging_context import set_request_id

    core = build_core()
    interval = settings.hold.sweep_interval_seconds
    logger.info(
        "Hold sweeper started (backend=%s, every %.0fs)", settings.backend.backend, interval
    )
    try:
        while True:
            set_request_id(f"SWEEP-{int(time.time())}")
            try:
                core.holds.sweep_expired()
            except UnavailableError as e:
                logger.warning("Sweep pass failed, retrying next interval: %s", e)
            if once:
                break
            time.sleep(interval)
    except KeyboardInterrupt:
        logger.info("Hold sweeper stopped")


def _run_console_mode() -> None:
    """Start the offline console demo (no backend required)."""
    from console_demo import ConsoleSession

    session = ConsoleSession()
    session.run_scenario("booking")


if __name__ == "__main__":
    command = sys.argv[1] if len(sys.argv) > 1 else "sweep"
    if command == "console":
        _run_console_mode()
    elif command == "sweep":
        _run_sweeper(once="--once" in sys.argv[2:])
    else:
        print(f"Unknown command: {command}. Use 'sweep' or 'console'.")
        sys.exit(2)
