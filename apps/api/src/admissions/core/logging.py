import logging
import sys


def configure_logging(level: str = "INFO") -> None:
    """
    Configure process-wide logging.

    Call this once at application startup.
    """
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # APScheduler is chatty at INFO on every run
    logging.getLogger("apscheduler.executors").setLevel(logging.WARNING)
