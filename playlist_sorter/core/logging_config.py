import logging
import sys


def configure_logging(level: int | str = logging.INFO) -> None:
    """
    Configure root logging for the sorter backend.

    - Logs go to stdout
    - Simple, readable format with time, level, and logger name
    - Uvicorn may already have installed handlers; in that case only the level
      is adjusted.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()

    # Avoid adding handlers multiple times
    if root.handlers:
        root.setLevel(level)
        return

    handler = logging.StreamHandler(sys.stdout)
    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    handler.setFormatter(formatter)

    root.addHandler(handler)
    root.setLevel(level)
