import logging

# Global project logger (level tuned via logging_config)
logger = logging.getLogger("playlist_sorter")


def log_info(message: str) -> None:
    """
    Neutral information message.
    """
    logger.info("%s", message)


def log_step(message: str) -> None:
    """
    Action step / ongoing upstream work.
    """
    logger.info("→ %s", message)


def log_success(message: str) -> None:
    logger.info("✅ %s", message)


def log_warning(message: str) -> None:
    """
    Recoverable problem (rate limit, partial membership load, corrupt preference).
    """
    logger.warning("⚠️ %s", message)


def log_error(message: str) -> None:
    """
    Failure surfaced to the user (rejected mutation, expired session).
    """
    logger.error("❌ %s", message)


def log_debug(message: str) -> None:
    logger.debug("%s", message)
