"""
monitoring.py — Logging setup for the Internship Hunter pipeline.
"""

import logging
import sys

from config import LOG_DIR, LOG_FILE


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Set up structured logging to both file and stderr.
    Returns the root logger for the application.
    """
    LOG_DIR.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("internship_hunter")
    logger.setLevel(level)

    # Prevent duplicate handlers on re-init
    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    file_handler = logging.FileHandler(str(LOG_FILE), mode="a", encoding="utf-8")
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    # stderr keeps stdout free for the event stream
    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setLevel(level)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a child logger for a specific module."""
    return logging.getLogger(f"internship_hunter.{name}")


def log_plugin_success(logger: logging.Logger, plugin_name: str, count: int):
    """Log a successful listing fetch."""
    logger.info(f"[{plugin_name}] Fetched {count} listings successfully")


def log_plugin_failure(logger: logging.Logger, plugin_name: str, error: Exception):
    """Log a plugin failure."""
    logger.error(f"[{plugin_name}] Plugin failed: {type(error).__name__}: {str(error)}")


def log_pipeline_step(logger: logging.Logger, step: str, input_count: int, output_count: int):
    """Log a pipeline step with input/output counts."""
    filtered = input_count - output_count
    logger.info(f"[{step}] {input_count} in → {output_count} out ({filtered} filtered)")


def log_run_summary(
    logger: logging.Logger,
    listings_fetched: int,
    listings_new: int,
    internships_saved: int,
    details_failed: int,
    companies_analyzed: int,
    errors: list[str],
    duration: float
):
    """Log a complete run summary."""
    logger.info("=" * 60)
    logger.info("RUN SUMMARY")
    logger.info(f"  Total fetched:      {listings_fetched}")
    logger.info(f"  New (not seen):     {listings_new}")
    logger.info(f"  Saved:              {internships_saved}")
    logger.info(f"  Detail failures:    {details_failed}")
    logger.info(f"  Companies analyzed: {companies_analyzed}")
    logger.info(f"  Errors:             {len(errors)}")
    logger.info(f"  Duration:           {duration:.1f}s")

    if errors:
        logger.warning("ERRORS:")
        for err in errors:
            logger.warning(f"  - {err}")

    logger.info("=" * 60)
