import logging
import sys


def setup_logging(level: int = logging.INFO) -> None:
    """Send log records to stdout with timestamps."""
    root_logger = logging.getLogger()
    if any(getattr(handler, "_trade_dashboard", False) for handler in root_logger.handlers):
        root_logger.setLevel(level)
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    handler._trade_dashboard = True  # type: ignore[attr-defined]
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
