"""Logging configuration."""
import logging

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(level="INFO", log_file=None):
    """Configure the alertengine logger with a rich console and optional file handler."""
    numeric_level = getattr(logging, str(level).upper(), logging.INFO)

    root = logging.getLogger("alertengine")
    root.setLevel(numeric_level)
    root.propagate = False

    if not root.handlers:
        try:
            from rich.logging import RichHandler
            console_handler = RichHandler(level=numeric_level, rich_tracebacks=True, markup=False)
        except ImportError:
            console_handler = logging.StreamHandler()
            console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        console_handler.setLevel(numeric_level)
        root.addHandler(console_handler)

        if log_file:
            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(numeric_level)
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            root.addHandler(file_handler)
    else:
        for handler in root.handlers:
            handler.setLevel(numeric_level)

    return root
