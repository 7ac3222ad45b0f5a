import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach a single stream handler to the package logger. Safe to call repeatedly."""
    root = logging.getLogger("content_mapper")
    root.setLevel(level.upper())
    if not any(getattr(h, "_content_mapper", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._content_mapper = True
        root.addHandler(handler)
    return root
