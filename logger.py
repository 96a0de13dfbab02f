import logging
import logging.config
import sys

FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_configured = False


def configure_logging(level: str = "INFO") -> None:
    """Install the console handler on the root logger. Safe to call twice."""
    global _configured
    if _configured:
        logging.getLogger().setLevel(level.upper())
        return

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "simple": {"format": FORMAT},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "simple",
                "stream": sys.stdout,
            },
        },
        "root": {
            "handlers": ["console"],
            "level": level.upper(),
        },
    })
    _configured = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def mask(secret: str) -> str:
    """Shorten a token or key for log output, e.g. 'shpat_12...'."""
    if not secret:
        return "<empty>"
    return f"{secret[:8]}..."
