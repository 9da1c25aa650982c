"""
Logging configuration shared by the app and uvicorn.
"""
import logging
from typing import Any, Dict


class HealthCheckFilter(logging.Filter):
    """Drop uvicorn access lines for the health endpoint."""

    def __init__(self, path: str = "/health"):
        super().__init__()
        self.path = path

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name != "uvicorn.access":
            return True
        message = record.getMessage()
        return not (f"GET {self.path} " in message)


def get_logging_config(debug: bool = False) -> Dict[str, Any]:
    """
    Build a dictConfig for the bridge.

    Bridge loggers (including transport traffic) follow the debug flag; the
    MCP SDK and the HTTP client under actualpy stay at WARNING unless debugging.
    """
    app_level = "DEBUG" if debug else "INFO"
    library_level = "DEBUG" if debug else "WARNING"
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "health_check": {"()": HealthCheckFilter},
        },
        "formatters": {
            "default": {"format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"},
            "access": {"format": "%(asctime)s - %(message)s"},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
            "access": {
                "class": "logging.StreamHandler",
                "formatter": "access",
                "stream": "ext://sys.stdout",
                "filters": ["health_check"],
            },
        },
        "loggers": {
            "uvicorn": {"handlers": ["console"], "level": "INFO", "propagate": False},
            "uvicorn.access": {"handlers": ["access"], "level": "INFO", "propagate": False},
            "actual_mcp": {"handlers": ["console"], "level": app_level, "propagate": False},
            "mcp": {"level": library_level},
            "httpx": {"level": library_level},
        },
        "root": {"level": "INFO", "handlers": ["console"]},
    }
