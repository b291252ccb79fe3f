from __future__ import annotations

import logging
import os
from logging.config import dictConfig
from typing import Any, Dict, Optional

APP_LOGGER = "tradein_engine"
NOTIFY_LOGGER = "tradein_engine.features.notifications"

# Libraries whose INFO output is mostly connection chatter.
THIRD_PARTY_LOGGERS = ("pymongo", "motor", "httpx", "httpcore")
SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")

_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _norm_level(v: Optional[str], default: str) -> str:
    s = (v or default).upper().strip()
    return s if s in _LEVELS else default


def _console(level: str) -> Dict[str, Any]:
    return {"level": level, "handlers": ["console"], "propagate": False}


def init_logging(
    *,
    root_level: str = "INFO",
    app_level: Optional[str] = None,
    third_party_level: str = "WARNING",
    notify_level: Optional[str] = None,
) -> None:
    """
    One stdout handler for everything.

    - "tradein_engine" is our code (pricing, lifecycle, repos, routers)
    - "tradein_engine.features.notifications" can be turned up on its own
      when chasing mail delivery without flooding the rest
    - pymongo/motor/httpx/httpcore stay at WARNING by default

    Env overrides:
      LOG_ROOT_LEVEL, LOG_APP_LEVEL, LOG_NOTIFY_LEVEL, LOG_THIRD_PARTY_LEVEL
    """
    root_lvl = _norm_level(os.getenv("LOG_ROOT_LEVEL"), root_level)
    app_lvl = _norm_level(os.getenv("LOG_APP_LEVEL"), app_level or root_lvl)
    notify_lvl = _norm_level(os.getenv("LOG_NOTIFY_LEVEL"), notify_level or app_lvl)
    third_lvl = _norm_level(os.getenv("LOG_THIRD_PARTY_LEVEL"), third_party_level)

    loggers: Dict[str, Dict[str, Any]] = {
        APP_LOGGER: _console(app_lvl),
        NOTIFY_LOGGER: _console(notify_lvl),
    }
    loggers.update({name: _console(root_lvl) for name in SERVER_LOGGERS})
    loggers.update({name: _console(third_lvl) for name in THIRD_PARTY_LOGGERS})

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {
                    "format": "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "stream": "ext://sys.stdout",
                    "formatter": "standard",
                }
            },
            "root": {"level": root_lvl, "handlers": ["console"]},
            "loggers": loggers,
        }
    )

    logging.getLogger(APP_LOGGER).info(
        "logging:configured root=%s app=%s notify=%s third_party=%s",
        root_lvl,
        app_lvl,
        notify_lvl,
        third_lvl,
    )
