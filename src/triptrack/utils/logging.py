from __future__ import annotations

import logging
from typing import Dict, Optional


def _level(name: str, default: int = logging.INFO) -> int:
    return getattr(logging, str(name).upper(), default)


def setup_logging(level: str = "INFO", log_file: Optional[str] = None, overrides: Optional[Dict[str, str]] = None) -> None:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    logging.basicConfig(
        level=_level(level),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        handlers=handlers,
        force=True,
    )
    # e.g. {"triptrack.speed_estimation": "DEBUG"} to see rejected fixes
    for name, lvl in (overrides or {}).items():
        logging.getLogger(str(name)).setLevel(_level(lvl))
