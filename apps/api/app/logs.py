from __future__ import annotations

import logging
from pathlib import Path
from typing import Final

from app.config import settings

_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_DATEFMT: Final[str] = "%Y-%m-%d %H:%M:%S"

_HANDLER_ATTACHED: bool = False
_FILE_SINKS: set[tuple[str, str]] = set()


def _resolve_level() -> int:
  return getattr(logging, (settings.log_level or "INFO").upper(), logging.INFO)


def get_logger(name: str) -> logging.Logger:
  """Return a module logger; the root stream handler is attached on first use."""
  global _HANDLER_ATTACHED

  level = _resolve_level()
  if not _HANDLER_ATTACHED:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATEFMT))
    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(level)
    _HANDLER_ATTACHED = True

  logger = logging.getLogger(name)
  logger.setLevel(level)
  return logger


def attach_file_sink(logger_name: str, path: str | None) -> None:
  """
  Append timestamped lines for `logger_name` to `path`.

  Write errors are handled by `logging.Handler.handleError` and never reach the caller.
  """
  if not path:
    return
  key = (logger_name, path)
  if key in _FILE_SINKS:
    return
  try:
    Path(path).parent.mkdir(parents=True, exist_ok=True)
  except OSError:
    pass
  handler = logging.FileHandler(path, mode="a", encoding="utf-8", delay=True)
  handler.setFormatter(logging.Formatter("[%(asctime)s] [%(levelname)s] %(message)s", datefmt=_DATEFMT))
  logging.getLogger(logger_name).addHandler(handler)
  _FILE_SINKS.add(key)
