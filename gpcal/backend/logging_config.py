from __future__ import annotations

import logging
import os

from gpcal.backend import constants


_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging() -> logging.Logger:
	"""Attach one stream handler to the ``gpcal`` logger tree; safe to call repeatedly."""
	logger = logging.getLogger(constants.LOGGER_NAMESPACE)
	level_name = os.getenv("GPCAL_LOG_LEVEL", "INFO").strip().upper() or "INFO"
	logger.setLevel(getattr(logging, level_name, logging.INFO))
	if not any(getattr(handler, "_gpcal", False) for handler in logger.handlers):
		handler = logging.StreamHandler()
		handler.setFormatter(logging.Formatter(_FORMAT))
		handler._gpcal = True  # type: ignore[attr-defined]
		logger.addHandler(handler)
	return logger
