from __future__ import annotations

import logging
import math
import os
import time
from dataclasses import dataclass
from threading import Lock
from typing import Dict, Mapping, Optional

from gpcal.backend import constants


logger = logging.getLogger("gpcal.rate_limit")


@dataclass
class ClientWindow:
	client_key: str
	count: int
	window_start: float


@dataclass(frozen=True)
class RateDecision:
	allowed: bool
	client_key: str
	count: int
	limit: int
	retry_after_s: int = 0


# Process-local; independently scheduled processes each keep their own table.
_STORE: Dict[str, ClientWindow] = {}
_LOCK = Lock()


def _int_env(name: str, default: int, minimum: int = 1) -> int:
	raw = os.getenv(name, "").strip()
	if not raw:
		return default
	try:
		value = int(raw)
	except ValueError:
		return default
	return value if value >= minimum else default


def window_seconds() -> int:
	return _int_env("GPCAL_RATE_LIMIT_WINDOW_S", constants.DEFAULT_RATE_LIMIT_WINDOW_S)


def max_requests() -> int:
	return _int_env("GPCAL_RATE_LIMIT_MAX_REQUESTS", constants.DEFAULT_RATE_LIMIT_MAX_REQUESTS)


def client_key_from_headers(headers: Mapping[str, str]) -> str:
	forwarded = headers.get("x-forwarded-for") or ""
	first = forwarded.split(",")[0].strip()
	return first or constants.FALLBACK_CLIENT_KEY


def admit(client_key: str, *, now: Optional[float] = None) -> RateDecision:
	"""Count one request for ``client_key`` against its fixed window.

	A denied request is not counted. Once ``window_seconds()`` have passed
	since the window opened, the next request opens a new window with a count
	of one, so a burst straddling the boundary can see up to twice the limit.
	"""
	current = time.monotonic() if now is None else now
	window = window_seconds()
	limit = max_requests()
	with _LOCK:
		entry = _STORE.get(client_key)
		if entry is None:
			_STORE[client_key] = ClientWindow(client_key=client_key, count=1, window_start=current)
			return RateDecision(allowed=True, client_key=client_key, count=1, limit=limit)
		elapsed = current - entry.window_start
		if elapsed >= window:
			entry.count = 1
			entry.window_start = current
			return RateDecision(allowed=True, client_key=client_key, count=1, limit=limit)
		if entry.count < limit:
			entry.count += 1
			return RateDecision(allowed=True, client_key=client_key, count=entry.count, limit=limit)
		retry_after = max(1, math.ceil(window - elapsed))
		count = entry.count

	logger.warning(
		"rate_limited client=%s count=%d limit=%d retry_after_s=%d",
		client_key,
		count,
		limit,
		retry_after,
	)
	return RateDecision(
		allowed=False,
		client_key=client_key,
		count=count,
		limit=limit,
		retry_after_s=retry_after,
	)


def tracked_clients() -> int:
	with _LOCK:
		return len(_STORE)


def reset() -> None:
	with _LOCK:
		_STORE.clear()
