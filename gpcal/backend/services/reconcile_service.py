from __future__ import annotations

import json
import logging
import re
from typing import Callable, List, Optional, Tuple

from pydantic import ValidationError

from gpcal.backend.schemas import AIResult


logger = logging.getLogger("gpcal.reconcile")

FALLBACK_REPLY = (
	"Sorry, I couldn't put together a clear insight for this request. Please try again in a moment."
)

_MISSING_SEPARATOR_RE = re.compile(r'"(\s*)("suggested_improvement"\s*:)')
_CODE_FENCE_RE = re.compile(r"^\s*```[a-zA-Z]*\s*(.*?)\s*```\s*$", re.DOTALL)


def _insert_missing_separator(text: str) -> str:
	# {"reply": "..." "suggested_improvement": "..."} -> add the comma.
	return _MISSING_SEPARATOR_RE.sub(r'",\1\2', text)


def _strip_code_fence(text: str) -> str:
	match = _CODE_FENCE_RE.match(text)
	return match.group(1) if match else text


# Applied in order, each on top of the previous; the result is re-validated after every step.
REPAIRS: List[Tuple[str, Callable[[str], str]]] = [
	("insert_missing_separator", _insert_missing_separator),
	("strip_code_fence", _strip_code_fence),
]


def fallback_result() -> AIResult:
	return AIResult(reply=FALLBACK_REPLY)


def _parse(text: str) -> Optional[AIResult]:
	# Oversized integers raise a plain ValueError, deep nesting a RecursionError.
	try:
		payload = json.loads(text)
	except (ValueError, RecursionError):
		return None
	if not isinstance(payload, dict):
		return None
	try:
		return AIResult.model_validate(payload)
	except ValidationError:
		return None


def reconcile(raw_text: str, *, client_key: str = "", stage: int = 0) -> AIResult:
	"""Turn raw model output into a valid :class:`AIResult`. Never raises."""
	result = _parse(raw_text)
	if result is not None:
		return result

	text = raw_text
	for name, repair in REPAIRS:
		repaired = repair(text)
		if repaired == text:
			continue
		text = repaired
		result = _parse(text)
		if result is not None:
			logger.info("reconcile_repaired repair=%s client=%s stage=%s", name, client_key, stage)
			return result

	logger.warning("reconcile_fallback client=%s stage=%s raw_chars=%d", client_key, stage, len(raw_text))
	return fallback_result()
