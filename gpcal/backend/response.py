from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import Request


def now_iso() -> str:
	return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _request_id(request: Optional[Request]) -> Optional[str]:
	if request is None:
		return None
	return getattr(request.state, "request_id", None)


def _envelope(ok: bool, request: Optional[Request]) -> Dict[str, Any]:
	payload: Dict[str, Any] = {"ok": ok, "generated_at": now_iso()}
	request_id = _request_id(request)
	if request_id:
		payload["request_id"] = request_id
	return payload


def success_response(
	*,
	request: Optional[Request] = None,
	data: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
	payload = _envelope(True, request)
	if data is not None:
		payload["data"] = data
	return payload


def error_response(
	*,
	code: str,
	message: str,
	request: Optional[Request] = None,
	evidence: Optional[List[str]] = None,
) -> Dict[str, Any]:
	payload = _envelope(False, request)
	payload["error"] = {
		"code": code,
		"message": message,
		"evidence": evidence or [],
	}
	return payload
