from __future__ import annotations

import asyncio
import logging
import os
from typing import Any, Dict, List, Optional, Sequence

from gpcal.backend import constants
from gpcal.backend.schemas import ConversationMessage


logger = logging.getLogger("gpcal.gateway")


class GatewayError(Exception):
	def __init__(self, *, code: str, message: str, status_code: int = 500):
		super().__init__(message)
		self.status_code = status_code
		self.code = code
		self.message = message


def _openai_api_key() -> str:
	for name in ("OPENAI_API_KEY", "OPENAI_APIKEY"):
		key = os.getenv(name, "").strip()
		if key:
			return key
	return ""


def _openai_timeout() -> float:
	raw = os.getenv("GPCAL_OPENAI_TIMEOUT_S", "").strip()
	if not raw:
		return constants.DEFAULT_OPENAI_TIMEOUT_S
	try:
		value = float(raw)
	except ValueError as exc:
		raise GatewayError(
			code="gateway_unconfigured",
			message="GPCAL_OPENAI_TIMEOUT_S must be numeric.",
		) from exc
	if value <= 0:
		raise GatewayError(
			code="gateway_unconfigured",
			message="GPCAL_OPENAI_TIMEOUT_S must be greater than zero.",
		)
	return value


def openai_model() -> str:
	return os.getenv("GPCAL_OPENAI_MODEL", constants.DEFAULT_OPENAI_MODEL).strip() or constants.DEFAULT_OPENAI_MODEL


def provider_status() -> Dict[str, object]:
	warnings: List[str] = []
	timeout_s: Optional[float]
	try:
		timeout_s = _openai_timeout()
	except GatewayError as exc:
		timeout_s = None
		warnings.append(exc.message)
	if not _openai_api_key():
		warnings.append("OpenAI API key not configured. Set OPENAI_API_KEY.")
	return {
		"model": openai_model(),
		"timeout_s": timeout_s,
		"provider_ready": not warnings,
		"provider_warnings": warnings,
	}


def _build_openai_client(*, api_key: str, timeout_s: float):
	try:
		from openai import AsyncOpenAI
	except ImportError as exc:
		raise GatewayError(
			code="gateway_unconfigured",
			message="OpenAI SDK not installed. Add 'openai' dependency.",
		) from exc
	# Retries are left to the caller of the endpoint.
	return AsyncOpenAI(api_key=api_key, timeout=timeout_s, max_retries=0)


def _openai_input(messages: Sequence[ConversationMessage]) -> List[Dict[str, str]]:
	return [{"role": message.role, "content": message.content} for message in messages]


def _extract_response_text(response: Any) -> str:
	output_text = getattr(response, "output_text", None)
	if isinstance(output_text, str) and output_text.strip():
		return output_text.strip()

	output = getattr(response, "output", None)
	if not isinstance(output, list):
		return ""
	parts: List[str] = []
	for item in output:
		content = getattr(item, "content", None)
		if content is None and isinstance(item, dict):
			content = item.get("content")
		if not isinstance(content, list):
			continue
		for chunk in content:
			text = getattr(chunk, "text", None)
			if text is None and isinstance(chunk, dict):
				text = chunk.get("text")
			if isinstance(text, str) and text.strip():
				parts.append(text.strip())
	return "\n".join(parts).strip()


def _openai_error(exc: Exception) -> GatewayError:
	name = exc.__class__.__name__
	if isinstance(exc, TimeoutError) or name == "APITimeoutError":
		return GatewayError(code="gateway_timeout", message="Model provider timed out.")
	return GatewayError(code="gateway_error", message="Model provider request failed.")


async def complete(messages: Sequence[ConversationMessage], *, model: Optional[str] = None) -> str:
	"""Send ``messages`` to the model and return its raw output text.

	The call is bounded by ``GPCAL_OPENAI_TIMEOUT_S``. On expiry the pending
	request is cancelled, which closes its connection, and ``gateway_timeout``
	is raised; a reply can never be delivered after the deadline.
	"""
	api_key = _openai_api_key()
	if not api_key:
		raise GatewayError(
			code="gateway_unconfigured",
			message="OpenAI API key not configured. Set OPENAI_API_KEY.",
		)
	timeout_s = _openai_timeout()
	model_name = model or openai_model()
	client = _build_openai_client(api_key=api_key, timeout_s=timeout_s)
	try:
		response = await asyncio.wait_for(
			client.responses.create(model=model_name, input=_openai_input(messages)),
			timeout=timeout_s,
		)
	except asyncio.TimeoutError as exc:
		logger.warning("gateway_timeout model=%s timeout_s=%.1f", model_name, timeout_s)
		raise GatewayError(code="gateway_timeout", message="Model provider timed out.") from exc
	except Exception as exc:
		error = _openai_error(exc)
		logger.warning("%s model=%s error=%s", error.code, model_name, exc.__class__.__name__)
		raise error from exc
	finally:
		await client.close()

	raw = _extract_response_text(response)
	if not raw:
		logger.warning("gateway_empty_response model=%s", model_name)
		raise GatewayError(code="gateway_empty_response", message="Model provider returned no usable output.")
	logger.debug("gateway_output model=%s text=%r", model_name, raw)
	return raw
