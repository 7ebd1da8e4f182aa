from __future__ import annotations

import logging
import time

from gpcal.backend.schemas import AIResult, InsightRequest
from gpcal.backend.services import gateway_service, prompt_service, reconcile_service


logger = logging.getLogger("gpcal.insight")


async def generate_insight(request: InsightRequest, *, client_key: str) -> AIResult:
	"""Run one validated request through prompt assembly, the model and reconciliation.

	``GatewayError`` propagates to the caller; reconciliation never fails.
	"""
	started_at = time.perf_counter()
	messages = prompt_service.build_messages(request)
	try:
		raw = await gateway_service.complete(messages)
	except gateway_service.GatewayError as exc:
		logger.error(
			"insight_failed client=%s stage=%d kind=%s",
			client_key,
			request.stage,
			exc.code,
		)
		raise
	result = reconcile_service.reconcile(raw, client_key=client_key, stage=request.stage)
	logger.info(
		"insight_ok client=%s stage=%d history=%d suggestion=%s elapsed_ms=%.1f",
		client_key,
		request.stage,
		len(request.history or []),
		result.suggested_improvement is not None,
		(time.perf_counter() - started_at) * 1000,
	)
	return result
