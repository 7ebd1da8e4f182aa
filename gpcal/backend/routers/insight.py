from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from gpcal.backend import constants
from gpcal.backend.schemas import AIResult, InsightRequestError, parse_insight_request
from gpcal.backend.services import gateway_service, insight_service, rate_limit_service


logger = logging.getLogger("gpcal.routers.insight")

router = APIRouter(prefix="/api", tags=["insight"])


# Only POST is registered; Starlette answers any other method with 405
# before this handler, and therefore the rate limiter, runs.
@router.post(
	"/gpcal-ai",
	response_model=AIResult,
	response_model_exclude_none=True,
	responses={429: {"description": "Too many requests"}},
)
async def gpcal_ai(request: Request):
	client_key = rate_limit_service.client_key_from_headers(request.headers)
	request.state.client_key = client_key

	decision = rate_limit_service.admit(client_key)
	if not decision.allowed:
		return JSONResponse(
			status_code=429,
			content=constants.RATE_LIMITED_BODY,
			headers={"Retry-After": str(decision.retry_after_s)},
		)

	body = await request.body()
	try:
		payload = parse_insight_request(body)
	except InsightRequestError as exc:
		logger.info("invalid_request client=%s evidence=%s", client_key, exc.evidence)
		raise HTTPException(
			status_code=400,
			detail={"code": "invalid_request_body", "message": exc.message, "evidence": exc.evidence},
		) from exc

	try:
		result = await insight_service.generate_insight(payload, client_key=client_key)
	except gateway_service.GatewayError as exc:
		raise HTTPException(
			status_code=exc.status_code,
			detail={"code": exc.code, "message": "Ai request failed."},
		) from exc

	return JSONResponse(content=result.to_payload(), headers=constants.NO_STORE_HEADERS)
