from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, ValidationError, field_validator

from gpcal.backend import constants


class ApiError(BaseModel):
	model_config = ConfigDict(extra="forbid")

	code: str
	message: str
	evidence: List[str] = Field(default_factory=list)


class ApiEnvelope(BaseModel):
	model_config = ConfigDict(extra="allow")

	ok: bool
	generated_at: str
	request_id: Optional[str] = None
	data: Optional[Dict[str, Any]] = None
	error: Optional[ApiError] = None


class ConversationMessage(BaseModel):
	model_config = ConfigDict(extra="forbid", frozen=True)

	role: Literal["system", "user", "assistant"]
	content: StrictStr = Field(..., min_length=1)


class InsightRequest(BaseModel):
	"""Body of ``POST /api/gpcal-ai``.

	``semester`` is forwarded to the model verbatim; only its keys are checked.
	"""

	model_config = ConfigDict(extra="forbid")

	input: StrictStr = Field(..., min_length=1, description="Free-text intent of the user.")
	semester: Dict[StrictStr, Any] = Field(..., description="Pre-computed academic data, opaque here.")
	history: Optional[List[ConversationMessage]] = Field(
		default=None,
		max_length=constants.MAX_HISTORY_MESSAGES,
		description="Most recent turns of the conversation, oldest first.",
	)
	stage: StrictInt = Field(default=constants.MIN_STAGE, ge=constants.MIN_STAGE, le=constants.MAX_STAGE)

	@field_validator("semester")
	@classmethod
	def _semester_keys_not_empty(cls, value: Dict[str, Any]) -> Dict[str, Any]:
		for key in value:
			if not key:
				raise ValueError("semester keys must be non-empty strings")
		return value


class AIResult(BaseModel):
	model_config = ConfigDict(extra="forbid")

	reply: StrictStr = Field(..., min_length=1)
	suggested_improvement: Optional[StrictStr] = Field(default=None, min_length=1)

	def to_payload(self) -> Dict[str, str]:
		return self.model_dump(exclude_none=True)


class InsightRequestError(ValueError):
	def __init__(self, message: str, *, evidence: Optional[List[str]] = None):
		super().__init__(message)
		self.message = message
		self.evidence = evidence or []


def _evidence(exc: ValidationError) -> List[str]:
	evidence = []
	for issue in exc.errors():
		loc = ".".join(str(part) for part in issue.get("loc", []))
		msg = issue.get("msg", "Invalid request.")
		evidence.append(f"{loc}: {msg}" if loc else msg)
	return evidence


def parse_insight_request(raw: Union[bytes, str]) -> InsightRequest:
	"""Validate a raw JSON body into an :class:`InsightRequest`.

	Any deviation (invalid JSON, a non-object body, missing, mistyped or
	unexpected fields) raises :class:`InsightRequestError`; a partially
	populated request is never returned.
	"""
	if not raw or not raw.strip():
		raise InsightRequestError("Request body is empty.", evidence=["body: empty"])
	try:
		return InsightRequest.model_validate_json(raw)
	except ValidationError as exc:
		raise InsightRequestError("Invalid request body.", evidence=_evidence(exc)) from exc
