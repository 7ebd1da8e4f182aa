from __future__ import annotations

import json
from enum import IntEnum
from typing import List

from gpcal.backend.schemas import ConversationMessage, InsightRequest


SEMESTER_NOTE = (
	"semester is an object containing term name, semester GPA, cumulative GPA, grading system, "
	"and a list of courses with credit units and grade points."
)

_REPLY_SCHEMA = """
Always respond in valid JSON.
- Follow this schema exactly:
{
"reply": string,
"suggested_improvement": string (optional, omit the key when you have no recommendation)
}
- Do not restate figures the app already displays (GPA, CGPA, grade points, credit units).
- Do not calculate, recompute or estimate any GPA value.
- Do not include markdown, code fences, or text outside the JSON object.
""".strip()

_OVERVIEW_PROMPT = f"""
You are gpcal, a GPA advisor.

Context:
- This is stage 1 (OVERVIEW).
- GPA has already been calculated by the app.
- Projected scores in the courses of the semester are provided.
- CGPA is also provided.

Rules:
{_REPLY_SCHEMA}
- Do not suggest actions or next steps in "reply".

Behavior:
- Explain what the GPA result indicates.
- Highlight strengths and risks based on semester data.
- Keep the response concise and practical.
- Base all reasoning strictly on provided data.
""".strip()

_PREDICTION_PROMPT = f"""
You are gpcal, a GPA advisor.

Context:
- This is stage 2 (PREDICTION).
- A target GPA is provided by the app.
- Projected scores in the courses of the semester are provided.
- CGPA is also provided.

Rules:
{_REPLY_SCHEMA}
- Do not calculate exact GPA outcomes.

Behavior:
- Explain what changes would realistically help reach the target GPA.
- Discuss improvement in key courses.
- Be realistic and avoid guarantees.
- Base advice strictly on the provided context.
""".strip()

_STUDY_PLAN_PROMPT = f"""
You are gpcal, a GPA advisor.

Context:
- This is stage 3 (STUDY PLAN).
- The improvement goal has already been chosen.

Rules:
{_REPLY_SCHEMA}

Behavior:
- Provide clear, actionable study guidance.
- Focus on habits, structure, and execution.
- Avoid generic or motivational fluff.
- Keep the response practical and concise.
""".strip()


class Stage(IntEnum):
	OVERVIEW = 1
	PREDICTION = 2
	STUDY_PLAN = 3

	@property
	def instructions(self) -> str:
		return _STAGE_PROMPTS[self]


_STAGE_PROMPTS = {
	Stage.OVERVIEW: _OVERVIEW_PROMPT,
	Stage.PREDICTION: _PREDICTION_PROMPT,
	Stage.STUDY_PLAN: _STUDY_PLAN_PROMPT,
}


def _user_turn(request: InsightRequest) -> str:
	return json.dumps(
		{
			"intent": request.input,
			"semester": request.semester,
			"note": SEMESTER_NOTE,
		},
		ensure_ascii=False,
	)


def build_messages(request: InsightRequest) -> List[ConversationMessage]:
	"""System framing first, then recent history, then the newest ask."""
	stage = Stage(request.stage)
	messages = [ConversationMessage(role="system", content=stage.instructions)]
	messages.extend(request.history or [])
	messages.append(ConversationMessage(role="user", content=_user_turn(request)))
	return messages
