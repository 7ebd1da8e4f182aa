import asyncio
import os
from unittest import TestCase
from unittest.mock import patch

from gpcal.backend.schemas import ConversationMessage
from gpcal.backend.services import gateway_service


class _FakeResponses:
	def __init__(self, *, output_text=None, output=None, error=None, delay_s: float = 0.0):
		self._output_text = output_text
		self._output = output
		self._error = error
		self._delay_s = delay_s
		self.calls = []
		self.cancelled = False
		self.completed = False

	async def create(self, **kwargs):
		self.calls.append(kwargs)
		if self._delay_s:
			try:
				await asyncio.sleep(self._delay_s)
			except asyncio.CancelledError:
				self.cancelled = True
				raise
		if self._error is not None:
			raise self._error
		self.completed = True
		return type("FakeResponse", (), {"output_text": self._output_text, "output": self._output})()


class _FakeClient:
	def __init__(self, **kwargs):
		self.responses = _FakeResponses(**kwargs)
		self.closed = False

	async def close(self) -> None:
		self.closed = True


_MESSAGES = [
	ConversationMessage(role="system", content="You are gpcal, a GPA advisor."),
	ConversationMessage(role="user", content='{"intent": "how am I doing"}'),
]


def _complete(client: _FakeClient, env=None, **kwargs):
	values = {"OPENAI_API_KEY": "test-key", "GPCAL_OPENAI_TIMEOUT_S": "2"}
	values.update(env or {})
	with patch.dict(os.environ, values, clear=False), patch(
		"gpcal.backend.services.gateway_service._build_openai_client", return_value=client
	):
		return asyncio.run(gateway_service.complete(_MESSAGES, **kwargs))


class GatewayServiceTests(TestCase):
	def test_returns_output_text_and_sends_ordered_messages(self) -> None:
		client = _FakeClient(output_text='{"reply": "ok"}')
		raw = _complete(client, env={"GPCAL_OPENAI_MODEL": "gpt-4o-mini"})
		self.assertEqual(raw, '{"reply": "ok"}')
		call = client.responses.calls[0]
		self.assertEqual(call["model"], "gpt-4o-mini")
		self.assertEqual(
			call["input"],
			[
				{"role": "system", "content": "You are gpcal, a GPA advisor."},
				{"role": "user", "content": '{"intent": "how am I doing"}'},
			],
		)
		self.assertTrue(client.closed)

	def test_explicit_model_overrides_default(self) -> None:
		client = _FakeClient(output_text='{"reply": "ok"}')
		_complete(client, model="gpt-4.1")
		self.assertEqual(client.responses.calls[0]["model"], "gpt-4.1")

	def test_text_is_collected_from_output_parts(self) -> None:
		output = [{"content": [{"type": "output_text", "text": '{"reply": "from parts"}'}]}]
		client = _FakeClient(output_text="", output=output)
		self.assertEqual(_complete(client), '{"reply": "from parts"}')

	def test_deadline_cancels_call_and_raises_timeout(self) -> None:
		client = _FakeClient(output_text='{"reply": "too late"}', delay_s=5.0)
		with self.assertRaises(gateway_service.GatewayError) as ctx:
			_complete(client, env={"GPCAL_OPENAI_TIMEOUT_S": "0.05"})
		self.assertEqual(ctx.exception.code, "gateway_timeout")
		self.assertEqual(ctx.exception.status_code, 500)
		self.assertTrue(client.responses.cancelled)
		self.assertFalse(client.responses.completed)
		self.assertTrue(client.closed)

	def test_sdk_timeout_maps_to_timeout(self) -> None:
		class APITimeoutError(Exception):
			pass

		client = _FakeClient(error=APITimeoutError("timeout"))
		with self.assertRaises(gateway_service.GatewayError) as ctx:
			_complete(client)
		self.assertEqual(ctx.exception.code, "gateway_timeout")

	def test_sdk_failure_maps_to_gateway_error(self) -> None:
		class APIError(Exception):
			pass

		client = _FakeClient(error=APIError("api failure"))
		with self.assertRaises(gateway_service.GatewayError) as ctx:
			_complete(client)
		self.assertEqual(ctx.exception.code, "gateway_error")
		self.assertEqual(ctx.exception.status_code, 500)
		self.assertTrue(client.closed)

	def test_empty_output_is_an_error(self) -> None:
		for output_text in (None, "", "   "):
			with self.subTest(output_text=output_text):
				client = _FakeClient(output_text=output_text)
				with self.assertRaises(gateway_service.GatewayError) as ctx:
					_complete(client)
				self.assertEqual(ctx.exception.code, "gateway_empty_response")

	def test_missing_key_is_unconfigured(self) -> None:
		client = _FakeClient(output_text='{"reply": "ok"}')
		with patch.dict(os.environ, {"OPENAI_API_KEY": "", "OPENAI_APIKEY": ""}, clear=False):
			with self.assertRaises(gateway_service.GatewayError) as ctx:
				asyncio.run(gateway_service.complete(_MESSAGES))
		self.assertEqual(ctx.exception.code, "gateway_unconfigured")
		self.assertEqual(client.responses.calls, [])

	def test_legacy_key_variable_is_accepted(self) -> None:
		client = _FakeClient(output_text='{"reply": "ok"}')
		raw = _complete(client, env={"OPENAI_API_KEY": "", "OPENAI_APIKEY": "legacy-key"})
		self.assertEqual(raw, '{"reply": "ok"}')

	def test_invalid_timeout_is_unconfigured(self) -> None:
		for value in ("fast", "0", "-3"):
			with self.subTest(value=value):
				client = _FakeClient(output_text='{"reply": "ok"}')
				with self.assertRaises(gateway_service.GatewayError) as ctx:
					_complete(client, env={"GPCAL_OPENAI_TIMEOUT_S": value})
				self.assertEqual(ctx.exception.code, "gateway_unconfigured")

	def test_provider_status_reports_readiness(self) -> None:
		with patch.dict(
			os.environ,
			{"OPENAI_API_KEY": "test-key", "GPCAL_OPENAI_TIMEOUT_S": "30", "GPCAL_OPENAI_MODEL": ""},
			clear=False,
		):
			status = gateway_service.provider_status()
		self.assertEqual(status["model"], "gpt-4.1-mini")
		self.assertEqual(status["timeout_s"], 30.0)
		self.assertTrue(status["provider_ready"])
		self.assertEqual(status["provider_warnings"], [])

		with patch.dict(os.environ, {"OPENAI_API_KEY": "", "OPENAI_APIKEY": ""}, clear=False):
			status = gateway_service.provider_status()
		self.assertFalse(status["provider_ready"])
		self.assertGreaterEqual(len(status["provider_warnings"]), 1)
