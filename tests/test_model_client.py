import json
import os
import sys
import unittest

import httpx


ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from app.model_client import ChatCompletionsClient
from errors import ModelInvocationError


def _client(handler, **kwargs) -> ChatCompletionsClient:
    http_client = httpx.Client(transport=httpx.MockTransport(handler))
    options = {"api_key": "sk-test", "base_url": "https://llm.local", "model": "default-model", "timeout": 5}
    options.update(kwargs)
    return ChatCompletionsClient(http_client=http_client, **options)


class TestChatCompletionsClient(unittest.TestCase):
    def test_posts_prompt_and_returns_text(self) -> None:
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("authorization")
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": "Hello"}}]})

        result = _client(handler, temperature=0.5).generate("Say hi", model="other-model")
        self.assertEqual(result.text, "Hello")
        self.assertEqual(result.raw_response["choices"][0]["message"]["content"], "Hello")
        self.assertEqual(seen["url"], "https://llm.local/v1/chat/completions")
        self.assertEqual(seen["auth"], "Bearer sk-test")
        self.assertEqual(seen["body"]["model"], "other-model")
        self.assertEqual(seen["body"]["temperature"], 0.5)
        self.assertEqual(seen["body"]["messages"], [{"role": "user", "content": "Say hi"}])

    def test_base_url_with_version_suffix(self) -> None:
        client = _client(lambda request: httpx.Response(200), base_url="https://llm.local/v1/")
        self.assertEqual(client._url("/chat/completions"), "https://llm.local/v1/chat/completions")

    def test_content_parts_are_joined(self) -> None:
        def handler(request):
            content = [{"type": "text", "text": "a"}, {"type": "text", "text": "b"}]
            return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})

        self.assertEqual(_client(handler).generate("x").text, "ab")

    def test_http_error_status(self) -> None:
        client = _client(lambda request: httpx.Response(429, text="slow down"))
        with self.assertRaises(ModelInvocationError) as ctx:
            client.generate("x")
        self.assertEqual(ctx.exception.detail["status"], 429)
        self.assertEqual(ctx.exception.code, "MODEL_INVOCATION_FAILED")

    def test_transport_error(self) -> None:
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with self.assertRaises(ModelInvocationError):
            _client(handler).generate("x")

    def test_timeout(self) -> None:
        def handler(request):
            raise httpx.ReadTimeout("too slow", request=request)

        with self.assertRaises(ModelInvocationError) as ctx:
            _client(handler).generate("x")
        self.assertEqual(ctx.exception.message, "Model request timed out")

    def test_bad_shapes(self) -> None:
        for response in (
            httpx.Response(200, text="not json"),
            httpx.Response(200, json={"choices": []}),
            httpx.Response(200, json={"choices": [{"message": {"content": "   "}}]}),
        ):
            with self.subTest(body=response.text):
                with self.assertRaises(ModelInvocationError):
                    _client(lambda request, r=response: r).generate("x")

    def test_missing_api_key(self) -> None:
        calls = []
        client = _client(lambda request: calls.append(request) or httpx.Response(200), api_key="")
        self.assertFalse(client.configured())
        with self.assertRaises(ModelInvocationError):
            client.generate("x")
        self.assertEqual(calls, [])


if __name__ == "__main__":
    unittest.main()
