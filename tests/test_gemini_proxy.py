"""
Tests for the generateContent pass-through proxy and request helpers.
"""

import unittest
from unittest.mock import MagicMock

from config import ReaderConfig
from core.errors import ConfigurationError, InterpretationError
from llm.gemini_client import GeminiProxy, MISSING_KEY_MESSAGE
from llm.interpretation import (
    build_generation_request,
    extract_error_message,
    extract_response_text,
)


def make_response(status_code=200, body=None, text=""):
    response = MagicMock()
    response.status_code = status_code
    if isinstance(body, Exception):
        response.json.side_effect = body
    else:
        response.json.return_value = body
    response.text = text
    return response


class TestGeminiProxy(unittest.TestCase):

    def setUp(self):
        self.session = MagicMock()
        self.payload = {"contents": [{"parts": [{"text": "hi"}]}], "generationConfig": {"temperature": 0.7}}

    def test_missing_key_returns_500_without_network_call(self):
        proxy = GeminiProxy(api_key="", model="gemini-3-flash-preview", session=self.session)

        for _ in range(3):
            result = proxy.forward(self.payload)
            self.assertEqual(result.status_code, 500)
            self.assertEqual(result.body, {"error": MISSING_KEY_MESSAGE})

        self.session.post.assert_not_called()

    def test_check_configured_raises(self):
        proxy = GeminiProxy(api_key="", model="m", session=self.session)
        with self.assertRaises(ConfigurationError):
            proxy.check_configured()

    def test_forwards_payload_unchanged_with_credential(self):
        upstream = {"candidates": [{"content": {"parts": [{"text": "ok"}]}}]}
        self.session.post.return_value = make_response(200, upstream)
        proxy = GeminiProxy(api_key="secret", model="gemini-test", session=self.session)

        result = proxy.forward(self.payload)

        self.assertEqual(result.status_code, 200)
        self.assertEqual(result.body, upstream)
        self.assertTrue(result.ok)
        args, kwargs = self.session.post.call_args
        self.assertEqual(
            args[0],
            "https://generativelanguage.googleapis.com/v1beta/models/gemini-test:generateContent"
        )
        self.assertEqual(kwargs["json"], self.payload)
        self.assertEqual(kwargs["headers"]["x-goog-api-key"], "secret")
        self.assertNotIn("timeout", kwargs)

    def test_upstream_error_status_is_relayed(self):
        upstream = {"error": {"code": 429, "message": "Resource exhausted"}}
        self.session.post.return_value = make_response(429, upstream)
        proxy = GeminiProxy(api_key="secret", model="m", session=self.session)

        result = proxy.forward(self.payload)

        self.assertEqual(result.status_code, 429)
        self.assertEqual(result.body, upstream)
        self.assertFalse(result.ok)

    def test_non_json_upstream_body_becomes_error_body(self):
        self.session.post.return_value = make_response(502, ValueError("no json"), text="Bad Gateway")
        proxy = GeminiProxy(api_key="secret", model="m", session=self.session)

        result = proxy.forward(self.payload)

        self.assertEqual(result.status_code, 502)
        self.assertEqual(result.body, {"error": {"message": "Bad Gateway"}})

    def test_from_config(self):
        proxy = GeminiProxy.from_config(ReaderConfig(api_key="k", model="gemini-x"))
        self.assertTrue(proxy.is_configured)
        self.assertTrue(proxy.endpoint.endswith("/gemini-x:generateContent"))


class TestInterpretationHelpers(unittest.TestCase):

    def test_generation_request_shape(self):
        request = build_generation_request("大学之道")

        self.assertEqual(request["generationConfig"], {"temperature": 0.7, "maxOutputTokens": 2048})
        prompt = request["contents"][0]["parts"][0]["text"]
        self.assertIn("原文：\n大学之道", prompt)
        for label in ("## 一、白话文解释", "## 二、家庭教育智慧", "## 三、普通家长案例", "## 四、智慧家长案例"):
            self.assertIn(label, prompt)

    def test_extract_response_text(self):
        body = {"candidates": [{"content": {"parts": [{"text": "解读"}]}}]}
        self.assertEqual(extract_response_text(body), "解读")

    def test_extract_response_text_malformed(self):
        for body in (None, {}, {"candidates": []}, {"candidates": [{"content": {"parts": [{}]}}]}):
            with self.assertRaises(InterpretationError) as ctx:
                extract_response_text(body)
            self.assertEqual(ctx.exception.message, "AI响应格式异常")

    def test_extract_error_message(self):
        self.assertEqual(extract_error_message({"error": {"message": "quota"}}), "quota")
        self.assertEqual(extract_error_message({"error": "API key not configured"}), "API请求失败")
        self.assertEqual(extract_error_message(None), "API请求失败")


if __name__ == '__main__':
    unittest.main()
