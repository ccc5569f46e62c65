import json
import re
import unittest
from unittest.mock import patch

import httpx

from core.config import settings
from services.ai_service import AIService


def groq_reply(payload, status=200, headers=None):
    body = {"choices": [{"message": {"content": payload if isinstance(payload, str) else json.dumps(payload)}}]}
    return httpx.Response(status, json=body, headers=headers or {})


def question(n, **overrides):
    q = {"question": f"Question {n}?", "options": ["A", "B", "C", "D"], "correct_answer": "B"}
    q.update(overrides)
    return q


class TestAIService(unittest.IsolatedAsyncioTestCase):
    async def test_generate_practice_request_shape(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return groq_reply({"questions": [question(1)]},
                              headers={"x-ratelimit-remaining-requests": "99"})

        service = AIService(transport=httpx.MockTransport(handler))
        questions, error = await service.generate_practice("Math", "Numbers", "easy", 1, ["Old question?"])

        self.assertIsNone(error)
        self.assertEqual(len(questions), 1)
        self.assertEqual(questions[0]["correct_answer"], "B")
        self.assertEqual(sorted(questions[0]["options"]), ["A", "B", "C", "D"])

        self.assertEqual(seen["auth"], f"Bearer {settings.GROQ_API_KEY}")
        self.assertEqual(seen["body"]["model"], settings.GROQ_MODEL)
        self.assertEqual(seen["body"]["response_format"], {"type": "json_object"})
        user_prompt = seen["body"]["messages"][1]["content"]
        self.assertIn("Generate 1 multiple-choice questions about Math", user_prompt)
        self.assertIn("1. Old question?", user_prompt)

    async def test_large_requests_are_batched(self):
        calls = []

        def handler(request):
            prompt = json.loads(request.content)["messages"][1]["content"]
            n = int(re.search(r"Generate (\d+) multiple-choice", prompt).group(1))
            offset = sum(calls)
            calls.append(n)
            return groq_reply({"questions": [question(offset + i) for i in range(n)]})

        service = AIService(transport=httpx.MockTransport(handler))
        questions, error = await service.generate_practice("Math", "Numbers", "medium", 20)

        self.assertIsNone(error)
        self.assertEqual(calls, [15, 5])
        self.assertEqual(len(questions), 20)
        self.assertEqual(len({q["question"] for q in questions}), 20)

    async def test_http_error_without_questions(self):
        service = AIService(transport=httpx.MockTransport(lambda request: httpx.Response(500, text="boom")))
        questions, error = await service.generate_practice("Math", "Numbers", "hard", 5)
        self.assertEqual(questions, [])
        self.assertEqual(error, "API error: 500")

    async def test_missing_api_key(self):
        with patch.object(settings, "GROQ_API_KEY", ""):
            service = AIService()
        questions, error = await service.generate_practice("Math", "Numbers", "hard", 5)
        self.assertEqual(questions, [])
        self.assertEqual(error, "GROQ_API_KEY is not configured")

    async def test_unusable_output(self):
        service = AIService(transport=httpx.MockTransport(lambda request: groq_reply("not json at all")))
        questions, error = await service.generate_practice("Math", "Numbers", "easy", 5)
        self.assertEqual(questions, [])
        self.assertEqual(error, "Failed to generate any questions")


class TestResponseHandling(unittest.TestCase):
    def setUp(self):
        self.service = AIService()

    def test_parse_code_fence(self):
        content = "```json\n" + json.dumps({"questions": [question(1)]}) + "\n```"
        self.assertEqual(len(self.service._parse_response(content)), 1)

    def test_parse_bare_array_in_text(self):
        content = "Here you go: " + json.dumps([question(1), question(2)]) + " enjoy"
        self.assertEqual(len(self.service._parse_response(content)), 2)

    def test_validate_drops_bad_questions(self):
        raw = [
            question(1),
            question(2, options=["A", "B", "C"]),
            question(3, correct_answer="Z"),
            question(4, options=["A", "A", "B", "C"], correct_answer="A"),
            "garbage",
        ]
        validated = self.service._validate_questions(raw)
        self.assertEqual([q["question"] for q in validated], ["Question 1?"])

    def test_validate_converts_option_index(self):
        raw = [{"question": "Q?", "options": ["w", "x", "y", "z"], "correct_option_id": 2}]
        self.assertEqual(self.service._validate_questions(raw)[0]["correct_answer"], "y")

    def test_validate_truncates_long_text(self):
        raw = [question(1, question="Q" * 500, options=["A" * 200, "B", "C", "D"], correct_answer="B")]
        validated = self.service._validate_questions(raw)[0]
        self.assertEqual(len(validated["question"]), 300)
        self.assertIn("A" * 120, validated["options"])


if __name__ == "__main__":
    unittest.main()
