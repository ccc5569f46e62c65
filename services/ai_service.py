import json
import random
import asyncio
from typing import List, Dict, Optional, Tuple
import httpx
from core.config import settings
from core.logger import logger

DIFFICULTY_DEFINITIONS = {
    "easy": "Basic understanding and recall of fundamental concepts. Questions should test basic knowledge, "
            "use simpler language, and have more obvious correct answers.",
    "medium": "Application and analysis of concepts. Questions should require deeper understanding, involve "
              "application of concepts to scenarios, and have less obvious answer choices.",
    "hard": "Evaluation, synthesis, and complex problem solving. Questions should challenge with advanced "
            "concepts, require critical thinking, and have nuanced answer choices that require careful analysis.",
}

SYSTEM_PROMPT = """You are a practice quiz generator for an e-learning platform.

Return ONLY the following JSON format, nothing else:
{
  "questions": [
    {
      "question": "Question text",
      "options": ["Option A", "Option B", "Option C", "Option D"],
      "correct_answer": "The option text that is correct (must be one of the options)"
    }
  ]
}

Every question has exactly 4 distinct options. Question text max 300 chars, options max 120 chars."""


class AIService:
    """Practice question generation through the Groq chat completions API."""

    BATCH_SIZE = 15

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = settings.GROQ_API_KEY
        self.model = settings.GROQ_MODEL
        self.base_url = settings.GROQ_BASE_URL
        self._transport = transport

    def _log_rate_limits(self, headers: httpx.Headers):
        """Extract and log Groq rate limit information."""
        remaining_requests = headers.get("x-ratelimit-remaining-requests")
        remaining_tokens = headers.get("x-ratelimit-remaining-tokens")

        if remaining_requests or remaining_tokens:
            logger.info(
                "Groq rate limits",
                rem_req=remaining_requests,
                rem_tok=remaining_tokens,
                reset_req=headers.get("x-ratelimit-reset-requests"),
                reset_tok=headers.get("x-ratelimit-reset-tokens")
            )

    def build_prompt(self, course_title: str, course_description: str, difficulty: str,
                     count: int, avoid: List[str]) -> str:
        prompt = (
            f"Generate {count} multiple-choice questions about {course_title}.\n"
            f"The questions should be of {difficulty} difficulty where:\n\n"
            f"{DIFFICULTY_DEFINITIONS[difficulty]}\n\n"
            f"Use the following course description as the main source of knowledge for questions:\n"
            f"\"{course_description}\"\n"
        )
        if avoid:
            listed = "\n".join(f"{i}. {q}" for i, q in enumerate(avoid, 1))
            prompt += f"\nIMPORTANT: Do NOT generate any of these previously asked questions:\n{listed}\n"
        prompt += (
            "\nCreate questions that test understanding of key concepts from this course, "
            "are unique, and include plausible distractors for wrong options."
        )
        return prompt

    async def generate_practice(self, course_title: str, course_description: str, difficulty: str,
                                count: int, avoid: Optional[List[str]] = None) -> Tuple[List[Dict], Optional[str]]:
        """
        Generate `count` practice questions in batches.
        Returns (questions, error); questions are {question, options, correct_answer}.
        """
        if not self.api_key:
            return [], "GROQ_API_KEY is not configured"

        avoid = list(avoid or [])
        all_questions: List[Dict] = []

        async with httpx.AsyncClient(timeout=180.0, transport=self._transport) as client:
            while len(all_questions) < count:
                to_generate = min(self.BATCH_SIZE, count - len(all_questions))
                # Questions from earlier batches are excluded too
                exclude = (avoid + [q["question"] for q in all_questions])[:settings.PRACTICE_EXCLUDE_LIMIT]
                user_prompt = self.build_prompt(course_title, course_description, difficulty, to_generate, exclude)

                try:
                    response = await client.post(
                        self.base_url,
                        headers={
                            "Authorization": f"Bearer {self.api_key}",
                            "Content-Type": "application/json"
                        },
                        json={
                            "model": self.model,
                            "messages": [
                                {"role": "system", "content": SYSTEM_PROMPT},
                                {"role": "user", "content": user_prompt}
                            ],
                            "response_format": {"type": "json_object"},
                            "temperature": 0.7,
                            "max_completion_tokens": 4096
                        }
                    )
                except httpx.HTTPError as e:
                    logger.error("Groq request failed", error=str(e))
                    if all_questions:
                        break
                    return [], f"Generation error: {e}"

                self._log_rate_limits(response.headers)

                if response.status_code != 200:
                    logger.error("Groq API error", status=response.status_code, error=response.text[:500])
                    if all_questions:
                        break  # Return what we have
                    return [], f"API error: {response.status_code}"

                try:
                    content = response.json()["choices"][0]["message"]["content"]
                except (KeyError, IndexError, ValueError) as e:
                    logger.error("Unexpected Groq response shape", error=str(e))
                    if all_questions:
                        break
                    return [], "Unexpected response from AI provider"

                validated = self._validate_questions(self._parse_response(content))
                if not validated:
                    # Nothing usable in this batch; stop instead of looping forever
                    break
                all_questions.extend(validated)

                if count > 30:
                    await asyncio.sleep(1)

        if not all_questions:
            return [], "Failed to generate any questions"

        logger.info("Practice questions generated", course=course_title, difficulty=difficulty,
                    total=len(all_questions))
        return all_questions[:count], None

    def _parse_response(self, content: str) -> List[Dict]:
        """Parse JSON from the AI response, tolerating code fences and bare arrays."""
        content = content.strip()

        if content.startswith("```"):
            content = content.strip("`")
            if content.startswith("json"):
                content = content[4:]
            content = content.strip()

        try:
            parsed = json.loads(content)
        except json.JSONDecodeError:
            start, end = content.find("["), content.rfind("]") + 1
            if start == -1 or end <= start:
                logger.error("Failed to parse AI response", content=content[:500])
                return []
            try:
                parsed = json.loads(content[start:end])
            except json.JSONDecodeError:
                logger.error("Failed to parse AI response", content=content[:500])
                return []

        if isinstance(parsed, dict):
            parsed = parsed.get("questions", [])
        return parsed if isinstance(parsed, list) else []

    def _validate_questions(self, questions: List[Dict]) -> List[Dict]:
        """Keep questions with 4 options and a correct answer that is one of them."""
        validated = []

        for q in questions:
            if not isinstance(q, dict):
                continue
            text = q.get("question")
            options = q.get("options")
            if not text or not isinstance(options, list) or len(options) < 4:
                continue

            options = [str(opt)[:120] for opt in options[:4]]
            correct = q.get("correct_answer")
            if correct is None and isinstance(q.get("correct_option_id"), int):
                idx = q["correct_option_id"]
                correct = options[idx] if 0 <= idx < len(options) else None
            correct = str(correct)[:120] if correct is not None else None

            if correct not in options or len(set(options)) != len(options):
                logger.warning("Question dropped during validation", question=str(text)[:80])
                continue

            random.shuffle(options)
            validated.append({
                "question": str(text)[:300],
                "options": options,
                "correct_answer": correct,
            })

        return validated
