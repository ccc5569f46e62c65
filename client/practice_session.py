"""
Controller for one timed practice attempt.

States:
    IDLE -> IN_PROGRESS <-> CONFIRMING -> SUBMITTING -> COMPLETED
                                              |
                                              v
                                            FAILED -> CONFIRMING (manual retry)

Timer expiry jumps straight to SUBMITTING from any timed state.
"""
import asyncio
import enum
from typing import Awaitable, Callable, List, Optional

import structlog

from client.api import PracticeClient
from client.config import client_settings
from client.exceptions import ClientError
from client.task_manager import TaskManager, task_manager
from schemas.practice import AnswerIn, PracticeOut
from utils.scoring import option_index, score_percent

logger = structlog.get_logger()

Notifier = Callable[[str, str], None]
Confirm = Callable[[], Awaitable[bool]]


class SessionState(str, enum.Enum):
    IDLE = "idle"
    IN_PROGRESS = "in_progress"
    CONFIRMING = "confirming"
    SUBMITTING = "submitting"
    COMPLETED = "completed"
    FAILED = "failed"


# States in which the countdown keeps running
TIMED_STATES = (SessionState.IN_PROGRESS, SessionState.CONFIRMING, SessionState.FAILED)
# States in which answers may still change
ANSWERABLE_STATES = TIMED_STATES


class SubmitPrompt:
    """What the confirmation step shows before a manual submit."""

    def __init__(self, total: int, unanswered: int):
        self.total = total
        self.unanswered = unanswered

    @property
    def warning(self) -> Optional[str]:
        if not self.unanswered:
            return None
        return (f"You have {self.unanswered} unanswered question(s). "
                f"Are you sure you want to submit?")


def log_notify(level: str, message: str):
    """Default notifier: transient messages go to the structured log."""
    log = {"error": logger.error, "warning": logger.warning}.get(level, logger.info)
    log(message)


def format_clock(seconds: int) -> str:
    minutes, secs = divmod(max(0, seconds), 60)
    return f"{minutes:02d}:{secs:02d}"


class PracticeSession:
    def __init__(self, client: PracticeClient, practice_id: int, notify: Optional[Notifier] = None,
                 tick_seconds: float = 1.0, sync_every: Optional[int] = None,
                 tasks: Optional[TaskManager] = None):
        self.client = client
        self.practice_id = practice_id
        self.notify = notify or log_notify
        self.tick_seconds = tick_seconds
        self.sync_every = sync_every or client_settings.TIME_SYNC_INTERVAL_SECONDS
        self.tasks = tasks or task_manager

        self.state = SessionState.IDLE
        self.practice: Optional[PracticeOut] = None
        self.answers: List[Optional[int]] = []
        self.time_remaining = 0
        self.correct_answers: Optional[int] = None
        self.score: Optional[int] = None
        self.time_expired = False

        self._elapsed = 0
        self._auto_submitted = False
        self._countdown: Optional[asyncio.Task] = None

    @property
    def questions(self):
        return self.practice.questions if self.practice else []

    @property
    def unanswered(self) -> int:
        return sum(1 for a in self.answers if a is None)

    @property
    def timer_running(self) -> bool:
        return self._countdown is not None and not self._countdown.done()

    # Load / resume

    async def load(self) -> bool:
        """Fetch the attempt and either show stored results or start the countdown."""
        try:
            practice = await self.client.fetch_attempt(self.practice_id)
            if not practice.is_completed:
                practice = await self.client.start_attempt(self.practice_id)
        except ClientError as e:
            self.notify("error", f"Failed to load practice session: {e}")
            return False

        self.practice = practice
        if practice.is_completed:
            self._show_results(practice)
            if practice.time_expired:
                self.time_expired = True
                self.notify("warning", "Practice time has expired")
            return True

        self.answers = [None] * len(practice.questions)
        self.time_remaining = (
            practice.time_remaining
            or practice.time_limit
            or len(practice.questions) * client_settings.PRACTICE_SECONDS_PER_QUESTION
        )
        self.state = SessionState.IN_PROGRESS
        self._start_timer()
        logger.info("Practice session resumed", practice_id=self.practice_id, time_remaining=self.time_remaining)
        return True

    def _show_results(self, practice: PracticeOut):
        # Stored answers are option text; map each back to the first option with that text
        self.answers = [option_index(q.options, q.user_answer) for q in practice.questions]
        self.correct_answers = practice.correct_answers
        self.score = score_percent(practice.correct_answers, len(practice.questions))
        self.state = SessionState.COMPLETED

    # Countdown

    def _start_timer(self):
        if self.timer_running:
            return
        self._countdown = asyncio.create_task(
            self._run_countdown(), name=f"practice-countdown-{self.practice_id}"
        )
        self.tasks.register_task(self.practice_id, self._countdown)

    def _stop_timer(self):
        task, self._countdown = self._countdown, None
        if task is None:
            return
        if task is asyncio.current_task():
            # Expiry submit runs in this task; unregister so a reopen cannot cancel it
            self.tasks.release_task(self.practice_id, task)
            return
        self.tasks.cancel_task(self.practice_id)
        if not task.done():
            task.cancel()

    async def _run_countdown(self):
        while True:
            await asyncio.sleep(self.tick_seconds)
            if not await self.tick():
                break

    async def tick(self) -> bool:
        """Advance the countdown by one second. Returns False once the countdown should stop."""
        if self.state not in TIMED_STATES or self.time_remaining <= 0:
            return False

        self.time_remaining -= 1
        self._elapsed += 1
        if self._elapsed % self.sync_every == 0:
            self._sync_time()

        if self.time_remaining == 0:
            if not self._auto_submitted:
                self._auto_submitted = True
                self.notify("warning", "Time is up! Submitting your answers...")
                await self._submit()
            return False
        return True

    def _sync_time(self):
        seconds = self.time_remaining
        self.tasks.spawn(self._send_time(seconds), name=f"practice-sync-{self.practice_id}")

    async def _send_time(self, seconds: int):
        try:
            await self.client.update_remaining_time(self.practice_id, seconds)
        except ClientError as e:
            logger.warning("Time sync failed", practice_id=self.practice_id, time_remaining=seconds, error=str(e))

    # Answers

    def record_answer(self, question_index: int, option: int):
        if self.state not in ANSWERABLE_STATES:
            return
        if not 0 <= question_index < len(self.questions):
            raise ValueError(f"Question index {question_index} out of range")
        if not 0 <= option < len(self.questions[question_index].options):
            raise ValueError(f"Option index {option} out of range")
        self.answers[question_index] = option

    def build_payload(self) -> List[AnswerIn]:
        """Selected option text per answered question; unanswered ones are left out."""
        return [
            AnswerIn(question_id=q.id, answer=q.options[choice])
            for q, choice in zip(self.questions, self.answers)
            if choice is not None
        ]

    # Submit

    def request_submit(self) -> Optional[SubmitPrompt]:
        """First phase of a manual submit: open the confirmation step."""
        if self.state not in (SessionState.IN_PROGRESS, SessionState.FAILED, SessionState.CONFIRMING):
            return None
        self.state = SessionState.CONFIRMING
        return SubmitPrompt(len(self.questions), self.unanswered)

    def cancel_submit(self):
        if self.state == SessionState.CONFIRMING:
            self.state = SessionState.IN_PROGRESS

    async def confirm_submit(self):
        if self.state != SessionState.CONFIRMING:
            return
        await self._submit()

    async def _submit(self):
        if self.state in (SessionState.SUBMITTING, SessionState.COMPLETED):
            logger.debug("Submit ignored", practice_id=self.practice_id, state=self.state.value)
            return

        # Claim the submission before the network call so a second trigger is a no-op
        self.state = SessionState.SUBMITTING
        self._stop_timer()
        payload = self.build_payload()

        try:
            result = await self.client.submit_attempt(self.practice_id, payload)
        except ClientError as e:
            self.state = SessionState.FAILED
            self.notify("error", f"Failed to submit practice: {e}")
            if self.time_remaining > 0:
                self._start_timer()
            return

        self.practice = result
        self._show_results(result)
        logger.info("Practice session completed", practice_id=self.practice_id,
                    correct=self.correct_answers, score=self.score)
        self.notify("success", f"Practice submitted! Your score: {self.score}%")

    # Exit / teardown

    async def exit(self, confirm: Optional[Confirm] = None) -> bool:
        """
        Leave the session. A completed session exits immediately; an incomplete one
        only after `confirm` resolves True. Nothing is submitted or deleted.
        """
        if self.state not in (SessionState.COMPLETED, SessionState.IDLE):
            if confirm is None or not await confirm():
                return False
        self.close()
        return True

    def close(self):
        """Stop the countdown. In-flight time syncs are left to finish."""
        self._stop_timer()
