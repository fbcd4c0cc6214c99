from __future__ import annotations

import logging
import random
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable

from player_repository import PlayerRepository
from question_repository import QuestionRepository
from scoring import ScoreBreakdown, is_correct, score_answer
from session_events import SessionEnded, SessionEventChannel
from trivia_errors import (
    DuplicateRecordError,
    NoQuestionAvailableError,
    NotFoundError,
    PersistenceWriteFailure,
    PlayerCreationError,
    TriviaValidationError,
    UnknownSessionError,
)
from trivia_formats import (
    UNKNOWN_CATEGORY,
    Answer,
    CategoryTally,
    GameSession,
    Player,
    Question,
    SessionResult,
    StatisticsRecord,
    player_to_dict,
)
from trivia_store import ANSWERS, SESSIONS, STATISTICS, TriviaStore

logger = logging.getLogger(__name__)


@dataclass
class SessionState:
    session_id: int
    player: Player
    total_questions: int
    started_at_ms: int
    current_question: Question | None = None
    options: list[str] = field(default_factory=list)
    score: int = 0
    question_index: int = 0
    question_presented_at_ms: int | None = None
    streak: int = 0
    finished: bool = False
    result: SessionResult | None = None

    @property
    def awaiting_answer(self) -> bool:
        return self.current_question is not None

    def to_dict(self) -> dict[str, Any]:
        """Client view of the session. The open question's answer is never included."""
        question = self.current_question
        return {
            "session_id": self.session_id,
            "player": player_to_dict(self.player),
            "question": (
                {
                    "id": question.id,
                    "question": question.text,
                    "category": question.category,
                    "tier": question.tier,
                    "base_points": question.base_points,
                }
                if question
                else None
            ),
            "options": list(self.options),
            "score": self.score,
            "question_index": self.question_index,
            "total_questions": self.total_questions,
            "streak": self.streak,
            "started_at_ms": self.started_at_ms,
            "question_presented_at_ms": self.question_presented_at_ms,
            "finished": self.finished,
            "result": self.result.to_dict() if self.result else None,
        }


@dataclass(frozen=True)
class AnswerResult:
    correct: bool
    correct_answer: str
    points_awarded: int
    breakdown: ScoreBreakdown
    question_id: int | None = None
    latency_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "correct": self.correct,
            "correct_answer": self.correct_answer,
            "points_awarded": self.points_awarded,
            "breakdown": self.breakdown.to_dict(),
            "question_id": self.question_id,
            "latency_ms": self.latency_ms,
        }


class SessionEngine:
    """Runs quiz rounds and owns the in-memory state of every active session.

    A session is registered at start, moves between awaiting-answer and
    awaiting-next-question until its question count is used up, and is
    removed from the active map when it ends. Ended sessions cannot resume.
    """

    DEFAULT_QUESTION_COUNT = 10

    def __init__(
        self,
        store: TriviaStore,
        questions: QuestionRepository,
        players: PlayerRepository,
        rng: random.Random | None = None,
        clock: Callable[[], float] | None = None,
    ):
        self.store = store
        self.questions = questions
        self.players = players
        self.rng = rng or random.Random()
        self.clock = clock or time.time
        self.session_ended = SessionEventChannel()
        self._active: dict[int, SessionState] = {}
        self._lock = threading.RLock()

    # ------------------------
    # Session lifecycle
    # ------------------------

    def start_session(
        self,
        player_name: str,
        question_count: int = DEFAULT_QUESTION_COUNT,
        category: str | None = None,
        tier: str | None = None,
        age: int | None = None,
        tier_min: str | None = None,
        tier_max: str | None = None,
    ) -> SessionState:
        total = self._coerce_question_count(question_count)
        player = self._get_or_create_player(player_name, age, tier_min, tier_max)

        now_ms = self._now_ms()
        session = GameSession(player_id=player.id, started_at=now_ms // 1000)
        session_id = self.store.add(SESSIONS, session.to_record())

        state = SessionState(
            session_id=session_id,
            player=player,
            total_questions=total,
            started_at_ms=now_ms,
        )
        with self._lock:
            self._active[session_id] = state
        logger.info(
            "Started session %s for %s (%s questions)", session_id, player.name, total
        )

        try:
            self.advance_question(session_id, category=category, tier=tier)
        except NoQuestionAvailableError as exc:
            exc.details["session_id"] = session_id
            raise
        return state

    def advance_question(
        self,
        session_id: int,
        category: str | None = None,
        tier: str | None = None,
    ) -> SessionState:
        with self._lock:
            state = self._require_active(session_id)
            if state.question_index >= state.total_questions:
                return self.end_session(session_id)

            question = self.questions.random_question(category=category, tier=tier)
            if question is None:
                raise NoQuestionAvailableError(
                    "No question matches the selected filters.",
                    details={
                        "session_id": session_id,
                        "category": category,
                        "tier": tier,
                    },
                )

            options = question.answer_options()
            self.rng.shuffle(options)

            state.current_question = question
            state.options = options
            state.question_index += 1
            state.question_presented_at_ms = self._now_ms()
            return state

    def submit_answer(self, session_id: int, answer_text: str) -> AnswerResult | None:
        with self._lock:
            state = self._active.get(session_id)
            if state is None or state.current_question is None:
                return None

            question = state.current_question
            correct = is_correct(answer_text, question.correct_answer)
            latency_ms = max(0, self._now_ms() - (state.question_presented_at_ms or 0))
            breakdown = score_answer(
                correct=correct,
                latency_ms=latency_ms,
                tier=question.tier,
                base_points=question.base_points,
                age=state.player.age,
                previous_streak=state.streak,
            )

            answer = Answer(
                session_id=session_id,
                question_id=question.id or 0,
                given_answer=str(answer_text or "").strip(),
                correct=correct,
                latency_ms=latency_ms,
                category=question.category or UNKNOWN_CATEGORY,
                points_awarded=breakdown.total,
            )
            self.store.add(ANSWERS, answer.to_record())

            state.streak = breakdown.streak
            state.score += breakdown.total
            state.current_question = None
            state.options = []

            return AnswerResult(
                correct=correct,
                correct_answer=question.correct_answer,
                points_awarded=breakdown.total,
                breakdown=breakdown,
                question_id=question.id,
                latency_ms=latency_ms,
            )

    def end_session(self, session_id: int) -> SessionState | None:
        with self._lock:
            state = self._active.get(session_id)
            if state is None:
                return None

            record = self.store.get(SESSIONS, session_id)
            if record is None:
                raise NotFoundError(
                    "Session record not found.", details={"session_id": session_id}
                )
            if self.players.get(state.player.id) is None:
                raise NotFoundError(
                    "Player not found.",
                    details={"player_id": state.player.id, "session_id": session_id},
                )

            ended_at = self._now_ms() // 1000
            session = GameSession.from_record(record)
            session.ended_at = ended_at
            session.score = state.score
            session.question_count = state.question_index
            self.store.put(SESSIONS, session.to_record())

            player = self.players.add_score(
                state.player.id, state.score, played_at=ended_at
            )
            state.player = player

            result = self._summarize(state)
            try:
                self._write_statistics(player.id, result, ended_at)
            except PersistenceWriteFailure as exc:
                logger.warning(
                    "Statistics rollup skipped for session %s: %s", session_id, exc
                )

            del self._active[session_id]
            state.finished = True
            state.result = result
            state.current_question = None
            state.options = []

        logger.info(
            "Ended session %s for %s with %s points",
            session_id,
            state.player.name,
            state.score,
        )
        self.session_ended.publish(
            SessionEnded(
                player_id=state.player.id,
                total_score=state.score,
                session_id=session_id,
            )
        )
        return state

    # ------------------------
    # Introspection
    # ------------------------

    def get_state(self, session_id: int) -> SessionState | None:
        with self._lock:
            return self._active.get(session_id)

    def active_session_ids(self) -> list[int]:
        with self._lock:
            return sorted(self._active)

    # ------------------------
    # Internals
    # ------------------------

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def _require_active(self, session_id: int) -> SessionState:
        state = self._active.get(session_id)
        if state is None:
            raise UnknownSessionError(
                "Session is not active.", details={"session_id": session_id}
            )
        return state

    @staticmethod
    def _coerce_question_count(question_count) -> int:
        try:
            total = int(question_count)
        except (TypeError, ValueError) as exc:
            raise TriviaValidationError("Question count must be a number.") from exc
        if total < 1:
            raise TriviaValidationError("Question count must be at least 1.")
        return total

    def _get_or_create_player(
        self,
        player_name: str,
        age: int | None,
        tier_min: str | None,
        tier_max: str | None,
    ) -> Player:
        player = self.players.get_by_name(player_name)
        if player is None:
            try:
                self.players.create(
                    player_name, age=age, tier_min=tier_min, tier_max=tier_max
                )
            except DuplicateRecordError:
                logger.info("Player %s was created concurrently", player_name)
            player = self.players.get_by_name(player_name)
        if player is None or player.id is None:
            raise PlayerCreationError(
                "Could not start game: player record unavailable.",
                details={"player_name": player_name},
            )
        return player

    def _summarize(self, state: SessionState) -> SessionResult:
        answers = [
            Answer.from_record(record)
            for record in self.store.lookup_by_index(
                ANSWERS, "session_id", state.session_id
            )
        ]
        categories: dict[str, CategoryTally] = {}
        latency_total = 0
        for answer in answers:
            tally = categories.setdefault(
                answer.category or UNKNOWN_CATEGORY, CategoryTally()
            )
            if answer.correct:
                tally.correct += 1
            else:
                tally.wrong += 1
            tally.latency_total_ms += answer.latency_ms
            tally.points += answer.points_awarded
            latency_total += answer.latency_ms

        total = len(answers)
        correct = sum(1 for answer in answers if answer.correct)
        return SessionResult(
            score=state.score,
            question_count=state.question_index,
            correct=correct,
            wrong=total - correct,
            percentage_correct=round(correct / total * 100, 1) if total else 0.0,
            average_latency_ms=int(round(latency_total / total)) if total else 0,
            categories=categories,
        )

    def _write_statistics(
        self, player_id: int, result: SessionResult, updated_at: int
    ) -> None:
        try:
            existing = {
                row.get("category"): StatisticsRecord.from_record(row)
                for row in self.store.lookup_by_index(STATISTICS, "player_id", player_id)
            }
            for category, tally in result.categories.items():
                record = existing.get(category) or StatisticsRecord(
                    player_id=player_id, category=category
                )
                previous_answers = record.answer_count
                combined_answers = previous_answers + tally.total
                if combined_answers:
                    record.average_latency_ms = round(
                        (
                            record.average_latency_ms * previous_answers
                            + tally.latency_total_ms
                        )
                        / combined_answers,
                        1,
                    )
                record.games_played += 1
                record.total_score += tally.points
                record.correct_count += tally.correct
                record.wrong_count += tally.wrong
                record.updated_at = updated_at
                if record.id is None:
                    self.store.add(STATISTICS, record.to_record())
                else:
                    self.store.put(STATISTICS, record.to_record())
        except Exception as exc:
            raise PersistenceWriteFailure(
                "Could not write statistics rollup.",
                details={"player_id": player_id},
            ) from exc
