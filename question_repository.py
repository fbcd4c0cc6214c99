from __future__ import annotations

import logging
import random
import time
from collections import Counter

from trivia_errors import NotFoundError, TriviaValidationError
from trivia_formats import SOURCE_CURATED, SOURCES, TIERS, Question, is_valid_tier
from trivia_store import QUESTIONS, TriviaStore

logger = logging.getLogger(__name__)


class QuestionRepository:
    MIN_WRONG_ANSWERS = 3

    def __init__(self, store: TriviaStore, rng: random.Random | None = None):
        self.store = store
        self.rng = rng or random.Random()

    # ------------------------
    # CRUD
    # ------------------------

    def get(self, question_id: int) -> Question:
        record = self.store.get(QUESTIONS, question_id)
        if not record:
            raise NotFoundError(
                "Question not found.", details={"question_id": question_id}
            )
        return Question.from_record(record)

    def list_all(self, include_flagged: bool = True) -> list[Question]:
        questions = [Question.from_record(r) for r in self.store.scan_all(QUESTIONS)]
        if include_flagged:
            return questions
        return [question for question in questions if not question.flagged]

    def add(self, question: Question, source: str | None = None) -> Question:
        question.source = source or question.source or SOURCE_CURATED
        self._validate(question)
        if not question.created_at:
            question.created_at = int(time.time())
        question.id = None
        question.id = self.store.add(QUESTIONS, question.to_record())
        return question

    def add_many(self, questions: list[Question], source: str) -> list[Question]:
        return [self.add(question, source=source) for question in questions]

    def update(self, question: Question) -> Question:
        if question.id is None:
            raise NotFoundError("Question not found.", details={"question_id": None})
        self.get(question.id)
        self._validate(question)
        self.store.put(QUESTIONS, question.to_record())
        return question

    def delete(self, question_id: int) -> None:
        self.get(question_id)
        self.store.delete(QUESTIONS, question_id)

    # ------------------------
    # Queries
    # ------------------------

    def random_question(
        self, category: str | None = None, tier: str | None = None
    ) -> Question | None:
        records = self.store.scan_all(QUESTIONS)
        matches = [
            record
            for record in records
            if (not category or record.get("category") == category)
            and (not tier or record.get("tier") == tier)
        ]
        if not matches:
            return None
        return Question.from_record(self.rng.choice(matches))

    def categories_with_counts(self) -> dict[str, int]:
        counts = Counter(
            record.get("category") or "" for record in self.store.scan_all(QUESTIONS)
        )
        return {name: counts[name] for name in sorted(counts)}

    def categories(self) -> list[str]:
        return sorted(self.categories_with_counts())

    def count_by_tier(self) -> dict[str, int]:
        counts = Counter(record.get("tier") for record in self.store.scan_all(QUESTIONS))
        return {tier: counts.get(tier, 0) for tier in TIERS}

    def flag_error(self, question_id: int) -> Question:
        return self._set_flag(question_id, True)

    def clear_error(self, question_id: int) -> Question:
        return self._set_flag(question_id, False)

    def _set_flag(self, question_id: int, flagged: bool) -> Question:
        question = self.get(question_id)
        question.flagged = flagged
        self.store.put(QUESTIONS, question.to_record())
        logger.info(
            "Question %s %s", question_id, "flagged" if flagged else "unflagged"
        )
        return question

    # ------------------------
    # Validation
    # ------------------------

    def _validate(self, question: Question) -> None:
        question.text = str(question.text or "").strip()
        question.correct_answer = str(question.correct_answer or "").strip()
        question.wrong_answers = [
            str(answer).strip()
            for answer in question.wrong_answers or []
            if str(answer).strip()
        ]
        question.category = str(question.category or "").strip()

        if not question.text:
            raise TriviaValidationError("Question text is required.")
        if not question.correct_answer:
            raise TriviaValidationError("Correct answer is required.")
        if len(question.wrong_answers) < self.MIN_WRONG_ANSWERS:
            raise TriviaValidationError(
                f"At least {self.MIN_WRONG_ANSWERS} wrong answers are required.",
                details={"wrong_answers": len(question.wrong_answers)},
            )
        if not is_valid_tier(question.tier):
            raise TriviaValidationError(
                f"Unknown difficulty tier: {question.tier}",
                details={"allowed": list(TIERS)},
            )
        if question.source not in SOURCES:
            raise TriviaValidationError(f"Unknown question source: {question.source}")
        try:
            question.base_points = max(0, int(question.base_points or 0))
        except (TypeError, ValueError) as exc:
            raise TriviaValidationError("Base points must be a whole number.") from exc
