from __future__ import annotations

import json
import logging
import os

from question_repository import QuestionRepository
from trivia_errors import ContentBundleError, TriviaValidationError
from trivia_formats import SOURCE_BUNDLED, SOURCE_CURATED, Question, is_valid_tier
from trivia_store import QUESTIONS, TriviaStore

logger = logging.getLogger(__name__)

DEFAULT_BUNDLE_DIR = os.path.join(
    os.path.dirname(os.path.abspath(__file__)), "data", "questions"
)


class ContentLoader:
    """Seeds and refreshes the question bank from the bundled JSON sets.

    Each ``*.json`` file in the bundle directory holds either one question
    object or a list of them.
    """

    def __init__(
        self,
        store: TriviaStore,
        questions: QuestionRepository,
        bundle_dir: str = DEFAULT_BUNDLE_DIR,
    ):
        self.store = store
        self.questions = questions
        self.bundle_dir = str(bundle_dir)

    def bundle_files(self) -> list[str]:
        if not os.path.isdir(self.bundle_dir):
            return []
        return [
            os.path.join(self.bundle_dir, name)
            for name in sorted(os.listdir(self.bundle_dir))
            if name.lower().endswith(".json")
        ]

    def load_bundles(self) -> list[Question]:
        loaded: list[Question] = []
        for path in self.bundle_files():
            loaded.extend(self._read_bundle(path))
        return loaded

    def seed_if_empty(self) -> int:
        if self.store.count(QUESTIONS) > 0:
            return 0
        added = self._insert_bundled(self.load_bundles())
        logger.info("Seeded %s bundled questions from %s", added, self.bundle_dir)
        return added

    def refresh(self) -> dict[str, int]:
        bundled = self.load_bundles()
        curated = [
            question
            for question in self.questions.list_all()
            if question.source == SOURCE_CURATED
        ]

        self.store.clear(QUESTIONS)
        bundled_count = self._insert_bundled(bundled)
        self.questions.add_many(curated, source=SOURCE_CURATED)

        logger.info(
            "Refreshed question bank: %s bundled, %s curated kept",
            bundled_count,
            len(curated),
        )
        return {"bundled": bundled_count, "curated": len(curated)}

    def reset_database(self) -> int:
        self.store.clear_all()
        return self.seed_if_empty()

    # ------------------------
    # Internals
    # ------------------------

    def _insert_bundled(self, questions: list[Question]) -> int:
        return len(self.questions.add_many(questions, source=SOURCE_BUNDLED))

    def _read_bundle(self, path: str) -> list[Question]:
        name = os.path.basename(path)
        try:
            with open(path, "r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, ValueError) as exc:
            raise ContentBundleError(
                f"Could not read question bundle {name}: {exc}",
                details={"file": name},
            ) from exc

        items = payload if isinstance(payload, list) else [payload]
        questions = []
        for position, item in enumerate(items):
            try:
                questions.append(self._parse_item(item))
            except TriviaValidationError as exc:
                raise ContentBundleError(
                    f"Invalid question #{position + 1} in {name}: {exc.message}",
                    details={"file": name, "index": position},
                ) from exc
        return questions

    @staticmethod
    def _parse_item(item) -> Question:
        if not isinstance(item, dict):
            raise TriviaValidationError("Expected a question object.")
        tier = str(item.get("tier") or "").strip().lower()
        if not is_valid_tier(tier):
            raise TriviaValidationError(f"Unknown difficulty tier: {tier or '(none)'}")
        wrong_answers = item.get("wrong_answers")
        if not isinstance(wrong_answers, list):
            raise TriviaValidationError("wrong_answers must be a list.")
        wrong_answers = [str(answer).strip() for answer in wrong_answers]
        if len([answer for answer in wrong_answers if answer]) < 3:
            raise TriviaValidationError("At least 3 wrong answers are required.")
        text = str(item.get("question") or "").strip()
        correct_answer = str(item.get("correct_answer") or "").strip()
        if not text or not correct_answer:
            raise TriviaValidationError("question and correct_answer are required.")
        try:
            base_points = int(item.get("base_points") or 0)
        except (TypeError, ValueError) as exc:
            raise TriviaValidationError("base_points must be a whole number.") from exc
        return Question(
            text=text,
            correct_answer=correct_answer,
            wrong_answers=wrong_answers,
            category=str(item.get("category") or "").strip(),
            tier=tier,
            base_points=base_points,
            source=SOURCE_BUNDLED,
        )
