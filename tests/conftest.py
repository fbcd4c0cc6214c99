import json
import random
import sys
from pathlib import Path

import pytest
from flask import Flask

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app_services import AppServiceConfig, AppServices
from blueprints.api import create_api_blueprint
from content_loader import ContentLoader
from game_session import SessionEngine
from player_repository import PlayerRepository
from question_repository import QuestionRepository
from trivia_formats import Question
from trivia_store import TriviaStore

BUNDLE_QUESTIONS = [
    {
        "question": "Which planet is known as the Red Planet?",
        "correct_answer": "Mars",
        "wrong_answers": ["Venus", "Jupiter", "Mercury"],
        "category": "Science",
        "tier": "apprentice",
        "base_points": 10,
    },
    {
        "question": "What is the capital city of France?",
        "correct_answer": "Paris",
        "wrong_answers": ["Lyon", "Marseille", "Brussels"],
        "category": "Geography",
        "tier": "skilled",
    },
]

GRANDMASTER_QUESTION = {
    "question": "Which physicist first proposed the uncertainty principle?",
    "correct_answer": "Werner Heisenberg",
    "wrong_answers": ["Niels Bohr", "Erwin Schrodinger", "Max Planck"],
    "category": "Science",
    "tier": "grandmaster",
    "base_points": 50,
}


class FakeClock:
    def __init__(self, start: float = 1_735_680_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_question(
    text="What is 2 + 2?",
    correct="A",
    wrong=("B", "C", "D"),
    category="General",
    tier="apprentice",
    base_points=0,
) -> Question:
    return Question(
        text=text,
        correct_answer=correct,
        wrong_answers=list(wrong),
        category=category,
        tier=tier,
        base_points=base_points,
    )


@pytest.fixture
def bundle_dir(tmp_path):
    directory = tmp_path / "bundles"
    directory.mkdir()
    (directory / "1_list.json").write_text(json.dumps(BUNDLE_QUESTIONS), encoding="utf-8")
    (directory / "2_single.json").write_text(
        json.dumps(GRANDMASTER_QUESTION), encoding="utf-8"
    )
    return directory


@pytest.fixture
def store(tmp_path):
    with TriviaStore(str(tmp_path / "trivia.db")) as opened:
        yield opened


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def players(store):
    return PlayerRepository(store)


@pytest.fixture
def questions(store, rng):
    return QuestionRepository(store, rng=rng)


@pytest.fixture
def loader(store, questions, bundle_dir):
    return ContentLoader(store, questions, str(bundle_dir))


@pytest.fixture
def engine(store, questions, players, rng, clock):
    return SessionEngine(store, questions, players, rng=rng, clock=clock)


@pytest.fixture
def app_ctx(tmp_path, bundle_dir):
    app = Flask(__name__)
    app.config["TESTING"] = True

    services = AppServices(
        AppServiceConfig(
            db_path=str(tmp_path / "api.db"),
            bundle_dir=str(bundle_dir),
            random_seed="42",
            default_question_count=3,
        ),
        app=app,
    )
    services.open()
    app.register_blueprint(create_api_blueprint(services=services))
    yield {"app": app, "services": services}
    services.close()


@pytest.fixture
def app(app_ctx):
    return app_ctx["app"]


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def services(app_ctx):
    return app_ctx["services"]
