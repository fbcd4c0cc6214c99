import pytest

from conftest import make_question
from trivia_errors import (
    NoQuestionAvailableError,
    NotFoundError,
    PlayerCreationError,
    TriviaValidationError,
    UnknownSessionError,
)
from trivia_store import ANSWERS, SESSIONS, STATISTICS


def _answer_correctly(engine, session_id):
    state = engine.get_state(session_id)
    return engine.submit_answer(session_id, state.current_question.correct_answer)


def test_start_session_creates_player_session_and_first_question(
    engine, questions, players, store
):
    questions.add(make_question())

    state = engine.start_session("Alice", question_count=3, age=30)

    assert state.question_index == 1
    assert state.total_questions == 3
    assert state.score == 0
    assert state.streak == 0
    assert set(state.options) == {"A", "B", "C", "D"}
    assert len(state.options) == 4
    assert engine.active_session_ids() == [state.session_id]

    player = players.get_by_name("Alice")
    assert player is not None
    assert player.age == 30
    assert player.total_score == 0

    session = store.get(SESSIONS, state.session_id)
    assert session["player_id"] == player.id
    assert session["ended_at"] is None
    assert session["question_count"] == 0


def test_state_payload_never_reveals_open_answer(engine, questions):
    questions.add(make_question(correct="Helsinki", wrong=("Turku", "Oulu", "Espoo")))
    payload = engine.start_session("Alice").to_dict()

    assert "correct_answer" not in payload["question"]
    assert sorted(payload["options"]) == ["Espoo", "Helsinki", "Oulu", "Turku"]


def test_existing_player_is_reused(engine, questions, players):
    questions.add(make_question())
    existing = players.create("Alice", age=40)

    state = engine.start_session("Alice", age=9)

    assert state.player.id == existing.id
    assert state.player.age == 40
    assert len(players.list_all()) == 1


def test_question_index_reaches_total_then_session_ends(engine, questions, players, store):
    questions.add(make_question())
    state = engine.start_session("Alice", question_count=2)
    session_id = state.session_id

    _answer_correctly(engine, session_id)
    state = engine.advance_question(session_id)
    assert state.question_index == 2
    _answer_correctly(engine, session_id)

    final = engine.advance_question(session_id)

    assert final.finished is True
    assert final.question_index == 2
    assert final.result.correct == 2
    assert final.result.wrong == 0
    assert final.result.percentage_correct == 100.0
    assert engine.get_state(session_id) is None
    assert session_id not in engine.active_session_ids()

    record = store.get(SESSIONS, session_id)
    assert record["ended_at"] is not None
    assert record["score"] == final.score == 40
    assert record["question_count"] == 2
    assert players.get_by_name("Alice").total_score == 40

    with pytest.raises(UnknownSessionError):
        engine.advance_question(session_id)


def test_scoring_uses_latency_and_grandmaster_age_multiplier(engine, questions, clock):
    questions.add(make_question(tier="grandmaster", base_points=50))
    state = engine.start_session("Kid", question_count=2, age=10)

    result = _answer_correctly(engine, state.session_id)
    assert result.correct is True
    assert result.points_awarded == 72
    assert result.breakdown.age_multiplier == 1.2
    assert result.latency_ms == 0

    engine.advance_question(state.session_id)
    clock.advance(1.5)
    result = _answer_correctly(engine, state.session_id)
    assert result.latency_ms == 1500
    assert result.breakdown.speed_bonus == 9
    assert result.points_awarded == round((50 + 9) * 1.2)


def test_lower_tier_ignores_player_age(engine, questions):
    questions.add(make_question(tier="king", base_points=50))
    state = engine.start_session("Kid", age=10)

    result = _answer_correctly(engine, state.session_id)

    assert result.points_awarded == 60
    assert result.breakdown.age_multiplier == 1.0


def test_streak_bonus_is_added_to_session_score(engine, questions):
    questions.add(make_question())
    state = engine.start_session("Alice", question_count=5)
    session_id = state.session_id

    awarded = []
    for _ in range(3):
        awarded.append(_answer_correctly(engine, session_id))
        engine.advance_question(session_id)

    assert [result.points_awarded for result in awarded] == [20, 20, 70]
    assert awarded[2].breakdown.streak_bonus == 50
    assert awarded[2].breakdown.streak == 0
    assert engine.get_state(session_id).score == 110
    assert engine.get_state(session_id).streak == 0


def test_wrong_answer_resets_streak_without_bonus(engine, questions, store):
    questions.add(make_question())
    state = engine.start_session("Alice", question_count=5)
    session_id = state.session_id

    _answer_correctly(engine, session_id)
    engine.advance_question(session_id)
    _answer_correctly(engine, session_id)
    engine.advance_question(session_id)
    assert engine.get_state(session_id).streak == 2

    result = engine.submit_answer(session_id, "definitely wrong")

    assert result.correct is False
    assert result.correct_answer == "A"
    assert result.points_awarded == 0
    assert result.breakdown.streak_bonus == 0
    assert engine.get_state(session_id).streak == 0

    answers = store.lookup_by_index(ANSWERS, "session_id", session_id)
    assert [answer["correct"] for answer in answers] == [True, True, False]
    assert answers[-1]["given_answer"] == "definitely wrong"
    assert answers[-1]["category"] == "General"


def test_submit_without_open_question_or_unknown_session_returns_none(
    engine, questions, store
):
    questions.add(make_question())
    state = engine.start_session("Alice")

    assert engine.submit_answer(state.session_id, "A") is not None
    assert engine.submit_answer(state.session_id, "A") is None
    assert engine.submit_answer(9999, "A") is None
    assert len(store.lookup_by_index(ANSWERS, "session_id", state.session_id)) == 1


def test_end_session_twice_credits_player_once(engine, questions, players):
    questions.add(make_question())
    state = engine.start_session("Alice")
    _answer_correctly(engine, state.session_id)

    first = engine.end_session(state.session_id)
    second = engine.end_session(state.session_id)

    assert first is not None
    assert first.finished is True
    assert second is None
    assert players.get_by_name("Alice").total_score == 20


def test_end_session_for_deleted_player_leaves_session_untouched(
    engine, questions, players, store, clock
):
    questions.add(make_question())
    state = engine.start_session("Alice")
    _answer_correctly(engine, state.session_id)
    players.delete(state.player.id)

    for _ in range(2):
        with pytest.raises(NotFoundError):
            engine.end_session(state.session_id)
        clock.advance(5)

    session = store.get(SESSIONS, state.session_id)
    assert session["ended_at"] is None
    assert session["score"] == 0
    assert engine.active_session_ids() == [state.session_id]
    assert store.count(STATISTICS) == 0


def test_unknown_session_advance_raises(engine):
    with pytest.raises(UnknownSessionError) as excinfo:
        engine.advance_question(404)
    assert excinfo.value.status_code == 404


def test_no_matching_question_keeps_session_active(engine, questions):
    questions.add(make_question(category="Science"))

    with pytest.raises(NoQuestionAvailableError) as excinfo:
        engine.start_session("Alice", category="History")

    session_id = excinfo.value.details["session_id"]
    state = engine.get_state(session_id)
    assert state is not None
    assert state.question_index == 0
    assert state.current_question is None

    state = engine.advance_question(session_id)
    assert state.question_index == 1
    assert state.current_question.category == "Science"


def test_question_count_must_be_positive(engine, questions):
    questions.add(make_question())
    with pytest.raises(TriviaValidationError):
        engine.start_session("Alice", question_count=0)
    assert engine.active_session_ids() == []


def test_player_creation_failure_aborts_start(engine, questions, players, monkeypatch):
    questions.add(make_question())
    monkeypatch.setattr(players, "get_by_name", lambda _name: None)

    with pytest.raises(PlayerCreationError):
        engine.start_session("Ghost")
    assert engine.active_session_ids() == []


def test_statistics_rollup_is_written_per_category(engine, questions, store, clock):
    questions.add(make_question(category="Science"))
    state = engine.start_session("Alice", question_count=2)
    clock.advance(2)
    _answer_correctly(engine, state.session_id)
    engine.advance_question(state.session_id)
    engine.submit_answer(state.session_id, "nope")
    engine.end_session(state.session_id)

    rows = store.lookup_by_index(STATISTICS, "player_id", state.player.id)
    assert len(rows) == 1
    row = rows[0]
    assert row["category"] == "Science"
    assert row["games_played"] == 1
    assert row["correct_count"] == 1
    assert row["wrong_count"] == 1
    assert row["total_score"] == 18
    assert row["average_latency_ms"] == 1000.0


def test_statistics_failure_never_rolls_back_score(
    engine, questions, players, store, monkeypatch
):
    questions.add(make_question())
    state = engine.start_session("Alice")
    _answer_correctly(engine, state.session_id)

    original_add = store.add

    def _failing_add(table, record):
        if table == STATISTICS:
            raise RuntimeError("disk full")
        return original_add(table, record)

    monkeypatch.setattr(store, "add", _failing_add)

    final = engine.end_session(state.session_id)

    assert final is not None
    assert final.score == 20
    assert players.get_by_name("Alice").total_score == 20
    assert store.get(SESSIONS, state.session_id)["ended_at"] is not None
    assert store.lookup_by_index(STATISTICS, "player_id", state.player.id) == []
    assert engine.get_state(state.session_id) is None


def test_session_ended_listeners_are_isolated(engine, questions):
    questions.add(make_question())
    received = []

    def _broken(_event):
        raise RuntimeError("listener blew up")

    engine.session_ended.subscribe(_broken)
    subscription = engine.session_ended.subscribe(received.append)

    state = engine.start_session("Alice")
    _answer_correctly(engine, state.session_id)
    final = engine.end_session(state.session_id)

    assert final is not None
    assert len(received) == 1
    assert received[0].session_id == state.session_id
    assert received[0].total_score == 20
    assert received[0].player_id == state.player.id

    subscription.unsubscribe()
    second = engine.start_session("Alice")
    engine.end_session(second.session_id)
    assert len(received) == 1
