import pytest

from trivia_errors import DuplicateRecordError, StoreClosedError, UnknownTableError
from trivia_store import ANSWERS, PLAYERS, QUESTIONS, SESSIONS, TriviaStore


def test_add_get_put_and_scan_in_id_order(store):
    first = store.add(PLAYERS, {"name": "Alice", "created_at": 10})
    second = store.add(PLAYERS, {"name": "Bob", "created_at": 11})
    assert second > first

    record = store.get(PLAYERS, first)
    assert record["name"] == "Alice"
    assert record["total_score"] == 0

    record["total_score"] = 120
    store.put(PLAYERS, record)
    assert store.get(PLAYERS, first)["total_score"] == 120

    assert [row["name"] for row in store.scan_all(PLAYERS)] == ["Alice", "Bob"]
    assert store.count(PLAYERS) == 2


def test_put_inserts_when_id_missing_and_requires_id(store):
    store.put(SESSIONS, {"id": 40, "player_id": 1, "started_at": 5})
    assert store.get(SESSIONS, 40)["started_at"] == 5

    with pytest.raises(ValueError):
        store.put(SESSIONS, {"player_id": 1, "started_at": 5})


def test_json_and_bool_columns_are_decoded(store):
    question_id = store.add(
        QUESTIONS,
        {
            "text": "Q",
            "correct_answer": "A",
            "wrong_answers": ["B", "C", "D"],
            "tier": "master",
            "flagged": True,
        },
    )
    record = store.get(QUESTIONS, question_id)
    assert record["wrong_answers"] == ["B", "C", "D"]
    assert record["flagged"] is True


def test_lookup_by_unique_and_plain_index(store):
    store.add(PLAYERS, {"name": "Alice"})
    assert store.lookup_by_index(PLAYERS, "name", "Alice")["name"] == "Alice"
    assert store.lookup_by_index(PLAYERS, "name", "Nobody") is None

    store.add(ANSWERS, {"session_id": 3, "question_id": 1, "correct": True})
    store.add(ANSWERS, {"session_id": 3, "question_id": 2, "correct": False})
    store.add(ANSWERS, {"session_id": 4, "question_id": 2, "correct": False})
    rows = store.lookup_by_index(ANSWERS, "session_id", 3)
    assert [row["question_id"] for row in rows] == [1, 2]
    assert store.lookup_by_index(ANSWERS, "session_id", 99) == []


def test_unique_name_violation_raises_duplicate(store):
    store.add(PLAYERS, {"name": "Alice"})
    with pytest.raises(DuplicateRecordError) as excinfo:
        store.add(PLAYERS, {"name": "Alice"})
    assert excinfo.value.status_code == 409
    assert store.count(PLAYERS) == 1


def test_unknown_table_and_undeclared_index(store):
    with pytest.raises(UnknownTableError):
        store.scan_all("nope")
    with pytest.raises(UnknownTableError):
        store.lookup_by_index(PLAYERS, "color", "red")


def test_delete_missing_is_noop_and_clear_keeps_ids_growing(store):
    store.delete(PLAYERS, 12345)
    first = store.add(PLAYERS, {"name": "Alice"})
    store.clear(PLAYERS)
    assert store.scan_all(PLAYERS) == []
    assert store.add(PLAYERS, {"name": "Alice"}) > first


def test_closed_store_rejects_operations(tmp_path):
    store = TriviaStore(str(tmp_path / "closed.db"))
    with pytest.raises(StoreClosedError):
        store.count(PLAYERS)

    store.open()
    store.add(PLAYERS, {"name": "Alice"})
    store.close()
    assert not store.is_open
    with pytest.raises(StoreClosedError):
        store.get(PLAYERS, 1)

    with TriviaStore(str(tmp_path / "closed.db")) as reopened:
        assert reopened.count(PLAYERS) == 1


def test_clear_all_empties_every_table(store):
    store.add(PLAYERS, {"name": "Alice"})
    store.add(SESSIONS, {"player_id": 1, "started_at": 1})
    store.clear_all()
    assert store.count(PLAYERS) == 0
    assert store.count(SESSIONS) == 0
