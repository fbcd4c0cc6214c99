"""Read-only aggregate queries over play history.

Every query does full scans of players, sessions and answers. Queries return
``None`` (or an empty result) when there is not enough history yet, so a freshly
seeded database renders an empty stats page instead of failing.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from typing import Any

from scoring import LAST_SECOND_LATENCY_MS
from trivia_formats import (
    UNKNOWN_CATEGORY,
    Answer,
    GameSession,
    Player,
    StatisticsRecord,
    player_to_dict,
    session_to_dict,
)
from trivia_store import ANSWERS, PLAYERS, SESSIONS, STATISTICS, TriviaStore

HARDEST_CATEGORY_MIN_ANSWERS = 10


class TriviaStats:
    def __init__(self, store: TriviaStore):
        self.store = store

    # ------------------------
    # Scans
    # ------------------------

    def _players(self) -> dict[int, Player]:
        return {
            record["id"]: Player.from_record(record)
            for record in self.store.scan_all(PLAYERS)
        }

    def _sessions(self) -> list[GameSession]:
        return [GameSession.from_record(r) for r in self.store.scan_all(SESSIONS)]

    def _finished_sessions(self) -> list[GameSession]:
        return [session for session in self._sessions() if session.is_finished]

    def _answers(self) -> list[Answer]:
        return [Answer.from_record(r) for r in self.store.scan_all(ANSWERS)]

    def _answers_by_player(self) -> list[tuple[int, Answer]]:
        """Answers paired with the owning player, via their session."""
        owner = {session.id: session.player_id for session in self._sessions()}
        paired = []
        for answer in self._answers():
            player_id = owner.get(answer.session_id)
            if player_id:
                paired.append((player_id, answer))
        return paired

    def _player_payload(self, player_id: int, players: dict[int, Player] | None = None):
        players = players if players is not None else self._players()
        return player_to_dict(players.get(player_id))

    def _top_player_count(
        self, counts: dict[int, int], value_key: str
    ) -> dict[str, Any] | None:
        top_id = None
        top_value = 0
        for player_id, value in counts.items():
            if value > top_value:
                top_id, top_value = player_id, value
        if top_id is None:
            return None
        return {"player": self._player_payload(top_id), value_key: top_value}

    # ------------------------
    # Player records
    # ------------------------

    def top_scorer(self) -> dict[str, Any] | None:
        best = None
        for player in self._players().values():
            if player.total_score > 0 and (
                best is None or player.total_score > best.total_score
            ):
                best = player
        if best is None:
            return None
        return {"player": player_to_dict(best), "points": best.total_score}

    def top_players(self, limit: int = 10) -> list[dict[str, Any]]:
        players = sorted(
            self._players().values(), key=lambda player: -player.total_score
        )
        return [player_to_dict(player) for player in players[: max(0, int(limit))]]

    def best_session_fewest_questions(self) -> dict[str, Any] | None:
        finished = self._finished_sessions()
        if not finished:
            return None
        best = sorted(
            finished, key=lambda session: (-session.score, session.question_count)
        )[0]
        return {
            "player": self._player_payload(best.player_id),
            "points": best.score,
            "question_count": best.question_count,
            "session": session_to_dict(best),
        }

    def best_single_game(self) -> dict[str, Any] | None:
        finished = self._finished_sessions()
        if not finished:
            return None
        best = finished[0]
        for session in finished[1:]:
            if session.score > best.score:
                best = session
        return {
            "player": self._player_payload(best.player_id),
            "points": best.score,
            "session": session_to_dict(best),
        }

    def most_games_played(self) -> dict[str, Any] | None:
        counts = Counter(session.player_id for session in self._finished_sessions())
        return self._top_player_count(dict(counts), "games")

    def total_score_all_players(self) -> int:
        return sum(player.total_score for player in self._players().values())

    def leaderboard(self, limit: int = 10) -> list[dict[str, Any]]:
        players = self._players()
        finished = sorted(
            self._finished_sessions(),
            key=lambda session: (-session.score, session.question_count, session.id),
        )
        rows = []
        for session in finished[: max(0, int(limit))]:
            player = players.get(session.player_id)
            rows.append(
                {
                    "session_id": session.id,
                    "player_id": session.player_id,
                    "player_name": player.name if player else None,
                    "score": session.score,
                    "question_count": session.question_count,
                    "started_at": session.started_at,
                    "ended_at": session.ended_at,
                }
            )
        return rows

    def player_summary(self, name: str) -> dict[str, Any] | None:
        player = next(
            (p for p in self._players().values() if p.name == str(name or "").strip()),
            None,
        )
        if player is None:
            return None
        scores = [
            session.score
            for session in self._finished_sessions()
            if session.player_id == player.id
        ]
        return {
            "player": player_to_dict(player),
            "games_played": len(scores),
            "total_score": player.total_score,
            "average_score": round(sum(scores) / len(scores), 1) if scores else 0,
            "best_score": max(scores) if scores else 0,
        }

    def player_category_statistics(self, player_id: int) -> list[dict[str, Any]]:
        rows = [
            StatisticsRecord.from_record(record)
            for record in self.store.lookup_by_index(STATISTICS, "player_id", player_id)
        ]
        return [
            {
                "category": row.category,
                "games_played": row.games_played,
                "total_score": row.total_score,
                "correct": row.correct_count,
                "wrong": row.wrong_count,
                "average_latency_ms": row.average_latency_ms,
                "updated_at": row.updated_at,
            }
            for row in sorted(rows, key=lambda row: row.category)
        ]

    # ------------------------
    # Answer records
    # ------------------------

    def most_asked_category(self) -> dict[str, Any] | None:
        counts = Counter(
            answer.category or UNKNOWN_CATEGORY for answer in self._answers()
        )
        if not counts:
            return None
        category, count = counts.most_common(1)[0]
        return {"category": category, "count": count}

    def _longest_runs(self, correct: bool) -> dict[int, int]:
        ordered = sorted(
            self._answers_by_player(),
            key=lambda pair: (pair[0], pair[1].session_id, pair[1].id or 0),
        )
        longest: dict[int, int] = defaultdict(int)
        current: dict[int, int] = defaultdict(int)
        for player_id, answer in ordered:
            if answer.correct == correct:
                current[player_id] += 1
                longest[player_id] = max(longest[player_id], current[player_id])
            else:
                current[player_id] = 0
        return dict(longest)

    def longest_correct_streak(self) -> dict[str, Any] | None:
        return self._top_player_count(self._longest_runs(True), "streak")

    def longest_wrong_streak(self) -> dict[str, Any] | None:
        return self._top_player_count(self._longest_runs(False), "streak")

    def most_last_second_answers(
        self, threshold_ms: int = LAST_SECOND_LATENCY_MS
    ) -> dict[str, Any] | None:
        counts = Counter(
            player_id
            for player_id, answer in self._answers_by_player()
            if answer.latency_ms >= threshold_ms
        )
        return self._top_player_count(dict(counts), "count")

    def most_correct_answers(self) -> dict[str, Any] | None:
        counts = Counter(
            player_id for player_id, answer in self._answers_by_player() if answer.correct
        )
        return self._top_player_count(dict(counts), "correct")

    def most_wrong_answers(self) -> dict[str, Any] | None:
        counts = Counter(
            player_id
            for player_id, answer in self._answers_by_player()
            if not answer.correct
        )
        return self._top_player_count(dict(counts), "wrong")

    def best_percentage(self, min_games: int = 1) -> dict[str, Any] | None:
        games = Counter(session.player_id for session in self._finished_sessions())
        tallies: dict[int, list[int]] = defaultdict(lambda: [0, 0])
        for player_id, answer in self._answers_by_player():
            tallies[player_id][0 if answer.correct else 1] += 1

        best = None
        for player_id, (correct, wrong) in tallies.items():
            total = correct + wrong
            if total == 0 or games.get(player_id, 0) < min_games:
                continue
            percentage = correct / total * 100
            if best is None or percentage > best[1]:
                best = (player_id, percentage, correct, wrong)
        if best is None:
            return None
        player_id, percentage, correct, wrong = best
        return {
            "player": self._player_payload(player_id),
            "percentage": round(percentage, 1),
            "correct": correct,
            "wrong": wrong,
            "total": correct + wrong,
        }

    def hardest_category(
        self, min_answers: int = HARDEST_CATEGORY_MIN_ANSWERS
    ) -> dict[str, Any] | None:
        tallies: dict[str, list[int]] = defaultdict(lambda: [0, 0])
        for answer in self._answers():
            tallies[answer.category or UNKNOWN_CATEGORY][0 if answer.correct else 1] += 1

        hardest = None
        most_wrong = 0
        for category, (correct, wrong) in tallies.items():
            total = correct + wrong
            if total >= min_answers and wrong > most_wrong:
                most_wrong = wrong
                hardest = {
                    "category": category,
                    "wrong": wrong,
                    "correct": correct,
                    "total": total,
                    "difficulty_percentage": round(wrong / total * 100, 1),
                }
        return hardest

    def fastest_average_player(self) -> dict[str, Any] | None:
        latencies: dict[int, list[int]] = defaultdict(list)
        for player_id, answer in self._answers_by_player():
            latencies[player_id].append(answer.latency_ms)
        if not latencies:
            return None
        averages = sorted(
            (sum(values) / len(values), player_id)
            for player_id, values in latencies.items()
        )
        average, player_id = averages[0]
        return {
            "player": self._player_payload(player_id),
            "average_ms": int(round(average)),
        }

    def fastest_single_answer(self) -> dict[str, Any] | None:
        fastest = None
        for player_id, answer in self._answers_by_player():
            if fastest is None or answer.latency_ms < fastest[1].latency_ms:
                fastest = (player_id, answer)
        if fastest is None:
            return None
        player_id, answer = fastest
        return {
            "player": self._player_payload(player_id),
            "ms": answer.latency_ms,
            "answer": answer.given_answer,
        }

    def category_breakdown(self) -> dict[str, Any]:
        tallies: dict[str, list[int]] = defaultdict(lambda: [0, 0])
        for answer in self._answers():
            tallies[answer.category or UNKNOWN_CATEGORY][0 if answer.correct else 1] += 1

        by_category = {}
        most_used = None
        for category in sorted(tallies):
            correct, wrong = tallies[category]
            total = correct + wrong
            by_category[category] = {
                "correct": correct,
                "total": total,
                "percentage": round(correct / total * 100, 1) if total else 0.0,
            }
            if most_used is None or total > by_category[most_used]["total"]:
                most_used = category
        return {"categories": by_category, "most_used": most_used}

    # ------------------------
    # Combined view
    # ------------------------

    def overview(self) -> dict[str, Any]:
        return {
            "top_scorer": self.top_scorer(),
            "most_correct": self.most_correct_answers(),
            "most_wrong": self.most_wrong_answers(),
            "best_percentage": self.best_percentage(),
            "hardest_category": self.hardest_category(),
            "best_single_game": self.best_single_game(),
            "best_session_fewest_questions": self.best_session_fewest_questions(),
            "fastest_average": self.fastest_average_player(),
            "fastest_single_answer": self.fastest_single_answer(),
            "total_score_all_players": self.total_score_all_players(),
            "category_breakdown": self.category_breakdown(),
            "most_asked_category": self.most_asked_category(),
            "longest_correct_streak": self.longest_correct_streak(),
            "longest_wrong_streak": self.longest_wrong_streak(),
            "most_last_second_answers": self.most_last_second_answers(),
            "most_games_played": self.most_games_played(),
        }
