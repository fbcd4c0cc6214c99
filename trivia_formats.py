"""Record types for the trivia store and the difficulty tier ladder."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

TIER_APPRENTICE = "apprentice"
TIER_SKILLED = "skilled"
TIER_MASTER = "master"
TIER_KING = "king"
TIER_GRANDMASTER = "grandmaster"

# Ordered easiest to hardest.
TIERS = (
    TIER_APPRENTICE,
    TIER_SKILLED,
    TIER_MASTER,
    TIER_KING,
    TIER_GRANDMASTER,
)

SOURCE_BUNDLED = "bundled"
SOURCE_CURATED = "curated"
SOURCES = (SOURCE_BUNDLED, SOURCE_CURATED)

UNKNOWN_CATEGORY = "Unknown"


def tier_rank(tier: str) -> int:
    """Position of ``tier`` in the ladder, -1 when it is not a known tier."""
    try:
        return TIERS.index(tier)
    except ValueError:
        return -1


def is_valid_tier(tier: Optional[str]) -> bool:
    return tier in TIERS


def _compact(payload: Dict[str, Any]) -> Dict[str, Any]:
    if payload.get("id") is None:
        payload.pop("id", None)
    return payload


@dataclass
class Player:
    name: str
    id: Optional[int] = None
    age: Optional[int] = None
    tier_min: Optional[str] = None
    tier_max: Optional[str] = None
    color: Optional[str] = None
    total_score: int = 0
    created_at: int = 0
    last_played_at: Optional[int] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Player":
        return cls(
            id=record.get("id"),
            name=str(record.get("name") or ""),
            age=record.get("age"),
            tier_min=record.get("tier_min"),
            tier_max=record.get("tier_max"),
            color=record.get("color"),
            total_score=int(record.get("total_score") or 0),
            created_at=int(record.get("created_at") or 0),
            last_played_at=record.get("last_played_at"),
        )

    def to_record(self) -> Dict[str, Any]:
        return _compact(asdict(self))


@dataclass
class Question:
    text: str
    correct_answer: str
    wrong_answers: List[str]
    category: str
    tier: str
    base_points: int = 0
    id: Optional[int] = None
    created_at: int = 0
    flagged: bool = False
    source: str = SOURCE_CURATED

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Question":
        return cls(
            id=record.get("id"),
            text=str(record.get("text") or ""),
            correct_answer=str(record.get("correct_answer") or ""),
            wrong_answers=[str(item) for item in record.get("wrong_answers") or []],
            category=str(record.get("category") or ""),
            tier=str(record.get("tier") or ""),
            base_points=int(record.get("base_points") or 0),
            created_at=int(record.get("created_at") or 0),
            flagged=bool(record.get("flagged")),
            source=str(record.get("source") or SOURCE_CURATED),
        )

    def to_record(self) -> Dict[str, Any]:
        return _compact(asdict(self))

    def answer_options(self) -> List[str]:
        return [self.correct_answer, *self.wrong_answers]


@dataclass
class GameSession:
    player_id: int
    started_at: int
    id: Optional[int] = None
    ended_at: Optional[int] = None
    score: int = 0
    question_count: int = 0

    @property
    def is_finished(self) -> bool:
        return self.ended_at is not None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "GameSession":
        return cls(
            id=record.get("id"),
            player_id=int(record.get("player_id") or 0),
            started_at=int(record.get("started_at") or 0),
            ended_at=record.get("ended_at"),
            score=int(record.get("score") or 0),
            question_count=int(record.get("question_count") or 0),
        )

    def to_record(self) -> Dict[str, Any]:
        return _compact(asdict(self))


@dataclass
class Answer:
    session_id: int
    question_id: int
    given_answer: str
    correct: bool
    latency_ms: int
    category: str = UNKNOWN_CATEGORY
    points_awarded: int = 0
    id: Optional[int] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Answer":
        return cls(
            id=record.get("id"),
            session_id=int(record.get("session_id") or 0),
            question_id=int(record.get("question_id") or 0),
            given_answer=str(record.get("given_answer") or ""),
            correct=bool(record.get("correct")),
            latency_ms=int(record.get("latency_ms") or 0),
            category=str(record.get("category") or UNKNOWN_CATEGORY),
            points_awarded=int(record.get("points_awarded") or 0),
        )

    def to_record(self) -> Dict[str, Any]:
        return _compact(asdict(self))


@dataclass
class StatisticsRecord:
    player_id: int
    category: str
    id: Optional[int] = None
    games_played: int = 0
    total_score: int = 0
    correct_count: int = 0
    wrong_count: int = 0
    average_latency_ms: float = 0.0
    updated_at: int = 0

    @property
    def answer_count(self) -> int:
        return self.correct_count + self.wrong_count

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "StatisticsRecord":
        return cls(
            id=record.get("id"),
            player_id=int(record.get("player_id") or 0),
            category=str(record.get("category") or UNKNOWN_CATEGORY),
            games_played=int(record.get("games_played") or 0),
            total_score=int(record.get("total_score") or 0),
            correct_count=int(record.get("correct_count") or 0),
            wrong_count=int(record.get("wrong_count") or 0),
            average_latency_ms=float(record.get("average_latency_ms") or 0.0),
            updated_at=int(record.get("updated_at") or 0),
        )

    def to_record(self) -> Dict[str, Any]:
        return _compact(asdict(self))


@dataclass
class CategoryTally:
    correct: int = 0
    wrong: int = 0
    latency_total_ms: int = 0
    points: int = 0

    @property
    def total(self) -> int:
        return self.correct + self.wrong

    def to_dict(self) -> Dict[str, int]:
        return {"correct": self.correct, "wrong": self.wrong, "total": self.total}


@dataclass
class SessionResult:
    score: int
    question_count: int
    correct: int
    wrong: int
    percentage_correct: float
    average_latency_ms: int
    categories: Dict[str, CategoryTally] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "question_count": self.question_count,
            "correct": self.correct,
            "wrong": self.wrong,
            "percentage_correct": self.percentage_correct,
            "average_latency_ms": self.average_latency_ms,
            "categories": {
                name: tally.to_dict() for name, tally in sorted(self.categories.items())
            },
        }


def player_to_dict(player: Optional[Player]) -> Optional[Dict[str, Any]]:
    if player is None:
        return None
    return {
        "id": player.id,
        "name": player.name,
        "age": player.age,
        "tier_min": player.tier_min,
        "tier_max": player.tier_max,
        "color": player.color,
        "total_score": player.total_score,
        "created_at": player.created_at,
        "last_played_at": player.last_played_at,
    }


def question_to_dict(question: Question) -> Dict[str, Any]:
    return {
        "id": question.id,
        "question": question.text,
        "correct_answer": question.correct_answer,
        "wrong_answers": list(question.wrong_answers),
        "category": question.category,
        "tier": question.tier,
        "base_points": question.base_points,
        "created_at": question.created_at,
        "flagged": question.flagged,
        "source": question.source,
    }


def session_to_dict(session: Optional[GameSession]) -> Optional[Dict[str, Any]]:
    if session is None:
        return None
    return {
        "id": session.id,
        "player_id": session.player_id,
        "started_at": session.started_at,
        "ended_at": session.ended_at,
        "score": session.score,
        "question_count": session.question_count,
    }
