from __future__ import annotations

import logging
import re
import time

from trivia_errors import NotFoundError, TriviaValidationError
from trivia_formats import Player, is_valid_tier, tier_rank
from trivia_store import PLAYERS, TriviaStore

logger = logging.getLogger(__name__)


class PlayerRepository:
    NAME_MAX = 40

    def __init__(self, store: TriviaStore):
        self.store = store

    def get(self, player_id: int) -> Player | None:
        record = self.store.get(PLAYERS, player_id)
        return Player.from_record(record) if record else None

    def get_by_name(self, name: str) -> Player | None:
        clean_name = self._sanitize_name(name)
        if not clean_name:
            return None
        record = self.store.lookup_by_index(PLAYERS, "name", clean_name)
        return Player.from_record(record) if record else None

    def list_all(self) -> list[Player]:
        return [Player.from_record(record) for record in self.store.scan_all(PLAYERS)]

    def create(
        self,
        name: str,
        age: int | None = None,
        tier_min: str | None = None,
        tier_max: str | None = None,
        color: str | None = None,
    ) -> Player:
        clean_name = self._sanitize_name(name)
        if not clean_name:
            raise TriviaValidationError("Player name is required.")
        self._validate_tiers(tier_min, tier_max)

        player = Player(
            name=clean_name,
            age=self._normalize_age(age),
            tier_min=tier_min or None,
            tier_max=tier_max or None,
            color=(color or "").strip() or None,
            total_score=0,
            created_at=int(time.time()),
        )
        player.id = self.store.add(PLAYERS, player.to_record())
        logger.info("Created player %s (%s)", player.name, player.id)
        return player

    def update(self, player: Player) -> Player:
        if player.id is None or self.store.get(PLAYERS, player.id) is None:
            raise NotFoundError("Player not found.", details={"player_id": player.id})
        self._validate_tiers(player.tier_min, player.tier_max)
        self.store.put(PLAYERS, player.to_record())
        return player

    def add_score(
        self, player_id: int, points: int, played_at: int | None = None
    ) -> Player:
        player = self.get(player_id)
        if player is None:
            raise NotFoundError("Player not found.", details={"player_id": player_id})
        player.total_score += int(points)
        player.last_played_at = int(played_at if played_at is not None else time.time())
        self.store.put(PLAYERS, player.to_record())
        return player

    def delete(self, player_id: int) -> None:
        if self.store.get(PLAYERS, player_id) is None:
            raise NotFoundError("Player not found.", details={"player_id": player_id})
        self.store.delete(PLAYERS, player_id)
        logger.info("Deleted player %s", player_id)

    # ------------------------
    # Validation helpers
    # ------------------------

    @classmethod
    def _sanitize_name(cls, name: str) -> str:
        return re.sub(r"\s+", " ", str(name or "")).strip()[: cls.NAME_MAX]

    @staticmethod
    def _normalize_age(age) -> int | None:
        if age is None or age == "":
            return None
        try:
            value = int(age)
        except (TypeError, ValueError) as exc:
            raise TriviaValidationError("Age must be a whole number.") from exc
        if value < 0:
            raise TriviaValidationError("Age cannot be negative.")
        return value

    @staticmethod
    def _validate_tiers(tier_min: str | None, tier_max: str | None) -> None:
        for label, tier in (("tier_min", tier_min), ("tier_max", tier_max)):
            if tier and not is_valid_tier(tier):
                raise TriviaValidationError(
                    f"Unknown difficulty tier: {tier}", details={"field": label}
                )
        if tier_min and tier_max and tier_rank(tier_min) > tier_rank(tier_max):
            raise TriviaValidationError(
                "Minimum tier cannot be above the maximum tier."
            )
