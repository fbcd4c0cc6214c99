from __future__ import annotations

import logging
import os
import random
from dataclasses import dataclass

from content_loader import DEFAULT_BUNDLE_DIR, ContentLoader
from game_session import SessionEngine
from player_repository import PlayerRepository
from question_repository import QuestionRepository
from session_events import SessionEnded, Subscription
from trivia_stats import TriviaStats
from trivia_store import TriviaStore

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(asctime)s] %(levelname)s: %(message)s"


class MaxSizeFileHandler(logging.FileHandler):
    def __init__(self, filename: str, max_bytes: int, **kwargs):
        self.max_bytes = max_bytes
        super().__init__(filename, **kwargs)

    def emit(self, record):
        try:
            if os.path.exists(self.baseFilename):
                if os.path.getsize(self.baseFilename) >= self.max_bytes:
                    return
            super().emit(record)
        except Exception:
            self.handleError(record)


@dataclass(frozen=True)
class AppServiceConfig:
    db_path: str = "trivia.db"
    bundle_dir: str = DEFAULT_BUNDLE_DIR
    random_seed: str = ""
    default_question_count: int = 10
    log_file: str = ""
    log_max_bytes: int = 2 * 1024 * 1024
    is_prod: bool = False
    api_host: str = "127.0.0.1"
    api_port: int = 8050
    cors_origin: str = "*"


def _env_bool(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).strip().lower() in ("true", "1", "t", "yes")


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r", name, raw)
        return default


def load_config_from_env() -> AppServiceConfig:
    """Build the service config from the process environment (.env already loaded)."""
    return AppServiceConfig(
        db_path=os.getenv("TRIVIA_DB", "trivia.db").strip() or "trivia.db",
        bundle_dir=os.getenv("TRIVIA_BUNDLE_DIR", DEFAULT_BUNDLE_DIR).strip()
        or DEFAULT_BUNDLE_DIR,
        random_seed=os.getenv("TRIVIA_RANDOM_SEED", "").strip(),
        default_question_count=_env_int("TRIVIA_DEFAULT_QUESTIONS", 10),
        log_file=os.getenv("TRIVIA_LOG_FILE", "").strip(),
        log_max_bytes=_env_int("TRIVIA_LOG_MAX_BYTES", 2 * 1024 * 1024),
        is_prod=_env_bool("IS_PROD"),
        api_host=os.getenv("API_HOST", "127.0.0.1"),
        api_port=_env_int("API_PORT", 8050),
        cors_origin=os.getenv("CORS_ORIGIN", "*"),
    )


def configure_logging(
    config: AppServiceConfig, target: logging.Logger | None = None
) -> logging.Logger:
    """Attach console + hard-capped file handlers. The file is never rotated."""
    target = target or logging.getLogger()
    formatter = logging.Formatter(LOG_FORMAT)

    target.handlers.clear()
    target.setLevel(logging.INFO)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.INFO)
    console_handler.setFormatter(formatter)
    target.addHandler(console_handler)

    if config.log_file:
        file_handler = MaxSizeFileHandler(config.log_file, max_bytes=config.log_max_bytes)
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(formatter)
        target.addHandler(file_handler)

    # Silence Werkzeug access logs
    logging.getLogger("werkzeug").setLevel(logging.ERROR)
    return target


class AppServices:
    """Explicitly constructed wiring of the store, repositories and engine."""

    def __init__(self, config: AppServiceConfig, app=None):
        self.app = app
        self.config = config
        self.logger = app.logger if app is not None else logger

        self.rng = self._build_rng(config.random_seed)
        self.store = TriviaStore(config.db_path)
        self.players = PlayerRepository(self.store)
        self.questions = QuestionRepository(self.store, rng=self.rng)
        self.content = ContentLoader(self.store, self.questions, config.bundle_dir)
        self.engine = SessionEngine(self.store, self.questions, self.players, rng=self.rng)
        self.stats = TriviaStats(self.store)
        self._subscriptions: list[Subscription] = []

    # ------------------------
    # Lifecycle
    # ------------------------

    def open(self) -> "AppServices":
        self.store.open()
        seeded = self.content.seed_if_empty()
        if seeded:
            self.logger.info("Question bank seeded with %s questions.", seeded)
        if not self._subscriptions:
            self._subscriptions.append(
                self.engine.session_ended.subscribe(self._log_session_ended)
            )
        return self

    def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions.clear()
        self.store.close()

    def __enter__(self) -> "AppServices":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ------------------------
    # Runtime validation
    # ------------------------

    def validate_runtime_config(self) -> list[str]:
        warnings: list[str] = []
        if not os.path.isdir(self.config.bundle_dir):
            warnings.append(
                f"TRIVIA_BUNDLE_DIR does not exist: {self.config.bundle_dir}"
            )

        if self.config.random_seed and self._parse_seed(self.config.random_seed) is None:
            warnings.append("TRIVIA_RANDOM_SEED should be a whole number.")

        if self.config.random_seed and self.config.is_prod:
            warnings.append(
                "TRIVIA_RANDOM_SEED is set in production; question order will be predictable."
            )

        if self.config.default_question_count < 1:
            warnings.append("TRIVIA_DEFAULT_QUESTIONS should be 1 or greater.")

        if self.config.log_file and self.config.log_max_bytes <= 0:
            warnings.append(
                "TRIVIA_LOG_MAX_BYTES should be greater than 0 when TRIVIA_LOG_FILE is set."
            )

        if not (0 < self.config.api_port < 65536):
            warnings.append("API_PORT should be between 1 and 65535.")

        if warnings:
            for warning in warnings:
                self.logger.warning("Config warning: %s", warning)
        else:
            self.logger.info("Runtime configuration checks passed.")
        return warnings

    @property
    def default_question_count(self) -> int:
        return max(1, self.config.default_question_count)

    # ------------------------
    # Internals
    # ------------------------

    @staticmethod
    def _parse_seed(raw: str) -> int | None:
        try:
            return int(raw)
        except (TypeError, ValueError):
            return None

    def _build_rng(self, raw_seed: str) -> random.Random:
        seed = self._parse_seed(raw_seed) if raw_seed else None
        return random.Random(seed)

    def _log_session_ended(self, event: SessionEnded) -> None:
        self.logger.info(
            "Session %s finished: player %s scored %s",
            event.session_id,
            event.player_id,
            event.total_score,
        )
