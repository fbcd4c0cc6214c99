from __future__ import annotations

from typing import Any


class TriviaError(Exception):
    code = "trivia_error"
    default_status = 400

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = int(status_code or self.default_status)
        self.details = dict(details or {})


class TriviaValidationError(TriviaError):
    code = "validation_error"
    default_status = 400


class NotFoundError(TriviaError):
    code = "not_found"
    default_status = 404


class UnknownSessionError(NotFoundError):
    code = "unknown_session"


class NoQuestionAvailableError(TriviaError):
    code = "no_question_available"
    default_status = 409


class DuplicateRecordError(TriviaError):
    code = "duplicate_record"
    default_status = 409


class PlayerCreationError(TriviaError):
    code = "player_creation_failed"
    default_status = 500


class PersistenceWriteFailure(TriviaError):
    code = "persistence_write_failed"
    default_status = 500


class ContentBundleError(TriviaError):
    code = "content_bundle_error"
    default_status = 500


class StoreClosedError(TriviaError):
    code = "store_closed"
    default_status = 503


class UnknownTableError(TriviaError):
    code = "unknown_table"
    default_status = 500


class NoOpenQuestionError(TriviaError):
    code = "no_open_question"
    default_status = 409
