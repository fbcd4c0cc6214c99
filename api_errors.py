from __future__ import annotations

from typing import Any

from flask import current_app, jsonify

from trivia_errors import TriviaError


def build_error_payload(
    *,
    code: str,
    message: str,
    details: Any = None,
) -> dict[str, Any]:
    payload = {
        "code": str(code).strip() or "unknown_error",
        "message": str(message).strip() or "Unknown error.",
        "details": details if details is not None else {},
    }
    # Older clients read "error" instead of "message".
    payload["error"] = payload["message"]
    return payload


def error_response(
    *,
    status: int,
    code: str,
    message: str,
    details: Any = None,
):
    return jsonify(build_error_payload(code=code, message=message, details=details)), int(
        status
    )


def trivia_error_response(exc: Exception, *, log_label: str = "Trivia"):
    """Map a raised error onto a JSON error response.

    ``TriviaError`` subclasses keep their own status and code. Anything at or
    above 500 is logged and replaced with a generic message.
    """
    status_code = int(getattr(exc, "status_code", 500))
    if status_code >= 500:
        current_app.logger.error("%s API failure: %s", log_label, exc)
        code = exc.code if isinstance(exc, TriviaError) else "trivia_unavailable"
        return error_response(
            status=status_code if isinstance(exc, TriviaError) else 500,
            code=code,
            message="The trivia service is temporarily unavailable.",
        )
    if isinstance(exc, TriviaError):
        return error_response(
            status=status_code,
            code=exc.code,
            message=exc.message,
            details=exc.details,
        )
    return error_response(status=status_code, code="trivia_error", message=str(exc))
