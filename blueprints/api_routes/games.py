from flask import jsonify, request

from api_errors import trivia_error_response
from trivia_errors import NoOpenQuestionError, UnknownSessionError


def _optional_text(data, key):
    value = data.get(key)
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def register_game_api_routes(bp, context):
    engine = context["engine"]
    services = context["services"]

    def _respond(fn, status: int = 200):
        try:
            payload = fn()
            return jsonify(payload), status
        except Exception as exc:  # pragma: no cover - handled in integration tests
            return trivia_error_response(exc, log_label="Trivia session")

    def _require_state(session_id: int):
        state = engine.get_state(session_id)
        if state is None:
            raise UnknownSessionError(
                "Session is not active.", details={"session_id": session_id}
            )
        return state

    def _start_session():
        data = request.get_json(silent=True) or {}
        player_name = (data.get("player_name") or "").strip()
        question_count = data.get("question_count")
        if question_count is None:
            question_count = services.default_question_count
        return _respond(
            lambda: engine.start_session(
                player_name,
                question_count=question_count,
                category=_optional_text(data, "category"),
                tier=_optional_text(data, "tier"),
                age=data.get("age"),
                tier_min=_optional_text(data, "tier_min"),
                tier_max=_optional_text(data, "tier_max"),
            ).to_dict(),
            status=201,
        )

    def _session_state(session_id: int):
        return _respond(lambda: _require_state(session_id).to_dict())

    def _next_question(session_id: int):
        data = request.get_json(silent=True) or {}
        return _respond(
            lambda: engine.advance_question(
                session_id,
                category=_optional_text(data, "category"),
                tier=_optional_text(data, "tier"),
            ).to_dict()
        )

    def _submit_answer(session_id: int):
        data = request.get_json(silent=True) or {}
        answer = str(data.get("answer") or "")

        def _run():
            result = engine.submit_answer(session_id, answer)
            if result is None:
                raise NoOpenQuestionError(
                    "No question is waiting for an answer in this session.",
                    details={"session_id": session_id},
                )
            state = engine.get_state(session_id)
            return {
                "result": result.to_dict(),
                "state": state.to_dict() if state else None,
            }

        return _respond(_run)

    def _end_session(session_id: int):
        def _run():
            state = engine.end_session(session_id)
            if state is None:
                raise UnknownSessionError(
                    "Session is not active.", details={"session_id": session_id}
                )
            return state.to_dict()

        return _respond(_run)

    bp.add_url_rule(
        "/api/trivia/sessions",
        endpoint="api_trivia_start_session",
        view_func=_start_session,
        methods=["POST"],
    )
    bp.add_url_rule(
        "/api/trivia/sessions/<int:session_id>",
        endpoint="api_trivia_session_state",
        view_func=_session_state,
        methods=["GET"],
    )
    bp.add_url_rule(
        "/api/trivia/sessions/<int:session_id>/next",
        endpoint="api_trivia_next_question",
        view_func=_next_question,
        methods=["POST"],
    )
    bp.add_url_rule(
        "/api/trivia/sessions/<int:session_id>/answer",
        endpoint="api_trivia_submit_answer",
        view_func=_submit_answer,
        methods=["POST"],
    )
    bp.add_url_rule(
        "/api/trivia/sessions/<int:session_id>/end",
        endpoint="api_trivia_end_session",
        view_func=_end_session,
        methods=["POST"],
    )
