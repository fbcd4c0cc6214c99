from __future__ import annotations

from flask import current_app, jsonify, request

from api_errors import trivia_error_response
from trivia_errors import TriviaValidationError
from trivia_formats import Question, question_to_dict


def _parse_question(data, existing: Question | None = None) -> Question:
    wrong_answers = data.get("wrong_answers")
    if wrong_answers is not None and not isinstance(wrong_answers, list):
        raise TriviaValidationError("wrong_answers must be a list.")
    base = existing or Question(
        text="", correct_answer="", wrong_answers=[], category="", tier=""
    )
    return Question(
        id=base.id,
        text=str(data.get("question", base.text) or ""),
        correct_answer=str(data.get("correct_answer", base.correct_answer) or ""),
        wrong_answers=list(wrong_answers if wrong_answers is not None else base.wrong_answers),
        category=str(data.get("category", base.category) or ""),
        tier=str(data.get("tier", base.tier) or "").strip().lower(),
        base_points=data.get("base_points", base.base_points) or 0,
        created_at=base.created_at,
        flagged=bool(data.get("flagged", base.flagged)),
        source=base.source,
    )


def register_question_api_routes(bp, context):
    questions = context["questions"]
    content = context["content"]

    def _respond(fn, status: int = 200):
        try:
            return jsonify(fn()), status
        except Exception as exc:  # pragma: no cover - handled in integration tests
            return trivia_error_response(exc, log_label="Question bank")

    @bp.route("/api/questions", methods=["GET"], endpoint="api_questions")
    def api_questions():
        category = (request.args.get("category") or "").strip()
        tier = (request.args.get("tier") or "").strip().lower()
        flagged_only = request.args.get("flagged", "").lower() in ("1", "true", "yes")

        items = questions.list_all()
        if category:
            items = [q for q in items if q.category == category]
        if tier:
            items = [q for q in items if q.tier == tier]
        if flagged_only:
            items = [q for q in items if q.flagged]
        return jsonify(
            questions=[question_to_dict(q) for q in items],
            total=len(items),
        )

    @bp.route("/api/questions", methods=["POST"], endpoint="api_add_question")
    def api_add_question():
        data = request.get_json(silent=True) or {}

        def _run():
            question = questions.add(_parse_question(data))
            current_app.logger.info("Added curated question %s via API", question.id)
            return question_to_dict(question)

        return _respond(_run, status=201)

    @bp.route(
        "/api/questions/<int:question_id>", methods=["GET"], endpoint="api_question"
    )
    def api_question(question_id: int):
        return _respond(lambda: question_to_dict(questions.get(question_id)))

    @bp.route(
        "/api/questions/<int:question_id>",
        methods=["PUT"],
        endpoint="api_update_question",
    )
    def api_update_question(question_id: int):
        data = request.get_json(silent=True) or {}

        def _run():
            existing = questions.get(question_id)
            return question_to_dict(questions.update(_parse_question(data, existing)))

        return _respond(_run)

    @bp.route(
        "/api/questions/<int:question_id>",
        methods=["DELETE"],
        endpoint="api_delete_question",
    )
    def api_delete_question(question_id: int):
        def _run():
            questions.delete(question_id)
            current_app.logger.info("Deleted question %s via API", question_id)
            return {"ok": True, "id": question_id}

        return _respond(_run)

    @bp.route(
        "/api/questions/<int:question_id>/flag",
        methods=["POST"],
        endpoint="api_flag_question",
    )
    def api_flag_question(question_id: int):
        return _respond(lambda: question_to_dict(questions.flag_error(question_id)))

    @bp.route(
        "/api/questions/<int:question_id>/flag",
        methods=["DELETE"],
        endpoint="api_unflag_question",
    )
    def api_unflag_question(question_id: int):
        return _respond(lambda: question_to_dict(questions.clear_error(question_id)))

    @bp.route("/api/questions/refresh", methods=["POST"], endpoint="api_refresh_questions")
    def api_refresh_questions():
        return _respond(content.refresh)

    @bp.route("/api/categories", endpoint="api_categories")
    def api_categories():
        counts = questions.categories_with_counts()
        return jsonify(
            categories=[{"category": name, "count": count} for name, count in counts.items()],
            tiers=questions.count_by_tier(),
        )
