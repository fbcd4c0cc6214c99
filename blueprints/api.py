from flask import Blueprint, jsonify

from blueprints.api_routes.games import register_game_api_routes
from blueprints.api_routes.questions import register_question_api_routes
from blueprints.api_routes.stats import register_stats_api_routes


def create_api_blueprint(*, services):
    bp = Blueprint("api", __name__)
    context = {
        "services": services,
        "engine": services.engine,
        "questions": services.questions,
        "players": services.players,
        "content": services.content,
        "stats": services.stats,
    }

    @bp.route("/health", endpoint="health")
    def health():
        return jsonify(
            status="ok",
            active_sessions=len(services.engine.active_session_ids()),
        )

    register_game_api_routes(bp, context)
    register_question_api_routes(bp, context)
    register_stats_api_routes(bp, context)
    return bp
