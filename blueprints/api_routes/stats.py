from flask import current_app, jsonify, request

from api_errors import trivia_error_response
from trivia_errors import NotFoundError
from trivia_formats import player_to_dict


def register_stats_api_routes(bp, context):
    players = context["players"]
    stats = context["stats"]

    def _respond(fn):
        try:
            return jsonify(fn())
        except Exception as exc:  # pragma: no cover - handled in integration tests
            return trivia_error_response(exc, log_label="Statistics")

    @bp.route("/api/players", endpoint="api_players")
    def api_players():
        return jsonify(players=[player_to_dict(p) for p in players.list_all()])

    @bp.route("/api/players/<path:name>/stats", endpoint="api_player_stats")
    def api_player_stats(name: str):
        def _run():
            summary = stats.player_summary(name)
            if summary is None:
                raise NotFoundError("Player not found.", details={"name": name})
            summary["categories"] = stats.player_category_statistics(
                summary["player"]["id"]
            )
            return summary

        return _respond(_run)

    @bp.route(
        "/api/players/<int:player_id>", methods=["DELETE"], endpoint="api_delete_player"
    )
    def api_delete_player(player_id: int):
        def _run():
            players.delete(player_id)
            current_app.logger.info("Deleted player %s via API", player_id)
            return {"ok": True, "id": player_id}

        return _respond(_run)

    @bp.route("/api/stats/overview", endpoint="api_stats_overview")
    def api_stats_overview():
        return _respond(stats.overview)

    @bp.route("/api/stats/leaderboard", endpoint="api_stats_leaderboard")
    def api_stats_leaderboard():
        limit = request.args.get("limit", default=10, type=int)
        limit = max(1, min(limit, 100))
        return _respond(
            lambda: {
                "sessions": stats.leaderboard(limit),
                "players": stats.top_players(limit),
            }
        )
