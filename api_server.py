"""Standalone trivia API service backed by SQLite."""

import logging

from dotenv import load_dotenv
from flask import Flask

from app_services import AppServices, configure_logging, load_config_from_env
from blueprints.api import create_api_blueprint

load_dotenv()

logging.basicConfig(level=logging.INFO, format="[%(asctime)s] %(levelname)s: %(message)s")
logger = logging.getLogger(__name__)


def create_app(config=None) -> Flask:
    config = config or load_config_from_env()
    app = Flask(__name__)
    configure_logging(config, app.logger)
    app.logger.propagate = False

    services = AppServices(config, app=app)
    services.validate_runtime_config()
    services.open()
    app.extensions["trivia_services"] = services

    app.register_blueprint(create_api_blueprint(services=services))

    @app.after_request
    def add_cors_headers(response):
        response.headers["Access-Control-Allow-Origin"] = config.cors_origin
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        return response

    @app.route("/api/<path:_path>", methods=["OPTIONS"])
    def api_options(_path):
        return ("", 204)

    return app


def main(config=None) -> None:
    app = create_app(config)
    config = app.extensions["trivia_services"].config
    logger.info("Starting trivia API on %s:%s", config.api_host, config.api_port)
    app.run(debug=False, host=config.api_host, port=config.api_port)


if __name__ == "__main__":
    main()
