import os

from flask import Flask
from flask_cors import CORS

from form_gateway.proxy.config import load_settings
from form_gateway.proxy.logger import logger
from form_gateway.proxy.routes import register_routes


def create_app(settings=None):
    settings = settings or load_settings()
    app = Flask(__name__)
    app.url_map.strict_slashes = False
    app.config["GATEWAY_SETTINGS"] = settings
    CORS(
        app,
        resources={r"/*": {"origins": "*"}},
        allow_headers="*",
        methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        send_wildcard=True,
    )
    register_routes(app, settings)
    if settings.is_dev:
        logger.info("Running in dev mode: origin allow-list is disabled.")
    return app


def main():
    host = os.getenv("GATEWAY_HOST", "0.0.0.0")
    port = int(os.getenv("GATEWAY_PORT", "8787"))
    app = create_app()
    logger.info("Starting form gateway on %s:%s", host, port)
    app.run(host=host, port=port)


if __name__ == "__main__":
    main()
