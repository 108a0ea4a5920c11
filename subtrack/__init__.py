# subtrack/__init__.py
from flask import Flask, jsonify
from .config import Config
from .extensions import db, cors
from .errors import register_error_handlers
from .utils.logs import configure_logging


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    db.init_app(app)

    cors.init_app(
        app,
        resources={r"/api/*": {"origins": app.config.get("CORS_ORIGINS", "*")}},
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    from . import models  # noqa: F401  (register tables on the metadata)
    from .blueprints import register_blueprints
    from .cli import register_commands

    register_blueprints(app)
    register_error_handlers(app)
    register_commands(app)

    @app.get("/")
    def health():
        return jsonify({"ok": True, "service": "subtrack-backend"})

    return app
