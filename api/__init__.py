import logging

import click
from flask import Flask
from flasgger import Swagger
from flask_cors import CORS

from .config import get_config
from .errors import register_error_handlers
from models.account_store import AccountStore
from services.auth_service import AuthService

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "Streaming Platform API",
        "version": "1.0.0",
        "description": "Accounts and session tokens for the streaming platform backend.",
    },
    "basePath": "/",
    "schemes": ["http", "https"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "Enter the access token with the `Bearer ` prefix, e.g. \"Bearer abcde12345\"."
        }
    }
}

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec_1",
            "route": "/swagger.json",
            "rule_filter": lambda rule: True,   # include all endpoints
            "model_filter": lambda tag: True,   # include all models
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}


def create_app(config_name: str | None = None, overrides: dict | None = None,
               store: AccountStore | None = None) -> Flask:
    """
    Application factory: creates and configures the Flask app.

    The account store is an explicit handle: pass one in, or one is built
    from DATABASE_URL. It is opened here and its session is removed after
    every app context; call store.dispose() at shutdown.
    """
    app = Flask(__name__)

    app.config.from_object(get_config(config_name))
    if overrides:
        app.config.update(overrides)

    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    CORS(app, resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}})
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)
    register_error_handlers(app)

    if store is None:
        store = AccountStore(app.config["DATABASE_URL"], echo=app.config.get("DATABASE_ECHO", False))
    store.reload()
    app.extensions["account_store"] = store
    app.extensions["auth_service"] = AuthService(store, app.config)

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .users import bp as users_bp

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_bp, url_prefix="/api/v1/auth")
    app.register_blueprint(users_bp, url_prefix="/api/v1/users")

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        store.close()

    @app.cli.command("prune-tokens")
    def prune_tokens():
        """Delete refresh tokens whose stored lifetime has passed."""
        count = app.extensions["auth_service"].prune_expired_tokens()
        click.echo(f"Pruned {count} expired refresh tokens")

    @app.route("/")
    def root():
        return {
            "message": "Welcome to Streaming Platform API",
            "docs": "/apidocs/",
            "health": "/api/v1/health",
        }, 200

    return app
