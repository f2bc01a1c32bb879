import click
from flask import Flask
from flasgger import Swagger
from flask_cors import CORS

from .config import get_config, validate_config
from .errors import register_error_handlers
from .logging_config import configure_logging
from models import storage
from services.credential_store import CredentialStore
from services.session_store import SessionStore
from services.token_service import TokenService
from utils.security import PasswordVerifier, build_codecs

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0.0",
    "info": {
        "title": "Session Token Service",
        "version": "1.0.0",
        "description": "Sign-up, sign-in, refresh token rotation and logout.",
    },
    "basePath": "/",
    "schemes": ["http", "https"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "Enter the token with the `Bearer ` prefix, e.g. \"Bearer abcde12345\"."
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


def build_token_service(config) -> TokenService:
    access_codec, refresh_codec = build_codecs(config)
    passwords = PasswordVerifier(
        time_cost=config["PASSWORD_TIME_COST"],
        memory_cost=config["PASSWORD_MEMORY_COST"],
    )
    return TokenService(
        credentials=CredentialStore(storage),
        sessions=SessionStore(storage),
        access_codec=access_codec,
        refresh_codec=refresh_codec,
        passwords=passwords,
    )


def create_app(config_name: str | None = None, overrides: dict | None = None) -> Flask:
    """
    Application factory: creates and configures the Flask app.
    Configuration errors (bad TTL strings, dev secrets in production) raise
    InternalError here, before the app serves anything.
    """
    app = Flask(__name__)

    app.config.from_object(get_config(config_name))
    if overrides:
        app.config.update(overrides)
    validate_config(app.config)

    configure_logging(app)

    # refresh cookie is sent cross-origin only with credentials, which rules out "*"
    origins = app.config.get("CORS_ORIGINS", "*")
    if origins == "*":
        CORS(app, resources={r"/*": {"origins": "*"}})
    else:
        CORS(
            app,
            resources={r"/*": {"origins": [o.strip() for o in origins.split(",")]}},
            supports_credentials=True,
        )

    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    register_error_handlers(app)

    storage.configure(app.config["DATABASE_URL"], echo=app.config.get("SQL_ECHO", False))
    storage.reload()
    app.extensions["token_service"] = build_token_service(app.config)

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .users import bp as users_bp

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_bp, url_prefix="/api/v1/auth")
    app.register_blueprint(users_bp, url_prefix="/api/v1/users")

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        # calls scoped_session.remove(), preventing connection leaks
        storage.close()

    @app.cli.command("purge-sessions")
    def purge_sessions():
        """Delete every session whose refresh token has expired."""
        count = app.extensions["token_service"].purge_expired_sessions()
        click.echo(f"Purged {count} expired sessions")

    @app.route("/")
    def root():
        return {
            "message": "Session Token Service",
            "docs": "/apidocs/",
            "health": "/api/v1/health",
        }, 200

    return app
