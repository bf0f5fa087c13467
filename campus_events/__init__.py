from flask import Flask, jsonify
from flask_cors import CORS
from dotenv import load_dotenv
from werkzeug.exceptions import HTTPException
import os
from campus_events.extensions import db, migrate, jwt, limiter
from campus_events.exceptions import ApiError
from campus_events.utils.email import mail
from datetime import timedelta
import logging

# Load environment variables
load_dotenv()


def _env_flag(name, default):
    return os.getenv(name, default).lower() in ["true", "1", "t"]


def create_app(test_config=None):
    app = Flask(__name__)

    # Set testing mode from environment variable
    app.config["TESTING"] = os.getenv("FLASK_ENV") in ["development", "testing"]

    # Configure logging
    logging.basicConfig(level=logging.INFO)
    app.logger.setLevel(logging.INFO)

    # Configure database
    app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv(
        "DATABASE_URL", "postgresql://localhost/campus_events"
    )
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False

    # Configure JWT
    app.config["JWT_SECRET_KEY"] = os.getenv("JWT_SECRET_KEY", "your-secret-key")
    app.config["JWT_ACCESS_TOKEN_EXPIRES"] = timedelta(days=1)
    app.config["JWT_TOKEN_LOCATION"] = ["headers"]
    app.config["JWT_HEADER_NAME"] = "Authorization"
    app.config["JWT_HEADER_TYPE"] = "Bearer"

    # Email configuration
    app.config['MAIL_SERVER'] = os.getenv('MAIL_SERVER')
    app.config['MAIL_PORT'] = int(os.getenv('MAIL_PORT', 587))
    app.config['MAIL_USE_TLS'] = _env_flag('MAIL_USE_TLS', 'true')
    app.config['MAIL_USERNAME'] = os.getenv('MAIL_USERNAME')
    app.config['MAIL_PASSWORD'] = os.getenv('MAIL_PASSWORD')
    app.config['MAIL_SENDER_NAME'] = os.getenv('MAIL_SENDER_NAME', 'Campus Events')
    app.config['CLIENT_URL'] = os.getenv('CLIENT_URL', 'http://localhost:3000')

    # Rate limiting
    app.config["RATELIMIT_STORAGE_URI"] = os.getenv("LIMITER_DATABASE_URL", "memory://")
    app.config["RATELIMIT_ENABLED"] = _env_flag("RATELIMIT_ENABLED", "true")

    # Background work
    app.config["EVENT_STATUS_UPDATE_INTERVAL"] = int(os.getenv("EVENT_STATUS_UPDATE_INTERVAL", 3600))
    app.config["REMINDER_INTERVAL"] = int(os.getenv("REMINDER_INTERVAL", 900))
    app.config["REMINDER_WINDOW_HOURS"] = int(os.getenv("REMINDER_WINDOW_HOURS", 24))
    app.config["DISPATCH_ASYNC"] = _env_flag("DISPATCH_ASYNC", "true")

    if test_config is not None:
        app.config.update(test_config)

    # Initialize Flask extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    mail.init_app(app)
    limiter.init_app(app)

    # Register blueprints
    from campus_events.routes.event_routes import event_bp
    from campus_events.routes.registration_routes import registration_bp
    from campus_events.routes.notification_routes import notification_bp

    app.register_blueprint(event_bp, url_prefix="/api")
    app.register_blueprint(registration_bp, url_prefix="/api")
    app.register_blueprint(notification_bp, url_prefix="/api")

    # Set up CORS
    cors_origins = os.getenv(
        "CORS_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000",
    ).split(",")
    app.logger.info(f"Initializing CORS with origins: {cors_origins}")

    CORS(
        app,
        resources={
            r"/api/*": {"origins": cors_origins},
        },
        supports_credentials=True,
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept"],
        expose_headers=["Content-Type"],
    )

    register_error_handlers(app)

    @app.route("/api/health", methods=["GET"])
    def health():
        scheduler = app.extensions.get("event_scheduler")
        return jsonify(
            {
                "success": True,
                "message": "Server is running",
                "data": {
                    "status": "ok",
                    "scheduler": scheduler.get_status() if scheduler else {"running": False},
                },
            }
        ), 200

    return app


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(error):
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({"success": False, "message": error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        app.logger.error(f"Unhandled error: {str(error)}", exc_info=True)
        return jsonify({"success": False, "message": "An unexpected error occurred"}), 500

    @jwt.unauthorized_loader
    def missing_token(reason):
        return jsonify({"success": False, "message": reason}), 401

    @jwt.invalid_token_loader
    def invalid_token(reason):
        return jsonify({"success": False, "message": reason}), 401

    @jwt.expired_token_loader
    def expired_token(jwt_header, jwt_payload):
        return jsonify({"success": False, "message": "Token has expired"}), 401
