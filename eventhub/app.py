import os
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

from . import models  # noqa: E402,F401  ensures model tables are registered
from .shared.time import fmt_date, fmt_dt, LOCAL_TZ_NAME  # noqa: E402

DEFAULT_BASE_URL = "http://localhost:5000"
DEFAULT_ATTENDANCE_TZ = "Asia/Kolkata"


def _vera_font(filename: str) -> str:
    import reportlab

    return os.path.join(os.path.dirname(reportlab.__file__), "fonts", filename)


def _validate_timezone(key: str, value: str) -> str:
    if value == LOCAL_TZ_NAME:
        return value
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"{key} is not a valid timezone: {value!r}") from exc
    return value


def create_app(config: dict | None = None):
    app = Flask(__name__, template_folder="templates")
    app.secret_key = os.getenv("SECRET_KEY", "dev")
    app.config["PREFERRED_URL_SCHEME"] = "https"
    app.jinja_env.filters["fmt_dt"] = fmt_dt
    app.jinja_env.filters["fmt_date"] = fmt_date

    DB_USER = os.getenv("DB_USER", "eventhub")
    DB_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
    DB_HOST = os.getenv("DB_HOST", "db")
    DB_NAME = os.getenv("DB_NAME", "eventhub")
    DATABASE_URL = os.getenv(
        "DATABASE_URL",
        f"postgresql+psycopg2://{DB_USER}:{DB_PASSWORD}@{DB_HOST}/{DB_NAME}",
    )

    app.config["SQLALCHEMY_DATABASE_URI"] = DATABASE_URL
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["MAX_CONTENT_LENGTH"] = 5 * 1024 * 1024

    app.config["APP_BASE_URL"] = os.getenv("APP_BASE_URL", DEFAULT_BASE_URL)
    attendance_tz = os.getenv("ATTENDANCE_TIMEZONE", DEFAULT_ATTENDANCE_TZ)
    app.config["ATTENDANCE_TIMEZONE"] = attendance_tz
    # "local" keeps the legacy host-midnight eligibility window
    app.config["ELIGIBILITY_TIMEZONE"] = os.getenv("ELIGIBILITY_TIMEZONE", attendance_tz)
    app.config["CERT_TEMPLATE_PATH"] = os.getenv(
        "CERT_TEMPLATE_PATH",
        os.path.join(app.root_path, "assets", "certificate-template.png"),
    )
    app.config["CERT_FONT_BOLD_PATH"] = os.getenv(
        "CERT_FONT_BOLD_PATH", _vera_font("VeraBd.ttf")
    )
    app.config["CERT_FONT_REGULAR_PATH"] = os.getenv(
        "CERT_FONT_REGULAR_PATH", _vera_font("Vera.ttf")
    )
    app.config["MAIL_TIMEOUT_SECONDS"] = float(os.getenv("MAIL_TIMEOUT_SECONDS", "20"))
    app.config["ORG_NAME"] = os.getenv("ORG_NAME", "Rajasthan Technical University, Kota")
    app.config["EVENT_VENUE"] = os.getenv("EVENT_VENUE", "RTU Campus, Kota")

    if config:
        app.config.update(config)

    for key in ("ATTENDANCE_TIMEZONE", "ELIGIBILITY_TIMEZONE"):
        _validate_timezone(key, app.config[key])
    if app.config["ATTENDANCE_TIMEZONE"] != app.config["ELIGIBILITY_TIMEZONE"]:
        app.logger.warning(
            "[CONFIG] attendance timezone %s differs from eligibility timezone %s; "
            "scans near midnight may fall outside the certificate window",
            app.config["ATTENDANCE_TIMEZONE"],
            app.config["ELIGIBILITY_TIMEZONE"],
        )

    db.init_app(app)

    @app.get("/health")
    def health():  # pragma: no cover - simple healthcheck
        return "OK", 200

    from .routes.auth import bp as auth_bp
    from .routes.scan import bp as scan_bp
    from .routes.events import bp as events_bp
    from .routes.registrants import bp as registrants_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(scan_bp)
    app.register_blueprint(events_bp)
    app.register_blueprint(registrants_bp)

    @app.errorhandler(403)
    def forbidden(_exc):
        return jsonify({"success": False, "error": {"code": "PermissionDenied"}}), 403

    @app.errorhandler(404)
    def not_found(_exc):
        return jsonify({"success": False, "error": {"code": "NotFound"}}), 404

    return app
