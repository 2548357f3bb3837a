import logging
import os
import secrets
from typing import Mapping

from flask import Flask, jsonify, redirect, send_from_directory, session, url_for
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

from .models import Recipient, User  # noqa: E402


def _flag(value: str | None, default: bool = False) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def create_app(overrides: Mapping | None = None):
    app = Flask(__name__, template_folder="templates")
    app.secret_key = os.getenv("SECRET_KEY", "dev")
    app.config["PREFERRED_URL_SCHEME"] = "https"

    def generate_csrf_token():
        token = session.get("_csrf_token")
        if not token:
            token = secrets.token_hex(16)
            session["_csrf_token"] = token
        return token

    app.jinja_env.globals["csrf_token"] = generate_csrf_token

    DB_USER = os.getenv("DB_USER", "certsend")
    DB_PASSWORD = os.getenv("POSTGRES_PASSWORD", "postgres")
    DB_HOST = os.getenv("DB_HOST", "db")
    DB_NAME = os.getenv("DB_NAME", "certsend")
    DATABASE_URL = os.getenv(
        "DATABASE_URL",
        f"postgresql+psycopg2://{DB_USER}:{DB_PASSWORD}@{DB_HOST}/{DB_NAME}",
    )

    app.config["SQLALCHEMY_DATABASE_URI"] = DATABASE_URL
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["MAX_CONTENT_LENGTH"] = 25 * 1024 * 1024

    site_root = os.getenv("SITE_ROOT", "/srv")
    app.config["SITE_ROOT"] = site_root
    app.config["PUBLIC_BASE_URL"] = os.getenv(
        "PUBLIC_BASE_URL", "http://localhost:5000"
    ).rstrip("/")
    app.config["AUTH_REQUIRED"] = _flag(os.getenv("AUTH_REQUIRED"), default=True)

    app.config["CERT_PRODUCER"] = os.getenv("CERT_PRODUCER", "viewer").lower()
    app.config["CERT_TEMPLATE_PATH"] = os.getenv(
        "CERT_TEMPLATE_PATH", os.path.join(site_root, "templates", "certificate.png")
    )
    app.config["CERT_TEMPLATE_URL"] = os.getenv("CERT_TEMPLATE_URL", "")
    app.config["IMAGE_API_URL"] = os.getenv("IMAGE_API_URL", "")
    app.config["IMAGE_API_KEY"] = os.getenv("IMAGE_API_KEY", "")
    app.config["IMAGE_API_TIMEOUT"] = float(os.getenv("IMAGE_API_TIMEOUT", "60"))

    app.config["VERIFY_LINKS"] = _flag(os.getenv("VERIFY_LINKS"))
    app.config["VERIFY_TIMEOUT"] = float(os.getenv("VERIFY_TIMEOUT", "10"))
    app.config["DISPATCH_DELAY_SECONDS"] = float(
        os.getenv("DISPATCH_DELAY_SECONDS", "1.5")
    )

    app.config["WHATSAPP_MESSAGE"] = os.getenv(
        "WHATSAPP_MESSAGE",
        "Hello {name}, congratulations! Here is your certificate: {link}",
    )
    app.config["EMAIL_SUBJECT"] = os.getenv("EMAIL_SUBJECT", "Your certificate")
    app.config["EMAIL_BODY"] = os.getenv(
        "EMAIL_BODY",
        "Hello {name},\n\nCongratulations! You can download your certificate here:\n{link}\n",
    )

    if overrides:
        app.config.update(overrides)
    if not app.config["CERT_TEMPLATE_URL"]:
        app.config["CERT_TEMPLATE_URL"] = (
            app.config["PUBLIC_BASE_URL"].rstrip("/") + "/template"
        )

    db.init_app(app)

    @app.get("/health")
    def health():  # pragma: no cover - simple healthcheck
        return "OK", 200

    @app.get("/certificates/files/<path:filename>")
    def certificate_file(filename: str):
        cert_dir = os.path.join(app.config["SITE_ROOT"], "certificates")
        return send_from_directory(cert_dir, filename)

    @app.get("/home", endpoint="home")
    def index():  # pragma: no cover - trivial route
        return redirect(url_for("recipients.index"))

    from .routes.auth import bp as auth_bp
    from .routes.recipients import bp as recipients_bp
    from .routes.certificates import bp as certificates_bp
    from .routes.template import bp as template_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(recipients_bp)
    app.register_blueprint(certificates_bp)
    app.register_blueprint(template_bp)

    @app.errorhandler(413)
    def too_large(_exc):
        return jsonify({"ok": False, "message": "Uploaded file is too large."}), 413

    with app.app_context():
        if not os.getenv("FLASK_SKIP_SEED"):
            seed_initial_user_safely()

    return app


def seed_initial_user_safely() -> None:
    """Seed an initial operator if the users table exists and is empty."""

    try:
        from sqlalchemy import inspect

        insp = inspect(db.engine)
        if "users" not in insp.get_table_names():
            logging.info("seed skipped (users table missing)")
            return

        if db.session.query(User).count() > 0:
            return

        email = os.getenv("FIRST_ADMIN_EMAIL", "").strip().lower()
        password = os.getenv("FIRST_ADMIN_PASSWORD", "")
        if not email or not password:
            logging.info("seed skipped (FIRST_ADMIN_EMAIL/FIRST_ADMIN_PASSWORD unset)")
            return
        admin = User(email=email, full_name=email)
        admin.set_password(password)
        db.session.add(admin)
        db.session.commit()
        logging.info("Seeded operator %s.", email)
    except Exception:
        db.session.rollback()
        logging.exception("seed_initial_user_safely failed")
