from __future__ import annotations

from flask import (
    Blueprint,
    current_app,
    flash,
    redirect,
    render_template,
    request,
    session as flask_session,
    url_for,
)
from sqlalchemy import func

from ..app import db
from ..models import User

bp = Blueprint("auth", __name__)


def _safe_next(target: str | None) -> str:
    if target and target.startswith("/") and not target.startswith("//"):
        return target
    return url_for("recipients.index")


@bp.route("/login", methods=["GET", "POST"], endpoint="login")
def login():
    if request.method == "POST":
        email = (request.form.get("email") or "").strip().lower()
        password = request.form.get("password", "")
        user = (
            db.session.query(User).filter(func.lower(User.email) == email).one_or_none()
            if email
            else None
        )
        if user is None:
            current_app.logger.info(f"[AUTH-FAIL] email={email} reason=unknown")
            flash("No account with that email.", "error")
            return redirect(url_for("auth.login"))
        if not user.check_password(password):
            current_app.logger.info(f"[AUTH-FAIL] email={email} reason=password")
            flash("Invalid email or password.", "error")
            return redirect(url_for("auth.login"))
        flask_session.clear()
        flask_session["user_id"] = user.id
        flask_session["user_email"] = user.email
        current_app.logger.info(f"[AUTH] login email={email}")
        return redirect(_safe_next(request.form.get("next")))
    if flask_session.get("user_id"):
        return redirect(url_for("recipients.index"))
    return render_template("login.html", next=request.args.get("next", ""))


@bp.route("/logout", methods=["GET", "POST"], endpoint="logout")
def logout():
    email = flask_session.get("user_email")
    flask_session.clear()
    if email:
        current_app.logger.info(f"[AUTH] logout email={email}")
    return redirect(url_for("auth.login"))
