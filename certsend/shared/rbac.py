from functools import wraps

from flask import abort, current_app, jsonify, redirect, request, session, url_for

from ..app import db
from ..models import User


def _wants_json() -> bool:
    best = request.accept_mimetypes.best_match(["application/json", "text/html"])
    return request.is_json or best == "application/json"


def login_required(fn):
    """Require a signed-in operator when AUTH_REQUIRED is on.

    The wrapped view receives ``current_user`` (``None`` when the gate is off).
    """

    @wraps(fn)
    def wrapper(*args, **kwargs):
        if not current_app.config.get("AUTH_REQUIRED", True):
            return fn(*args, **kwargs, current_user=None)
        user_id = session.get("user_id")
        user = db.session.get(User, user_id) if user_id else None
        if not user:
            session.pop("user_id", None)
            if _wants_json():
                return jsonify({"ok": False, "message": "Please sign in."}), 401
            return redirect(url_for("auth.login", next=request.path))
        return fn(*args, **kwargs, current_user=user)

    return wrapper


def check_csrf() -> None:
    token = request.form.get("csrf_token") or request.headers.get("X-CSRF-Token")
    if not token or token != session.get("_csrf_token"):
        abort(400)
