from __future__ import annotations

import json
import queue

from flask import (
    Blueprint,
    Response,
    abort,
    current_app,
    flash,
    jsonify,
    redirect,
    render_template,
    request,
    stream_with_context,
    url_for,
)

from ..services.lifecycle import LifecycleController
from ..services.store import RecipientStore
from ..shared.certificates import current_template
from ..shared.dispatch import CHANNELS, WHATSAPP
from ..shared.errors import (
    CertSendError,
    QuotaExceeded,
    RecipientNotFound,
)
from ..shared.rbac import check_csrf, login_required
from ..shared.spreadsheet import read_rows
from ..shared.statuses import BADGE_CLASSES, GENERATE_ELIGIBLE, SEND_ELIGIBLE

bp = Blueprint("recipients", __name__)

STREAM_PING_SECONDS = 15.0


def _channel() -> str:
    channel = (request.values.get("channel") or WHATSAPP).strip().lower()
    if channel not in CHANNELS:
        abort(400)
    return channel


def _failure(exc: CertSendError, recipient_id: int | None = None):
    """One-line JSON notice for a handled lifecycle failure."""
    status = None
    if recipient_id is not None:
        try:
            status = RecipientStore().get(recipient_id).status
        except RecipientNotFound:
            status = None
    return jsonify(
        {
            "ok": False,
            "error": exc.__class__.__name__,
            "quota": isinstance(exc, QuotaExceeded),
            "message": str(exc),
            "status": status,
        }
    )


@bp.get("/")
@login_required
def index(current_user):
    store = RecipientStore()
    template = current_template()
    return render_template(
        "recipients.html",
        recipients=store.snapshot(),
        badge_classes=BADGE_CLASSES,
        generate_eligible=GENERATE_ELIGIBLE,
        send_eligible=SEND_ELIGIBLE,
        template_available=template.exists(),
        producer=current_app.config.get("CERT_PRODUCER"),
        current_user=current_user,
    )


@bp.get("/recipients.json")
@login_required
def snapshot(current_user):
    return jsonify({"recipients": RecipientStore().snapshot()})


@bp.get("/recipients/stream")
@login_required
def stream(current_user):
    """Server-sent events: one frame with the full record set per change."""
    store = RecipientStore()
    updates: queue.Queue = queue.Queue()
    unsubscribe = store.subscribe(updates.put)

    def events():
        try:
            while True:
                try:
                    records = updates.get(timeout=STREAM_PING_SECONDS)
                except queue.Empty:
                    yield "event: ping\ndata: {}\n\n"
                    continue
                yield f"data: {json.dumps({'recipients': records})}\n\n"
        finally:
            unsubscribe()

    resp = Response(stream_with_context(events()), mimetype="text/event-stream")
    resp.headers["Cache-Control"] = "no-cache"
    resp.headers["X-Accel-Buffering"] = "no"
    return resp


@bp.post("/recipients/import")
@login_required
def import_file(current_user):
    check_csrf()
    file = request.files.get("file")
    if not file or not file.filename:
        flash("Choose a spreadsheet to upload.", "error")
        return redirect(url_for("recipients.index"))
    try:
        rows = read_rows(file.filename, file.stream)
        count = RecipientStore().import_rows(rows)
    except CertSendError as exc:
        current_app.logger.warning(f"[IMPORT] failed file={file.filename} error={exc}")
        flash(str(exc), "error")
        return redirect(url_for("recipients.index"))
    current_app.logger.info(f"[IMPORT] file={file.filename} imported={count}")
    flash(f"{file.filename} processed: {count} recipient(s) imported.", "success")
    return redirect(url_for("recipients.index"))


@bp.post("/recipients/clear")
@login_required
def clear(current_user):
    check_csrf()
    try:
        removed = RecipientStore().clear_all()
    except CertSendError as exc:
        current_app.logger.warning(f"[CLEAR] failed error={exc}")
        flash(str(exc), "error")
        return redirect(url_for("recipients.index"))
    flash(f"Removed {removed} recipient(s).", "success")
    return redirect(url_for("recipients.index"))


@bp.post("/recipients/<int:recipient_id>/generate")
@login_required
def generate(recipient_id: int, current_user):
    check_csrf()
    controller = LifecycleController.from_app()
    try:
        recipient = controller.generate(recipient_id)
    except RecipientNotFound as exc:
        return jsonify({"ok": False, "message": str(exc)}), 404
    except CertSendError as exc:
        current_app.logger.info(
            f"[CERT-GEN-FAIL] recipient={recipient_id} notice={exc}"
        )
        return _failure(exc, recipient_id)
    return jsonify(
        {
            "ok": True,
            "status": recipient.status,
            "downloadLink": recipient.download_link,
            "message": f"Certificate generated for {recipient.full_name}.",
        }
    )


@bp.post("/recipients/<int:recipient_id>/send")
@login_required
def send(recipient_id: int, current_user):
    check_csrf()
    channel = _channel()
    controller = LifecycleController.from_app()
    try:
        result = controller.send(recipient_id, channel=channel)
    except RecipientNotFound as exc:
        return jsonify({"ok": False, "message": str(exc)}), 404
    except CertSendError as exc:
        current_app.logger.info(f"[SEND-FAIL] recipient={recipient_id} notice={exc}")
        return _failure(exc, recipient_id)
    recipient = controller.store.get(recipient_id)
    return jsonify(
        {
            "ok": True,
            "status": result.status,
            "channel": result.channel,
            "dispatch_url": result.url,
            "message": f"Certificate sent to {recipient.full_name}.",
        }
    )


@bp.post("/recipients/generate-all")
@login_required
def generate_all(current_user):
    check_csrf()
    result = LifecycleController.from_app().generate_all()
    return jsonify(
        {
            "ok": result.failed == 0,
            "succeeded": result.succeeded,
            "failed": result.failed,
            "messages": result.messages,
            "message": f"Generated {result.succeeded} of {result.attempted} certificate(s).",
        }
    )


@bp.post("/recipients/send-all")
@login_required
def send_all(current_user):
    check_csrf()
    channel = _channel()
    result = LifecycleController.from_app().send_all(channel=channel)
    return jsonify(
        {
            "ok": result.failed == 0,
            "succeeded": result.succeeded,
            "failed": result.failed,
            "messages": result.messages,
            "dispatch_urls": result.dispatch_urls,
            "message": f"Prepared {result.succeeded} of {result.attempted} message(s).",
        }
    )
