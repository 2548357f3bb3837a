from __future__ import annotations

from flask import Blueprint, Response, current_app, render_template

from ..app import db
from ..models import Recipient
from ..shared.certificates import current_template, render_pdf
from ..shared.errors import GenerationError
from ..shared.storage import slug_name

bp = Blueprint("certificates", __name__, url_prefix="/certificate")


@bp.get("/<int:recipient_id>")
def view(recipient_id: int):
    recipient = db.session.get(Recipient, recipient_id)
    if not recipient:
        return render_template("certificate_missing.html"), 404
    return render_template(
        "certificate.html",
        recipient=recipient,
        template_available=current_template().exists(),
    )


@bp.get("/<int:recipient_id>/download.pdf")
def download_pdf(recipient_id: int):
    recipient = db.session.get(Recipient, recipient_id)
    if not recipient:
        return render_template("certificate_missing.html"), 404
    try:
        pdf_bytes = render_pdf(current_template(), recipient.full_name)
    except GenerationError as exc:
        current_app.logger.warning(
            f"[CERT-PDF] recipient={recipient_id} error={exc}"
        )
        return render_template("certificate_missing.html", message=str(exc)), 503
    resp = Response(pdf_bytes, mimetype="application/pdf")
    resp.headers["Content-Disposition"] = (
        f"attachment; filename=certificate-{slug_name(recipient.full_name)}.pdf"
    )
    return resp
