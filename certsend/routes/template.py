from __future__ import annotations

import os
from io import BytesIO

from flask import (
    Blueprint,
    abort,
    current_app,
    flash,
    redirect,
    request,
    send_file,
    url_for,
)
from PIL import Image, UnidentifiedImageError

from ..shared.certificates import ALLOWED_TEMPLATE_EXTENSIONS, current_template
from ..shared.rbac import check_csrf, login_required
from ..shared.storage import write_atomic


bp = Blueprint("template", __name__, url_prefix="/template")


@bp.get("")
def image():
    template = current_template()
    if not template.exists():
        abort(404)
    return send_file(template.path)


@bp.post("")
@login_required
def upload(current_user):
    check_csrf()
    file = request.files.get("file")
    filename = (file.filename if file else "") or ""
    if not filename.lower().endswith(ALLOWED_TEMPLATE_EXTENSIONS):
        flash("Template must be a PNG or JPEG image.", "error")
        return redirect(url_for("recipients.index"))
    data = file.read()
    try:
        with Image.open(BytesIO(data)) as img:
            img.verify()
    except (UnidentifiedImageError, OSError):
        flash("The uploaded template is not a readable image.", "error")
        return redirect(url_for("recipients.index"))
    # stored as PNG at the configured path
    with Image.open(BytesIO(data)) as img:
        buffer = BytesIO()
        img.convert("RGB").save(buffer, format="PNG")
    target = current_template().path
    write_atomic(target, buffer.getvalue())
    current_app.logger.info(
        f"[TEMPLATE] uploaded file={filename} path={target} bytes={os.path.getsize(target)}"
    )
    flash("Certificate template updated.", "success")
    return redirect(url_for("recipients.index"))
