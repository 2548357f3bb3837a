import os
import re
import tempfile

from flask import current_app


def ensure_dir(path: str) -> None:
    """Create directory if missing (mkdir -p equivalent)."""
    os.makedirs(path, exist_ok=True)


def write_atomic(path: str, data, mode: str = "wb") -> None:
    """Write data to a temporary file then atomically rename to target path."""
    dir_path = os.path.dirname(path)
    ensure_dir(dir_path)
    fd, tmp_path = tempfile.mkstemp(dir=dir_path)
    try:
        with os.fdopen(fd, mode) as f:
            f.write(data)
        os.replace(tmp_path, path)
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)


def slug_name(name: str) -> str:
    slug = re.sub(r"[^A-Za-z0-9 ]+", "", name or "")
    slug = re.sub(r"\s+", "-", slug.strip()).lower()
    return slug or "name"


def certificates_dir() -> str:
    return os.path.join(current_app.config["SITE_ROOT"], "certificates")


def certificate_filename(recipient_id: int, name: str, ext: str = "png") -> str:
    return f"{recipient_id}-{slug_name(name)}.{ext}"


def public_url(path: str) -> str:
    """Absolute URL for an app-relative path, based on PUBLIC_BASE_URL."""
    base = current_app.config["PUBLIC_BASE_URL"].rstrip("/")
    return f"{base}/{path.lstrip('/')}"


def store_certificate_image(recipient_id: int, name: str, data: bytes) -> str:
    """Persist a rendered certificate and return its public URL."""
    filename = certificate_filename(recipient_id, name)
    write_atomic(os.path.join(certificates_dir(), filename), data)
    return public_url(f"/certificates/files/{filename}")
