import io

import pytest
from PIL import Image

from conftest import CSRF_TOKEN


def _image_bytes(fmt, size=(1200, 848), color=(240, 230, 200)):
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format=fmt)
    return buffer.getvalue()


def _upload(client, data, filename):
    return client.post(
        "/template",
        data={"csrf_token": CSRF_TOKEN, "file": (io.BytesIO(data), filename)},
        content_type="multipart/form-data",
        follow_redirects=True,
    )


@pytest.mark.smoke
def test_upload_template_replaces_file(app, auth_client):
    resp = _upload(auth_client, _image_bytes("PNG"), "New Template.PNG")
    assert b"Certificate template updated." in resp.data
    with Image.open(app.config["CERT_TEMPLATE_PATH"]) as img:
        assert img.size == (1200, 848)


def test_jpeg_upload_is_stored_as_png(app, auth_client):
    _upload(auth_client, _image_bytes("JPEG"), "scan.jpg")
    with Image.open(app.config["CERT_TEMPLATE_PATH"]) as img:
        assert img.format == "PNG"


def test_rejects_other_extensions(app, auth_client):
    resp = _upload(auth_client, b"%PDF-1.4", "template.pdf")
    assert b"Template must be a PNG or JPEG image." in resp.data
    with Image.open(app.config["CERT_TEMPLATE_PATH"]) as img:
        assert img.size == (800, 566)


def test_rejects_unreadable_image(auth_client):
    resp = _upload(auth_client, b"definitely not a png", "template.png")
    assert b"The uploaded template is not a readable image." in resp.data


def test_upload_requires_login(client):
    resp = client.post(
        "/template",
        data={"file": (io.BytesIO(_image_bytes("PNG")), "t.png")},
        content_type="multipart/form-data",
    )
    assert resp.status_code == 302
    assert "/login" in resp.headers["Location"]


def test_template_image_is_served(client):
    resp = client.get("/template")
    assert resp.status_code == 200
    assert resp.mimetype == "image/png"


def test_missing_template_is_404(app, client, tmp_path):
    (tmp_path / "templates" / "certificate.png").unlink()
    assert client.get("/template").status_code == 404
