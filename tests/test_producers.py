import base64
from io import BytesIO

import pytest
import requests
from PIL import Image

from certsend.app import create_app, db
from certsend.models import Recipient
from certsend.services.producers import (
    CanvasProducer,
    ImageApiProducer,
    ViewerLinkProducer,
    build_producer,
)
from certsend.shared.certificates import CertificateTemplate, current_template, render_pdf
from certsend.shared.errors import GenerationError, QuotaExceeded

from conftest import BASE_URL


class FakeResponse:
    def __init__(self, status_code=200, payload=None, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if self._payload is None:
            raise ValueError("no json")
        return self._payload


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.posts = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.posts.append({"url": url, "json": json, "headers": headers})
        if self.error:
            raise self.error
        return self.response


def _recipient(name="Amina Al-Sabah"):
    recipient = Recipient(full_name=name, whatsapp_number="96500000000")
    db.session.add(recipient)
    db.session.commit()
    return recipient


def _png_bytes(color=(10, 20, 30)):
    buffer = BytesIO()
    Image.new("RGB", (40, 20), color).save(buffer, format="PNG")
    return buffer.getvalue()


def test_viewer_link(app):
    recipient = _recipient()
    link = ViewerLinkProducer().produce(recipient, current_template())
    assert link == f"{BASE_URL}/certificate/{recipient.id}"


def test_canvas_draws_name_and_stores_png(app, tmp_path):
    recipient = _recipient()
    link = CanvasProducer().produce(recipient, current_template())
    filename = f"{recipient.id}-amina-alsabah.png"
    assert link == f"{BASE_URL}/certificates/files/{filename}"
    path = tmp_path / "certificates" / filename
    with Image.open(path) as img:
        assert img.size == (800, 566)
        band = img.crop((0, int(566 * 0.4), 800, int(566 * 0.6))).convert("L")
        assert band.getextrema()[0] < 255


def test_canvas_missing_template(app, tmp_path):
    recipient = _recipient()
    template = CertificateTemplate(str(tmp_path / "missing.png"))
    with pytest.raises(GenerationError, match="template not found"):
        CanvasProducer().produce(recipient, template)


def test_canvas_unreadable_template(app, tmp_path):
    recipient = _recipient()
    bad = tmp_path / "bad.png"
    bad.write_bytes(b"not an image")
    with pytest.raises(GenerationError, match="could not be loaded"):
        CanvasProducer().produce(recipient, CertificateTemplate(str(bad)))


def test_render_pdf(app):
    pdf = render_pdf(current_template(), "Amina Al-Sabah")
    assert pdf.startswith(b"%PDF")


def _api(response=None, error=None):
    session = FakeSession(response=response, error=error)
    producer = ImageApiProducer("https://images.test/generate", "secret", http=session)
    return producer, session


def _template():
    return CertificateTemplate("", "https://files.test/template.png")


def test_image_api_returns_remote_url(app):
    recipient = _recipient()
    producer, session = _api(
        FakeResponse(payload={"certificateUrl": "https://images.test/out/1.png"})
    )
    assert producer.produce(recipient, _template()) == "https://images.test/out/1.png"
    sent = session.posts[0]
    assert sent["json"]["name"] == "Amina Al-Sabah"
    assert sent["json"]["templateUrl"] == "https://files.test/template.png"
    assert '"Amina Al-Sabah"' in sent["json"]["prompt"]
    assert sent["headers"]["Authorization"] == "Bearer secret"


def test_image_api_stores_data_uri(app, tmp_path):
    recipient = _recipient()
    data_uri = "data:image/png;base64," + base64.b64encode(_png_bytes()).decode()
    producer, _ = _api(FakeResponse(payload={"certificateUrl": data_uri}))
    link = producer.produce(recipient, _template())
    assert link.startswith(f"{BASE_URL}/certificates/files/")
    stored = tmp_path / "certificates" / link.rsplit("/", 1)[1]
    assert stored.read_bytes() == _png_bytes()


def test_image_api_429_is_quota(app):
    producer, _ = _api(FakeResponse(status_code=429, text="Too Many Requests"))
    with pytest.raises(QuotaExceeded):
        producer.produce(_recipient(), _template())


def test_image_api_quota_text_is_quota(app):
    producer, _ = _api(
        FakeResponse(status_code=500, text="RESOURCE_EXHAUSTED: Quota exceeded for model")
    )
    with pytest.raises(QuotaExceeded):
        producer.produce(_recipient(), _template())


def test_image_api_server_error(app):
    producer, _ = _api(FakeResponse(status_code=502, text="bad gateway"))
    with pytest.raises(GenerationError) as exc:
        producer.produce(_recipient(), _template())
    assert not isinstance(exc.value, QuotaExceeded)
    assert "HTTP 502" in str(exc.value)


def test_image_api_transport_error(app):
    producer, _ = _api(error=requests.ConnectionError("connection refused"))
    with pytest.raises(GenerationError, match="connection refused"):
        producer.produce(_recipient(), _template())


def test_image_api_without_media(app):
    producer, _ = _api(FakeResponse(payload={"text": "I cannot edit this image"}))
    with pytest.raises(GenerationError, match="Model response: I cannot edit"):
        producer.produce(_recipient(), _template())


def test_image_api_requires_configuration(app):
    producer = ImageApiProducer("", http=FakeSession())
    with pytest.raises(GenerationError, match="not configured"):
        producer.produce(_recipient(), _template())


def test_build_producer_from_config(app):
    assert build_producer({"CERT_PRODUCER": "viewer"}).name == "viewer"
    assert build_producer({"CERT_PRODUCER": "Canvas"}).name == "canvas"
    api = build_producer({"CERT_PRODUCER": "ai", "IMAGE_API_URL": "https://x.test"})
    assert api.name == "ai" and api.endpoint == "https://x.test"
    with pytest.raises(ValueError):
        build_producer({"CERT_PRODUCER": "carrier-pigeon"})


def test_template_url_defaults_to_served_template(app):
    assert app.config["CERT_TEMPLATE_URL"] == f"{BASE_URL}/template"
    assert current_template().url == f"{BASE_URL}/template"


def test_template_url_from_environment(app, monkeypatch):
    monkeypatch.setenv("CERT_TEMPLATE_URL", "https://cdn.test/cert.png")
    other = create_app({"TESTING": True})
    assert other.config["CERT_TEMPLATE_URL"] == "https://cdn.test/cert.png"


def test_image_api_uses_default_template_url(app):
    recipient = _recipient()
    producer, session = _api(
        FakeResponse(payload={"certificateUrl": "https://images.test/out/2.png"})
    )
    producer.produce(recipient, current_template())
    assert session.posts[0]["json"]["templateUrl"] == f"{BASE_URL}/template"
