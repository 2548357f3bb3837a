"""Certificate producers.

Every producer turns a recipient plus the configured template into a link
that resolves to that recipient's personalised certificate. Which one runs is
chosen by ``CERT_PRODUCER``.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
from typing import Protocol

import requests
from flask import current_app

from ..models import Recipient
from ..shared.certificates import CertificateTemplate, render_png
from ..shared.errors import GenerationError, QuotaExceeded
from ..shared.storage import public_url, store_certificate_image

logger = logging.getLogger("certsend.producer")

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w/+.-]+)?(?:;[\w=.-]+)*;base64,(?P<data>.*)$", re.S)

IMAGE_PROMPT = (
    'Write the name "{name}" on this certificate in the center, in an elegant, '
    "bold, calligraphic font. Do not change anything else on the certificate."
)


class CertificateProducer(Protocol):
    name: str

    def produce(self, recipient: Recipient, template: CertificateTemplate) -> str:
        ...


class ViewerLinkProducer:
    """Link to the hosted viewer page, which composes the certificate on demand."""

    name = "viewer"

    def produce(self, recipient: Recipient, template: CertificateTemplate) -> str:
        return public_url(f"/certificate/{recipient.id}")


class CanvasProducer:
    name = "canvas"

    def produce(self, recipient: Recipient, template: CertificateTemplate) -> str:
        data = render_png(template, recipient.full_name)
        link = store_certificate_image(recipient.id, recipient.full_name, data)
        logger.info(
            "[CERT-GEN] canvas recipient=%s bytes=%d", recipient.id, len(data)
        )
        return link


def _is_quota_message(text: str | None) -> bool:
    return "quota" in (text or "").lower()


class ImageApiProducer:
    """Ask a remote image model to write the name onto the template."""

    name = "ai"

    def __init__(
        self,
        endpoint: str,
        api_key: str = "",
        timeout: float = 60,
        http: requests.Session | None = None,
    ) -> None:
        self.endpoint = endpoint
        self.api_key = api_key
        self.timeout = timeout
        self.http = http or requests.Session()

    def _request(self, recipient: Recipient, template: CertificateTemplate) -> dict:
        if not self.endpoint:
            raise GenerationError("Image generation endpoint is not configured.")
        if not template.url:
            raise GenerationError("Certificate template URL is not configured.")
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        payload = {
            "name": recipient.full_name,
            "templateUrl": template.url,
            "prompt": IMAGE_PROMPT.format(name=recipient.full_name),
        }
        try:
            resp = self.http.post(
                self.endpoint, json=payload, headers=headers, timeout=self.timeout
            )
        except requests.RequestException as exc:
            if _is_quota_message(str(exc)):
                raise QuotaExceeded() from exc
            raise GenerationError(f"Image generation failed: {exc}") from exc
        if resp.status_code == 429 or (
            resp.status_code >= 400 and _is_quota_message(resp.text)
        ):
            raise QuotaExceeded()
        if resp.status_code >= 400:
            raise GenerationError(
                f"Image generation failed with HTTP {resp.status_code}."
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise GenerationError("Image generation returned an invalid response.") from exc

    def produce(self, recipient: Recipient, template: CertificateTemplate) -> str:
        body = self._request(recipient, template)
        url = (body or {}).get("certificateUrl") or ""
        if not url:
            detail = (body or {}).get("text") or (body or {}).get("error") or ""
            if _is_quota_message(detail):
                raise QuotaExceeded()
            message = "Image generation failed."
            if detail:
                message += f" Model response: {detail}"
            raise GenerationError(message)
        match = _DATA_URI_RE.match(url)
        if not match:
            return url
        try:
            data = base64.b64decode(match.group("data"), validate=True)
        except (binascii.Error, ValueError) as exc:
            raise GenerationError("Image generation returned undecodable image data.") from exc
        logger.info("[CERT-GEN] ai recipient=%s bytes=%d", recipient.id, len(data))
        return store_certificate_image(recipient.id, recipient.full_name, data)


def build_producer(config=None) -> CertificateProducer:
    config = config if config is not None else current_app.config
    kind = (config.get("CERT_PRODUCER") or "viewer").lower()
    if kind == "viewer":
        return ViewerLinkProducer()
    if kind == "canvas":
        return CanvasProducer()
    if kind == "ai":
        return ImageApiProducer(
            config.get("IMAGE_API_URL", ""),
            config.get("IMAGE_API_KEY", ""),
            config.get("IMAGE_API_TIMEOUT", 60),
        )
    raise ValueError(f"Unknown CERT_PRODUCER: {kind!r}")
