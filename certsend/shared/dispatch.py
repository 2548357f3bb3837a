"""Deep links that hand a certificate to the operator's messaging client.

Opening one of these URLs only pre-fills a message; nothing here confirms
delivery. Phone numbers and addresses are inserted verbatim.
"""

from __future__ import annotations

import re
from urllib.parse import quote

WHATSAPP = "whatsapp"
EMAIL = "email"
CHANNELS = (WHATSAPP, EMAIL)

DEFAULT_WHATSAPP_MESSAGE = "Hello {name}, congratulations! Here is your certificate: {link}"
DEFAULT_EMAIL_SUBJECT = "Your certificate"
DEFAULT_EMAIL_BODY = (
    "Hello {name},\n\nCongratulations! You can download your certificate here:\n{link}\n"
)

_PLACEHOLDER_RE = re.compile(r"\{(name|link)\}")


def _render(template: str, name: str, link: str) -> str:
    values = {"name": name, "link": link}
    return _PLACEHOLDER_RE.sub(lambda m: values[m.group(1)], template)


def build_whatsapp_url(
    number: str, name: str, link: str, message: str = DEFAULT_WHATSAPP_MESSAGE
) -> str:
    text = quote(_render(message, name, link), safe="")
    return f"https://wa.me/{number}?text={text}"


def build_mailto_url(
    address: str,
    name: str,
    link: str,
    subject: str = DEFAULT_EMAIL_SUBJECT,
    body: str = DEFAULT_EMAIL_BODY,
) -> str:
    return (
        f"mailto:{address}"
        f"?subject={quote(_render(subject, name, link), safe='')}"
        f"&body={quote(_render(body, name, link), safe='')}"
    )


def build_dispatch_url(channel: str, recipient, link: str, config=None) -> str:
    """Build the deep link for ``channel`` using message templates from ``config``."""
    config = config or {}
    if channel == WHATSAPP:
        return build_whatsapp_url(
            recipient.whatsapp_number,
            recipient.full_name,
            link,
            config.get("WHATSAPP_MESSAGE") or DEFAULT_WHATSAPP_MESSAGE,
        )
    if channel == EMAIL:
        return build_mailto_url(
            recipient.email_address,
            recipient.full_name,
            link,
            config.get("EMAIL_SUBJECT") or DEFAULT_EMAIL_SUBJECT,
            config.get("EMAIL_BODY") or DEFAULT_EMAIL_BODY,
        )
    raise ValueError(f"Unknown dispatch channel: {channel!r}")
