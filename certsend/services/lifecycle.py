"""Per-recipient certificate lifecycle.

::

    Pending --generate--> Generated --send--> Sent
       ^                      |                 |
       +------- Failed <------+<----------------+

``Generating`` and ``Sending`` are published to observers while a call is in
flight but never stored. Failed recipients re-enter ``generate`` or ``send``
as if fresh; there is no attempt counter and nothing retries on its own.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, NamedTuple

from flask import current_app

from ..models import Recipient
from ..shared.certificates import CertificateTemplate
from ..shared.dispatch import CHANNELS, WHATSAPP, build_dispatch_url
from ..shared.errors import (
    CertSendError,
    GenerationError,
    MissingLinkError,
    NotEligibleError,
    PersistenceError,
    VerificationError,
)
from ..shared.statuses import (
    FAILED,
    GENERATE_ELIGIBLE,
    GENERATED,
    GENERATING,
    SENDING,
    SENT,
)
from .producers import CertificateProducer, build_producer
from .store import RecipientStore
from .verification import LinkVerifier, build_verifier

logger = logging.getLogger("certsend.lifecycle")

Opener = Callable[[str], object]


class DispatchResult(NamedTuple):
    recipient_id: int
    channel: str
    url: str
    status: str


class BatchResult(NamedTuple):
    succeeded: int
    failed: int
    messages: list[str]
    dispatch_urls: list[str]

    @property
    def attempted(self) -> int:
        return self.succeeded + self.failed


class LifecycleController:
    def __init__(
        self,
        store: RecipientStore,
        producer: CertificateProducer,
        template: CertificateTemplate,
        verifier: LinkVerifier | None = None,
        dispatch_delay: float = 0.0,
        sleep: Callable[[float], None] = time.sleep,
        messages: dict | None = None,
    ) -> None:
        self.store = store
        self.producer = producer
        self.template = template
        self.verifier = verifier
        self.dispatch_delay = dispatch_delay
        self.sleep = sleep
        self.messages = messages or {}

    @classmethod
    def from_app(cls, **overrides) -> "LifecycleController":
        config = current_app.config
        kwargs = dict(
            store=RecipientStore(),
            producer=build_producer(config),
            template=CertificateTemplate.from_config(config),
            verifier=build_verifier(config),
            dispatch_delay=config.get("DISPATCH_DELAY_SECONDS", 0.0),
            messages={
                key: config.get(key)
                for key in ("WHATSAPP_MESSAGE", "EMAIL_SUBJECT", "EMAIL_BODY")
            },
        )
        kwargs.update(overrides)
        return cls(**kwargs)

    # -- helpers -----------------------------------------------------------
    def _begin(self, recipient_id: int, status: str) -> None:
        self.store.board.set(recipient_id, status)
        self.store.publish()

    def _fail(self, recipient_id: int, clear_link: bool) -> None:
        fields = {"status": FAILED}
        if clear_link:
            fields["download_link"] = None
        try:
            self.store.update(recipient_id, **fields)
        except PersistenceError:
            logger.exception("[LIFECYCLE] could not record failure recipient=%s", recipient_id)
        finally:
            self.store.board.clear([recipient_id])

    # -- transitions -------------------------------------------------------
    def generate(self, recipient_id: int) -> Recipient:
        recipient = self.store.get(recipient_id)
        if recipient.status not in GENERATE_ELIGIBLE:
            logger.info(
                "[CERT-GEN-FAIL] recipient=%s reason=ineligible status=%s",
                recipient_id,
                recipient.status,
            )
            raise NotEligibleError(
                f"{recipient.full_name} already has a certificate ({recipient.status})."
            )
        self._begin(recipient_id, GENERATING)
        try:
            link = self.producer.produce(recipient, self.template)
            if not link:
                raise GenerationError("Certificate producer returned no link.")
        except GenerationError as exc:
            logger.warning(
                "[CERT-GEN-FAIL] recipient=%s producer=%s kind=%s error=%s",
                recipient_id,
                self.producer.name,
                exc.__class__.__name__,
                exc,
            )
            self._fail(recipient_id, clear_link=True)
            raise
        except Exception as exc:
            logger.exception(
                "[CERT-GEN-FAIL] recipient=%s producer=%s unexpected error",
                recipient_id,
                self.producer.name,
            )
            self._fail(recipient_id, clear_link=True)
            raise GenerationError() from exc
        try:
            recipient = self.store.update(
                recipient_id, status=GENERATED, download_link=link
            )
        except PersistenceError:
            self._fail(recipient_id, clear_link=True)
            raise
        logger.info(
            "[CERT-GEN] recipient=%s producer=%s link=%s",
            recipient_id,
            self.producer.name,
            link,
        )
        return recipient

    def send(
        self,
        recipient_id: int,
        channel: str = WHATSAPP,
        opener: Opener | None = None,
    ) -> DispatchResult:
        if channel not in CHANNELS:
            raise ValueError(f"Unknown dispatch channel: {channel!r}")
        recipient = self.store.get(recipient_id)
        link = recipient.download_link
        if not link:
            logger.info("[SEND-FAIL] recipient=%s reason=missing-link", recipient_id)
            raise MissingLinkError()

        self._begin(recipient_id, SENDING)
        if self.verifier is not None:
            try:
                report = self.verifier.verify([link])
            except Exception as exc:
                logger.exception("[SEND-FAIL] recipient=%s reason=verify-error", recipient_id)
                self._fail(recipient_id, clear_link=False)
                raise VerificationError() from exc
            if report.invalid:
                logger.info(
                    "[SEND-FAIL] recipient=%s reason=invalid-link link=%s",
                    recipient_id,
                    link,
                )
                self._fail(recipient_id, clear_link=False)
                raise VerificationError(
                    f"The link for {recipient.full_name} is invalid."
                )

        url = build_dispatch_url(channel, recipient, link, self.messages)
        try:
            if opener is not None:
                opener(url)
            self.sleep(self.dispatch_delay)
        except Exception as exc:
            logger.exception("[SEND-FAIL] recipient=%s reason=open-error", recipient_id)
            self._fail(recipient_id, clear_link=False)
            raise CertSendError("Could not open the messaging client.") from exc
        try:
            self.store.update(recipient_id, status=SENT)
        except PersistenceError:
            self.store.board.clear([recipient_id])
            raise
        logger.info(
            "[SEND] recipient=%s channel=%s url=%s", recipient_id, channel, url
        )
        return DispatchResult(recipient_id, channel, url, SENT)

    # -- batches -----------------------------------------------------------
    def generate_all(self) -> BatchResult:
        ok = failed = 0
        messages: list[str] = []
        for recipient in self.store.list():
            if recipient.status not in GENERATE_ELIGIBLE:
                continue
            rid, name = recipient.id, recipient.full_name
            try:
                self.generate(rid)
                ok += 1
            except CertSendError as exc:
                failed += 1
                messages.append(f"{name}: {exc}")
        logger.info("[CERT-GEN] batch succeeded=%d failed=%d", ok, failed)
        return BatchResult(ok, failed, messages, [])

    def send_all(self, channel: str = WHATSAPP, opener: Opener | None = None) -> BatchResult:
        ok = failed = 0
        messages: list[str] = []
        urls: list[str] = []
        for recipient in self.store.list():
            if recipient.status != GENERATED:
                continue
            rid, name = recipient.id, recipient.full_name
            try:
                result = self.send(rid, channel=channel, opener=opener)
                urls.append(result.url)
                ok += 1
            except CertSendError as exc:
                failed += 1
                messages.append(f"{name}: {exc}")
        logger.info("[SEND] batch channel=%s succeeded=%d failed=%d", channel, ok, failed)
        return BatchResult(ok, failed, messages, urls)
