"""
cpf_auth/events.py — NATS event publisher.

Publishes identity domain events:
    • ``identity.user.registered``          — a CPF user was registered
    • ``identity.user.login``               — a user (either class) logged in
    • ``identity.provisioning.incomplete``  — an identity was created but its
                                              credential was never finalized

Payloads carry masked identifiers only.

Graceful degradation: if NATS is unavailable or disabled the event is
skipped with a log line; the request itself never fails because of it.
A connection attempt is bounded by ``connect_timeout`` and, after a failure,
is not retried for ``retry_interval`` seconds, so an unreachable server
costs at most one short wait per interval instead of one per request.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Any

import nats
from nats.aio.client import Client as NATSClient

from cpf_auth.masking import mask_email, mask_national_id

logger = logging.getLogger(__name__)

SUBJECT_USER_REGISTERED = "identity.user.registered"
SUBJECT_USER_LOGIN = "identity.user.login"
SUBJECT_PROVISIONING_INCOMPLETE = "identity.provisioning.incomplete"

# Reconnects after an established connection drops (nats-py handles these).
MAX_RECONNECT_ATTEMPTS = 5


class EventPublisher:
    """Lazily connected NATS publisher, one per process."""

    def __init__(
        self,
        nats_url: str,
        enabled: bool = True,
        connect_timeout: float = 2.0,
        retry_interval: float = 30.0,
    ) -> None:
        self._nats_url = nats_url
        self._enabled = enabled
        self._connect_timeout = connect_timeout
        self._retry_interval = retry_interval
        self._nc: NATSClient | None = None
        self._last_failure: float | None = None

    @property
    def is_connected(self) -> bool:
        return self._nc is not None and self._nc.is_connected

    def _in_backoff(self) -> bool:
        if self._last_failure is None:
            return False
        return time.monotonic() - self._last_failure < self._retry_interval

    async def connect(self) -> NATSClient | None:
        """
        Connects to NATS unless already connected, disabled or backing off.

        The whole attempt (including nats-py's own retries) is cut off after
        ``connect_timeout`` seconds.
        """
        if not self._enabled:
            return None
        if self.is_connected:
            return self._nc
        if self._in_backoff():
            return None
        try:
            self._nc = await asyncio.wait_for(
                nats.connect(
                    self._nats_url,
                    connect_timeout=self._connect_timeout,
                    max_reconnect_attempts=MAX_RECONNECT_ATTEMPTS,
                ),
                timeout=self._connect_timeout,
            )
            self._last_failure = None
            logger.info("NATS publisher connected: %s", self._nats_url)
            return self._nc
        except Exception as exc:
            self._last_failure = time.monotonic()
            logger.warning(
                "NATS connect failed, events skipped for %.0fs: %s",
                self._retry_interval, str(exc) or type(exc).__name__,
            )
            self._nc = None
            return None

    async def disconnect(self) -> None:
        if self.is_connected:
            await self._nc.drain()
            logger.info("NATS publisher disconnected")
        self._nc = None

    async def publish(self, subject: str, data: dict[str, Any]) -> None:
        """
        Publishes a JSON event.

        Args:
            subject: Message subject (e.g. ``identity.user.registered``).
            data: Payload, serialized to JSON.
        """
        nc = await self.connect()
        if nc is None:
            logger.debug("NATS unavailable — skipping event %s", subject)
            return
        try:
            payload = json.dumps(data, default=str).encode("utf-8")
            await nc.publish(subject, payload)
            logger.info("NATS event published: %s", subject)
        except Exception as exc:
            logger.warning("NATS publish failed for %s: %s", subject, exc)

    # ── Identity domain events ───────────────────────────────────────────

    async def emit_user_registered(self, national_id: str, email: str) -> None:
        await self.publish(SUBJECT_USER_REGISTERED, {
            "event": "user.registered",
            "user": mask_national_id(national_id),
            "email": mask_email(email),
        })

    async def emit_user_login(self, user_id: str, user_type: str) -> None:
        await self.publish(SUBJECT_USER_LOGIN, {
            "event": "user.login",
            "user": mask_national_id(user_id) if user_type == "authenticated" else user_id,
            "type": user_type,
        })

    async def emit_provisioning_incomplete(self, key: str, user_type: str, reason: str) -> None:
        await self.publish(SUBJECT_PROVISIONING_INCOMPLETE, {
            "event": "provisioning.incomplete",
            "user": mask_national_id(key) if user_type == "authenticated" else key,
            "type": user_type,
            "reason": reason,
        })
