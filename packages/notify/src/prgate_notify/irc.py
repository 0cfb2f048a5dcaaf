"""IrcAlertSink: relay run alerts to a chat room through an HTTP IRC API."""

from __future__ import annotations

import logging
import time

import requests

from prgate_notify.base import BaseSink
from prgate_notify.models import AlertBatch

logger = logging.getLogger(__name__)


class IrcAlertSink(BaseSink):
    """POSTs each alert as ``{"message", "botname", "channel"}`` with a bearer token.

    Messages are sent one at a time with a short pause in between so the relay
    does not throttle the bot. A failed message is logged and the rest are
    still attempted.
    """

    TIMEOUT = 20
    PAUSE_SECONDS = 0.5

    def __init__(self, api_url: str, token: str, botname: str, channel: str, session: requests.Session | None = None):
        self.api_url = api_url
        self.botname = botname
        self.channel = channel
        self._session = session or requests.Session()
        self._session.headers.update({"Authorization": f"Bearer {token}"})

    def send(self, batch: AlertBatch) -> int:
        messages = batch.formatted()
        if not messages:
            return 0
        logger.info("Sending %d message(s) to IRC API", len(messages))

        sent = 0
        for idx, message in enumerate(messages):
            if idx:
                time.sleep(self.PAUSE_SECONDS)
            payload = {"message": message, "botname": self.botname, "channel": self.channel}
            try:
                resp = self._session.post(self.api_url, json=payload, timeout=self.TIMEOUT)
                resp.raise_for_status()
            except requests.RequestException as e:
                logger.warning("IRC API post failed (%s): %s", type(e).__name__, e)
                continue
            sent += 1
        return sent

    def close(self) -> None:
        self._session.close()
