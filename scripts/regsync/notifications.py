"""
Operator notifications.

Notifiers are fire-and-forget: delivery failures are logged but don't propagate.
"""

import asyncio
import logging
import os
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from telegram import Bot

from regsync.sources.models import Severity

logger = logging.getLogger(__name__)

SEVERITY_ICONS = {
    Severity.LOW: "ℹ️",
    Severity.MEDIUM: "📋",
    Severity.HIGH: "⚠️",
    Severity.URGENT: "🔴",
}


class Notifier(ABC):
    """Delivers operator alerts."""

    @abstractmethod
    def notify(
        self,
        recipients: Sequence[str],
        title: str,
        message: str,
        severity: Union[Severity, str] = Severity.MEDIUM,
    ) -> None:
        ...


class LoggingNotifier(Notifier):
    """Writes alerts to the log. Used when no delivery backend is configured."""

    def notify(self, recipients, title, message, severity=Severity.MEDIUM) -> None:
        severity = Severity(severity)
        level = logging.WARNING if severity in (Severity.HIGH, Severity.URGENT) else logging.INFO
        logger.log(
            level,
            "[%s] %s: %s (recipients=%s)",
            severity.value.upper(),
            title,
            message,
            ", ".join(recipients) or "-",
        )


@dataclass
class Notification:
    recipients: List[str]
    title: str
    message: str
    severity: Severity


class RecordingNotifier(Notifier):
    """Keeps notifications in memory. Used by tests and dry runs."""

    def __init__(self) -> None:
        self.sent: List[Notification] = []
        self._lock = threading.Lock()

    def notify(self, recipients, title, message, severity=Severity.MEDIUM) -> None:
        with self._lock:
            self.sent.append(Notification(list(recipients), title, message, Severity(severity)))


class TelegramNotifier(Notifier):
    """Push alerts to Telegram chats through a python-telegram-bot ``Bot``.

    Recipients are chat ids. When a call passes no recipients, the
    configured default chat ids are used. ``notify`` is called from worker
    threads, so sends run on a private event loop owned by this notifier.
    """

    def __init__(self, bot: Bot, default_chat_ids: Optional[Sequence[str]] = None) -> None:
        self.bot = bot
        self.default_chat_ids = list(default_chat_ids or [])
        self._loop = asyncio.new_event_loop()
        self._lock = threading.Lock()

    def notify(self, recipients, title, message, severity=Severity.MEDIUM) -> None:
        severity = Severity(severity)
        text = f"{SEVERITY_ICONS[severity]} {title}\n\n{message[:500]}"
        chat_ids = list(recipients) or self.default_chat_ids

        with self._lock:
            self._loop.run_until_complete(self._send_all(chat_ids, title, text))

    async def _send_all(self, chat_ids: List[str], title: str, text: str) -> None:
        for chat_id in chat_ids:
            try:
                await self.bot.send_message(chat_id=chat_id, text=text)
            except Exception:
                logger.exception("Failed to send '%s' notification to %s", title, chat_id)

    def close(self) -> None:
        """Release the private event loop."""
        with self._lock:
            if not self._loop.is_closed():
                self._loop.close()


def build_notifier(cfg) -> Notifier:
    """Create the notifier selected by ``notifications.backend``."""
    backend = cfg.get("notifications.backend", "log")

    if backend == "telegram":
        token = os.environ.get("TELEGRAM_BOT_TOKEN")
        if token:
            return TelegramNotifier(Bot(token=token), default_chat_ids=cfg.recipients)
        logger.info("TELEGRAM_BOT_TOKEN not set, falling back to log notifications")
    elif backend != "log":
        logger.warning("Unknown notification backend '%s', using log", backend)

    return LoggingNotifier()
