"""Tests for notifier backends."""

import logging
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import AsyncMock

from regsync.notifications import (
    LoggingNotifier,
    RecordingNotifier,
    TelegramNotifier,
    build_notifier,
)
from regsync.sources.models import Severity
from telegram.error import NetworkError


class TestLoggingNotifier:
    def test_high_severity_logs_warning(self, caplog):
        with caplog.at_level(logging.INFO, logger="regsync.notifications"):
            LoggingNotifier().notify(["ops"], "Source down", "details", Severity.HIGH)

        (record,) = caplog.records
        assert record.levelno == logging.WARNING
        assert "[HIGH] Source down: details" in record.getMessage()

    def test_medium_severity_logs_info(self, caplog):
        with caplog.at_level(logging.INFO, logger="regsync.notifications"):
            LoggingNotifier().notify([], "Digest ready", "details", "medium")

        assert caplog.records[0].levelno == logging.INFO


class TestRecordingNotifier:
    def test_records_notifications(self):
        notifier = RecordingNotifier()
        notifier.notify(("a", "b"), "Title", "Body", "urgent")

        (sent,) = notifier.sent
        assert sent.recipients == ["a", "b"]
        assert sent.severity == Severity.URGENT


class TestTelegramNotifier:
    def test_sends_to_each_chat(self):
        bot = AsyncMock()
        notifier = TelegramNotifier(bot)

        notifier.notify(["111", "222"], "Source down", "details", Severity.HIGH)

        assert bot.send_message.await_count == 2
        kwargs = bot.send_message.call_args.kwargs
        assert kwargs["chat_id"] == "222"
        assert kwargs["text"].startswith("⚠️ Source down")
        assert "details" in kwargs["text"]

    def test_default_chat_ids(self):
        bot = AsyncMock()
        TelegramNotifier(bot, default_chat_ids=["999"]).notify([], "t", "m", Severity.LOW)
        assert bot.send_message.call_args.kwargs["chat_id"] == "999"

    def test_message_is_truncated(self):
        bot = AsyncMock()
        TelegramNotifier(bot).notify(["1"], "t", "x" * 2000, Severity.LOW)
        assert bot.send_message.call_args.kwargs["text"].count("x") == 500

    def test_delivery_failure_is_logged(self, caplog):
        bot = AsyncMock()
        bot.send_message.side_effect = [NetworkError("offline"), None]

        TelegramNotifier(bot).notify(["1", "2"], "Title", "m", Severity.URGENT)

        assert "Failed to send 'Title' notification to 1" in caplog.text
        assert bot.send_message.await_count == 2

    def test_notify_from_worker_threads(self):
        bot = AsyncMock()
        notifier = TelegramNotifier(bot)

        with ThreadPoolExecutor(max_workers=3) as executor:
            for i in range(6):
                executor.submit(notifier.notify, [str(i)], "t", "m", Severity.LOW).result()

        assert bot.send_message.await_count == 6
        notifier.close()


class TestBuildNotifier:
    def test_default_is_logging(self, fresh_config):
        assert isinstance(build_notifier(fresh_config), LoggingNotifier)

    def test_telegram_with_token(self, fresh_config, monkeypatch):
        monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "abc")
        fresh_config._merge_config(
            {"notifications": {"backend": "telegram", "recipients": ["42"]}}
        )

        notifier = build_notifier(fresh_config)

        assert isinstance(notifier, TelegramNotifier)
        assert notifier.default_chat_ids == ["42"]
        assert notifier.bot.token == "abc"

    def test_telegram_without_token_falls_back(self, fresh_config, monkeypatch):
        monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)
        fresh_config._merge_config({"notifications": {"backend": "telegram"}})
        assert isinstance(build_notifier(fresh_config), LoggingNotifier)
