import requests

from config import NotificationConfig
from services.notification_service import InMemoryNotifier, TelegramNotifier, build_notifier


class FakeResponse:
    def __init__(self, status_code=200):
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")


def test_in_memory_schedule_cancel_deliver():
    notifier = InMemoryNotifier()

    notifier.schedule("a", "Title A", "Body A")
    notifier.schedule("b", "Title B", "Body B")
    notifier.cancel(["a", "unknown"])

    assert list(notifier.pending) == ["b"]
    assert notifier.deliver("b").title == "Title B"
    assert notifier.pending == {}
    assert [n.id for n in notifier.history] == ["a", "b"]


def test_in_memory_reschedule_replaces_pending():
    notifier = InMemoryNotifier()

    notifier.schedule("a", "First", "1")
    notifier.schedule("a", "Second", "2")

    assert notifier.pending["a"].title == "Second"


def test_telegram_posts_message(monkeypatch):
    calls = []

    def fake_post(url, json, timeout):
        calls.append((url, json, timeout))
        return FakeResponse()

    monkeypatch.setattr(requests, "post", fake_post)
    notifier = TelegramNotifier(NotificationConfig(telegram_token="T", telegram_chat_id="42", timeout=3))

    notifier.schedule("x", "Price Alert: AAPL", "AAPL has reached $101.00.")

    url, payload, timeout = calls[0]
    assert url == "https://api.telegram.org/botT/sendMessage"
    assert payload["chat_id"] == "42"
    assert payload["text"] == "*Price Alert: AAPL*\n\nAAPL has reached $101.00."
    assert timeout == 3


def test_telegram_errors_are_logged_not_raised(monkeypatch):
    monkeypatch.setattr(requests, "post", lambda *args, **kwargs: FakeResponse(500))
    notifier = TelegramNotifier(NotificationConfig(telegram_token="T", telegram_chat_id="42"))

    notifier.schedule("x", "t", "b")
    notifier.cancel(["x"])


def test_build_notifier_without_credentials():
    assert isinstance(build_notifier(NotificationConfig()), InMemoryNotifier)
    assert isinstance(
        build_notifier(NotificationConfig(telegram_token="T", telegram_chat_id="1")), TelegramNotifier
    )
