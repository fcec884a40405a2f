"""Shared fakes: a scripted Gemini client and image fetcher, plus a wired generator."""

from datetime import date

import pytest

from services.alt_text_generator import AltTextGenerator
from services.gemini_client import ProviderError
from services.image_fetcher import FetchedImage, FetchError
from services.quota import InMemoryUsageStore, QuotaTracker

GOOD_REPLY = '{"alt_text": "Red running shoe", "score": 82, "issues": "None", "filename": "red-running-shoe.jpg"}'


class FakeClient:
    """Returns queued replies in order; an Exception instance in the queue is raised instead."""

    def __init__(self, *replies, default=GOOD_REPLY):
        self.replies = list(replies)
        self.default = default
        self.payloads = []

    def invoke(self, payload):
        self.payloads.append(payload)
        reply = self.replies.pop(0) if self.replies else self.default
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeFetcher:

    def __init__(self, fail=False):
        self.fail = fail
        self.urls = []

    def fetch_image(self, url):
        self.urls.append(url)
        if self.fail:
            raise FetchError(f"cannot fetch {url}")
        return FetchedImage(data=b"\x89PNG", mime_type="image/png")


class Clock:

    def __init__(self, today=date(2024, 5, 1)):
        self.today = today

    def __call__(self):
        return self.today


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def store():
    return InMemoryUsageStore()


@pytest.fixture
def quota(store, clock):
    return QuotaTracker(store, daily_limit=10, today=clock)


@pytest.fixture
def fake_client():
    return FakeClient()


@pytest.fixture
def fake_fetcher():
    return FakeFetcher()


@pytest.fixture
def generator(quota, fake_fetcher, fake_client):
    return AltTextGenerator(quota, fake_fetcher, fake_client, image_delay=0)


def provider_failure():
    return ProviderError("Gemini returned 503")
