"""Shared fixtures for the mention agent tests."""
import json
import time
from uuid import UUID

import pytest
import requests
from fastapi.testclient import TestClient

from mention_agent.errors import PublishError
from mention_agent.main import create_app
from mention_agent.models import GeneratedContent, PublishedReply, SelfIdentity
from mention_agent.orchestrator import ResponseOrchestrator
from mention_agent.runtime import LocalRuntime
from mention_agent.signature import signature_header

AGENT_USER_ID = 99
AGENT_NAME = "agent"
AGENT_ID = UUID("0b6f4d3e-8a57-4f43-9e1c-2d7e5a9c1f00")
COMMUNITY = "dydx"
OTHER_COMMUNITY = "ethereum"
KEY = "whsec_dydx_secret"
OTHER_KEY = "whsec_ethereum_secret"


def make_event(**overrides):
    """Thread mention from user 42 saying hi to the agent."""
    event = {
        "community_id": COMMUNITY,
        "profile_name": "alice",
        "profile_url": "https://common.xyz/profile/id/42",
        "thread_title": "Fair allocation receipts",
        "object_url": "https://common.xyz/dydx/discussion/7",
        "object_summary": "hi @agent",
        "content_url": None,
        "content_type": "thread",
        "thread_id": 7,
        "author_user_id": 42,
    }
    event.update(overrides)
    return event


def make_comment_event(comment_id=501, **overrides):
    return make_event(content_type="comment", comment_id=comment_id, **overrides)


def signed_headers(raw: bytes, key=KEY, timestamp=None):
    return {"x-signature": signature_header(raw, key, timestamp), "Content-Type": "application/json"}


class FakeResponse:
    def __init__(self, status_code=200, text="", payload=None):
        self.status_code = status_code
        self.text = text
        self._payload = payload

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        return self._payload if self._payload is not None else json.loads(self.text)

    def raise_for_status(self):
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    """Records calls and replays queued responses (or raises queued exceptions)."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []
        self.headers = {}

    def _next(self):
        r = self.responses.pop(0)
        if isinstance(r, Exception):
            raise r
        return r

    def get(self, url, **kwargs):
        self.calls.append(("GET", url, kwargs))
        return self._next()

    def post(self, url, **kwargs):
        self.calls.append(("POST", url, kwargs))
        return self._next()


class FakeLLM:
    def __init__(self, response=GeneratedContent("Hello back from the agent"), respond=True):
        self.response = response
        self.respond = respond
        self.generate_calls = []
        self.classify_calls = []

    def generate_response(self, context):
        self.generate_calls.append(context)
        return self.response

    def classify(self, context):
        self.classify_calls.append(context)
        if isinstance(self.respond, Exception):
            raise self.respond
        return self.respond


class FakeCommonApi:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []
        self._next_id = 9000

    def post_reply(self, thread_id, body, parent_id=None, idempotency_key=None):
        self.calls.append({"thread_id": thread_id, "body": body, "parent_id": parent_id,
                           "idempotency_key": idempotency_key})
        if self.fail:
            raise PublishError(thread_id, "503: upstream unavailable")
        self._next_id += 1
        return PublishedReply(id=self._next_id, thread_id=thread_id, community_id=COMMUNITY, body=body,
                              created_at="2026-10-17T12:00:00Z", content_url=None)


@pytest.fixture
def me():
    return SelfIdentity(id=AGENT_USER_ID, display_name=AGENT_NAME)


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def evaluations():
    return []


@pytest.fixture
def runtime(llm, evaluations):
    rt = LocalRuntime(AGENT_ID, llm)
    rt.register_evaluator(lambda memory, state, responded: evaluations.append((memory.id, responded)))
    return rt


@pytest.fixture
def api():
    return FakeCommonApi()


@pytest.fixture
def fetch_session():
    return FakeSession()


@pytest.fixture
def orchestrator(runtime, api, me, fetch_session):
    return ResponseOrchestrator(runtime, api, me, fetch_session=fetch_session)


@pytest.fixture
def signing_keys():
    return {COMMUNITY: KEY, OTHER_COMMUNITY: OTHER_KEY}


@pytest.fixture
def client(orchestrator, me, signing_keys):
    return TestClient(create_app(orchestrator, me, signing_keys))


@pytest.fixture
def now():
    return time.time()
