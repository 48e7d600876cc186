import os

# Must be set before config is imported
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["LLM_PROVIDER"] = "GROQ"
os.environ["EXECUTION_BACKEND"] = "local"
os.environ["LOG_LEVEL"] = "WARNING"
for key in ("GROQ_API_KEY", "GOOGLE_API_KEY", "OPENROUTER_API_KEY"):
    os.environ.pop(key, None)

import pytest

import assistant
import executor
from app import app as flask_app
from models import db


@pytest.fixture
def app():
    flask_app.config.update(TESTING=True)
    with flask_app.app_context():
        db.create_all()
        yield flask_app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


class FakeLLM:
    """Stands in for llm.call_llm: returns queued replies and records the prompts."""

    def __init__(self):
        self.replies = []
        self.calls = []

    def queue(self, *replies):
        self.replies.extend(replies)

    def __call__(self, messages_list, provider=None, response_format_type=None, temperature=0.7, max_tokens=1024):
        self.calls.append({"messages": messages_list, "provider": provider,
                           "response_format_type": response_format_type})
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    @property
    def last_prompt(self):
        return "\n".join(m["content"] for m in self.calls[-1]["messages"])


@pytest.fixture
def fake_llm(monkeypatch):
    fake = FakeLLM()
    monkeypatch.setattr(assistant, "call_llm", fake)
    monkeypatch.setattr(executor, "call_llm", fake)
    return fake
