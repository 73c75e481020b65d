import base64
import json
from types import SimpleNamespace

import httpx
import pytest

from models import CapturedImage

OPENAI_URL = "https://api.openai.com/v1/chat/completions"


def openai_error(error_type, status_code, message):
    """Build a real openai APIStatusError subclass the way the SDK does."""
    response = httpx.Response(status_code, request=httpx.Request("POST", OPENAI_URL))
    return error_type(message, response=response, body=None)


def card_json(**fields):
    card = {key: "" for key in
            ("name", "jobTitle", "company", "email", "phone", "website", "address", "fullText")}
    card.update(fields)
    return json.dumps(card)


class FakeCompletions:
    """Stands in for AsyncOpenAI().chat.completions.

    `responder(model, image_bytes)` returns the answer text or an exception
    to raise.
    """

    def __init__(self, responder):
        self.responder = responder
        self.calls = []

    async def create(self, model, messages, **kwargs):
        uri = messages[1]["content"][0]["image_url"]["url"]
        image_bytes = base64.b64decode(uri.split(",", 1)[1])
        self.calls.append((model, image_bytes))
        outcome = self.responder(model, image_bytes)
        if isinstance(outcome, BaseException):
            raise outcome
        message = SimpleNamespace(content=outcome)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeOpenAI:
    def __init__(self, responder):
        self.completions = FakeCompletions(responder)
        self.chat = SimpleNamespace(completions=self.completions)

    @property
    def models_called(self):
        return [model for model, _ in self.completions.calls]


@pytest.fixture
def front():
    return CapturedImage(data=b"front-side", mime_type="image/png", file_name="front.png")


@pytest.fixture
def back():
    return CapturedImage(data=b"back-side", mime_type="image/jpeg")


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("OPENAI_API_KEY", "OCR_MODELS", "CLOUDINARY_CLOUD_NAME",
                 "CLOUDINARY_UPLOAD_PRESET", "GOOGLE_SCRIPT_URL",
                 "ADMIN_USERNAME", "ADMIN_PASSWORD"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
