"""Shared fixtures: a scriptable fake transport, canned replies, a tiny test image."""

import asyncio
import io
import json

import pytest
from PIL import Image

from enhancer.caption import CaptionSchema
from enhancer.classifier import DetectionSchema, ShootDirectionSchema
from enhancer.config import EnhancerConfig
from enhancer.models import ImagePayload
from enhancer.responses import ModelReply
from enhancer.transport import ModelTransport


SPOON_PHRASE = "a hand holding a spoon, scooping a perfect bite."
RESULT_PNG = b"\x89PNG-result-bytes"


def text_reply(text):
    return ModelReply(text=text, finish_reason="STOP")


def json_reply(obj):
    return text_reply(json.dumps(obj))


def image_reply(data=RESULT_PNG):
    return ModelReply(image=ImagePayload(data=data, mime_type="image/png"), finish_reason="STOP")


class FakeTransport(ModelTransport):
    """
    Replays `script` in order (replies or exceptions), then falls back to
    `responder(request)`. Records every request.
    """

    def __init__(self, script=None, responder=None, token_script=None):
        self.script = list(script or [])
        self.responder = responder
        self.token_script = list(token_script or [])
        self.requests = []
        self.token_probes = []
        self.called = asyncio.Event()

    @property
    def calls(self):
        return len(self.requests)

    async def generate(self, request):
        self.requests.append(request)
        self.called.set()
        if self.script:
            item = self.script.pop(0)
        elif self.responder is not None:
            item = self.responder(request)
        else:
            item = ModelReply()
        if isinstance(item, BaseException):
            raise item
        return item

    async def count_tokens(self, model, text):
        self.token_probes.append((model, text))
        item = self.token_script.pop(0) if self.token_script else 1
        if isinstance(item, BaseException):
            raise item
        return item


def studio_responder(category="Food", subject="Nasi Goreng", phrase=SPOON_PHRASE,
                     background="a rustic wooden table by a sunny window"):
    """Answer each request type the way a well-behaved model would."""

    def respond(request):
        if request.response_schema is DetectionSchema:
            return json_reply({"category": category, "subject": subject})
        if request.response_schema is ShootDirectionSchema:
            return json_reply({"style": "Rustic", "background_prompt": background})
        if request.response_schema is CaptionSchema:
            return json_reply({"caption": "Nasi goreng spesial! #kuliner"})
        if request.response_modalities:
            return image_reply()
        return text_reply(phrase)

    return respond


@pytest.fixture
def config():
    return EnhancerConfig(pooled_api_key="pooled-test-key", retry_delay=0.01)


@pytest.fixture
def photo():
    img = Image.new("RGB", (640, 480), (200, 120, 40))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return ImagePayload(data=buf.getvalue(), mime_type="image/png")
