"""
Pytest fixtures for API gateway tests.
"""

import json
from typing import Callable, List, Optional

import httpx
import pytest
from jose import jwt

from shared.config import settings
from modules.generation_client import GenerationClient
from api_gateway.orchestrator import JobOrchestrator


def _sse(content: Optional[str] = None, finish_reason: Optional[str] = None, payload_id: Optional[str] = "chatcmpl-7") -> bytes:
    """One provider data line."""
    delta = {} if content is None else {"content": content}
    payload = {"id": payload_id, "choices": [{"delta": delta, "finish_reason": finish_reason}]}
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n".encode("utf-8")


class ProviderStub:
    """Records requests and answers with canned statuses or stream bodies."""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.responses: List[Callable[[httpx.Request], httpx.Response]] = []

    def then_status(self, status_code: int) -> "ProviderStub":
        self.responses.append(lambda request: httpx.Response(status_code))
        return self

    def then_stream(self, *chunks) -> "ProviderStub":
        """Body from bytes chunks, or from an async generator factory."""
        if len(chunks) == 1 and callable(chunks[0]):
            factory = chunks[0]
            self.responses.append(lambda request: httpx.Response(200, content=factory()))
        else:
            async def body():
                for chunk in chunks:
                    yield chunk
            self.responses.append(lambda request: httpx.Response(200, content=body()))
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        index = min(len(self.requests), len(self.responses)) - 1
        return self.responses[index](request)

    def client(self) -> GenerationClient:
        return GenerationClient(transport=httpx.MockTransport(self.handler), retry_delay=0)


@pytest.fixture
def sse():
    """Builder for provider data lines."""
    return _sse


@pytest.fixture
def provider():
    return ProviderStub()


@pytest.fixture
def orchestrator(job_store, video_store, provider):
    return JobOrchestrator(job_store, video_store, provider.client(), worker_id="test-worker")


@pytest.fixture
def make_token():
    def _make(claims: dict, secret: Optional[str] = None) -> str:
        return jwt.encode(claims, secret or settings.jwt_secret_key, algorithm="HS256")
    return _make


@pytest.fixture
def auth_headers(make_token):
    def _headers(user_id: str = "user-1") -> dict:
        return {"Authorization": f"Bearer {make_token({'sub': user_id})}"}
    return _headers
