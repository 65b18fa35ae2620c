"""
Shared pytest fixtures and configuration for all tests
"""
import base64
import io
import json
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, Mock

import pytest
from PIL import Image

from roomlens.core.config import Settings
from roomlens.services.analysis_cache import SessionAnalysisCache


class FakeResponse:
    """Stands in for the aiohttp response context manager"""

    def __init__(
        self,
        status: int = 200,
        body: Any = b"",
        headers: Optional[Dict[str, str]] = None,
        error: Optional[BaseException] = None,
    ):
        self.status = status
        if isinstance(body, (dict, list)):
            body = json.dumps(body)
        self.body = body.encode() if isinstance(body, str) else body
        self.headers = headers or {}
        self.error = error

    async def read(self) -> bytes:
        return self.body

    async def text(self) -> str:
        return self.body.decode()

    async def json(self, content_type=None) -> Any:
        return json.loads(self.body)

    async def __aenter__(self):
        if self.error is not None:
            raise self.error
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """
    Minimal aiohttp.ClientSession double.

    Responses are served in order; once the queue is empty the default
    response (if any) is served for every further request.
    """

    def __init__(self, responses: Optional[List[FakeResponse]] = None, default: Optional[FakeResponse] = None):
        self.responses = list(responses or [])
        self.default = default
        self.calls: List[Dict[str, Any]] = []

    def _next(self, method: str, url: str, kwargs: Dict[str, Any]) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        if self.responses:
            return self.responses.pop(0)
        if self.default is not None:
            return self.default
        raise AssertionError(f"Unexpected {method} {url}")

    def get(self, url: str, **kwargs) -> FakeResponse:
        return self._next("GET", url, kwargs)

    def post(self, url: str, **kwargs) -> FakeResponse:
        return self._next("POST", url, kwargs)


def make_png(width: int = 40, height: int = 30, color: str = "white") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color=color).save(buffer, format="PNG")
    return buffer.getvalue()


def data_url(data: bytes, mime: str = "image/png") -> str:
    return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


@pytest.fixture
def test_settings() -> Settings:
    """Settings with every provider credential present"""
    return Settings(
        _env_file=None,
        google_ai_api_key="test-google-key-123456",
        openai_api_key="sk-test-openai-key-123456",
        fal_key="fal-test-key",
        serpapi_key="serp-test-key",
        rainforest_api_key="rainforest-test-key",
        log_format="console",
    )


@pytest.fixture
def bare_settings() -> Settings:
    """Settings with no provider credentials"""
    return Settings(
        _env_file=None,
        google_ai_api_key="",
        openai_api_key="",
        fal_key="",
        serpapi_key="",
        rainforest_api_key="",
        log_format="console",
    )


@pytest.fixture
def analysis_cache() -> SessionAnalysisCache:
    return SessionAnalysisCache()


@pytest.fixture
def sample_png() -> bytes:
    return make_png()


@pytest.fixture
def sample_data_url(sample_png) -> str:
    return data_url(sample_png)


@pytest.fixture
def sample_spatial_json() -> Dict[str, Any]:
    """Spatial JSON shaped like a typical vision model reply"""
    return {
        "windows": [
            {"id": "window-1", "box": {"x": 0.1, "y": 0.05, "width": 0.25, "height": 0.2}},
            {"id": "window-2", "box": {"x": 0.5, "y": 0.05, "width": 0.15, "height": 0.2}},
        ],
        "doors": [{"id": "door-1", "box": {"x": 0.8, "y": 0.2, "width": 0.1, "height": 0.6}}],
        "furniture": [
            {"id": "table-1", "label": "round coffee table", "box": {"x": 0.4, "y": 0.75, "width": 0.15, "height": 0.1}},
            {"id": "sofa-1", "label": "Blue Modern Sofa", "box": {"x": 0.3, "y": 0.55, "width": 0.35, "height": 0.2}},
        ],
        "walkways": [
            {"id": "path-1", "points": [{"x": 0.2, "y": 0.8}, {"x": 0.4, "y": 0.7}]},
            {"id": "path-2", "points": [{"x": 0.6, "y": 0.9}, {"x": 0.7, "y": 0.5}]},
        ],
        "empty_zones": [
            {"id": "corner-1", "box": {"x": 0.0, "y": 0.6, "width": 0.15, "height": 0.3}, "note": "open corner"}
        ],
        "obstructions": [
            {"id": "chair-block", "label": "accent chair", "box": {"x": 0.6, "y": 0.6, "width": 0.1, "height": 0.15}}
        ],
        "depth_cues": ["strong perspective towards back wall", "rug recedes toward window"],
        "metadata": {"notes": ["door swings inward"], "circulation": ["entry -> sofa -> window seating"]},
    }


@pytest.fixture
def sample_suggestions_json() -> Dict[str, Any]:
    return {
        "layout_issues": [{"id": "issue-1", "description": "Sofa blocks the window", "region_ref": "sofa-1"}],
        "improvement_suggestions": [
            {"id": "improve-1", "description": "Float the sofa off the wall", "region_ref": "sofa-1"}
        ],
        "product_suggestions": [
            {"id": "product-1", "query": "sheer curtains", "notes": "for window-1", "region_ref": "window-1"}
        ],
        "measurements": [{"id": "measure-1", "description": "Walkway approx 2.1 ft", "region_ref": "path-1"}],
    }


@pytest.fixture
def mock_vision():
    """Vision model double with the GoogleAIStudioService surface"""
    mock = Mock()
    mock.is_configured = True
    mock.require_configured = Mock()
    mock.generate_text = AsyncMock()
    return mock


@pytest.fixture
def mock_chat():
    """Language model double with the ChatGPTService surface"""
    mock = Mock()
    mock.is_configured = True
    mock.require_configured = Mock()
    mock.complete = AsyncMock()
    return mock


@pytest.fixture
def make_response():
    return FakeResponse


@pytest.fixture
def make_session():
    return FakeSession


@pytest.fixture
def png_factory():
    return make_png
