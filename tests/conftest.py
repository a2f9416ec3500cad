"""
Shared pytest fixtures for TradeSense tests.

Provides:
- PNG image factory
- Fake Gemini model (records requests, replays canned answers)
- Settings / analysis client / session manager
- FastAPI TestClient wired to the fake model
"""

import asyncio
import copy
import io
import json
from datetime import datetime
from typing import Any, List, Optional

import pytest
from fastapi.testclient import TestClient
from PIL import Image

from tradesense.config import Settings
from tradesense.gemini_client import ChartAnalysisClient
from tradesense.intake import IntakeItem
from tradesense.main import create_app
from tradesense.previews import PreviewStore
from tradesense.session import SessionManager

FIXED_NOW = datetime(2026, 10, 19, 14, 3, 5)
FIXED_TIMESTAMP = "2026/10/19 14:03:05"

SAMPLE_ANALYSIS = {
    "sentiment": "強気トレンド",
    "confidence": 78,
    "keySupportLevels": ["4200"],
    "keyResistanceLevels": ["4400"],
    "indicatorsObserved": ["MACDダイバージェンス"],
    "technicalReasoning": "MACDが強気のダイバージェンスを形成。",
    "liquidityReasoning": "直近安値の流動性を刈り取った後に反発。",
    "overallSummary": "押し目買い優位。",
    "tradeSetup": {
        "entryPrice": "4210",
        "stopLoss": "4180",
        "takeProfit": "4380",
        "timeframe": "4時間",
    },
}


def png_bytes(width: int = 200, height: int = 120, color: str = "navy") -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


class FakeResponse:
    def __init__(self, text: Optional[str] = None, blocked: bool = False):
        self._text = text
        self._blocked = blocked

    @property
    def text(self) -> Optional[str]:
        if self._blocked:
            raise ValueError("The `response.text` quick accessor requires a valid Part")
        return self._text


class FakeModel:
    """Stands in for genai.GenerativeModel"""

    def __init__(self):
        self.calls: List[dict] = []
        self.response: Any = FakeResponse(json.dumps(SAMPLE_ANALYSIS, ensure_ascii=False))
        self.error: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None

    def reply(self, payload: Any) -> None:
        text = payload if isinstance(payload, str) else json.dumps(payload, ensure_ascii=False)
        self.response = FakeResponse(text)

    async def generate_content_async(self, contents, generation_config=None):
        self.calls.append({"contents": contents, "generation_config": generation_config})
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def sample_analysis() -> dict:
    return copy.deepcopy(SAMPLE_ANALYSIS)


@pytest.fixture
def fake_model() -> FakeModel:
    return FakeModel()


@pytest.fixture
def settings() -> Settings:
    return Settings(gemini_api_key="test-key", preview_max_size=64, max_image_bytes=1024 * 1024)


@pytest.fixture
def analysis_client(fake_model) -> ChartAnalysisClient:
    return ChartAnalysisClient("test-key", model=fake_model)


@pytest.fixture
def previews() -> PreviewStore:
    return PreviewStore()


@pytest.fixture
def manager(analysis_client, settings, previews) -> SessionManager:
    return SessionManager(analysis_client, settings, previews=previews, clock=lambda: FIXED_NOW)


@pytest.fixture
def session(manager):
    return manager.create()


@pytest.fixture
def image_item():
    def factory(color: str = "navy", media_type: str = "image/png", filename: str = "chart.png") -> IntakeItem:
        return IntakeItem(media_type=media_type, content=png_bytes(color=color), filename=filename)

    return factory


@pytest.fixture
def api_client(settings, analysis_client):
    app = create_app(settings, client=analysis_client, clock=lambda: FIXED_NOW)
    with TestClient(app) as client:
        yield client


@pytest.fixture
def manager_of():
    def get(client: TestClient) -> SessionManager:
        return client.app.state.manager

    return get
