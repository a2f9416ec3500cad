"""Tests for the Gemini analysis client (fake model, no network)"""

import base64
import json

import pytest

from tradesense.errors import ANALYSIS_FAILED_MESSAGE, AnalysisError
from tradesense.gemini_client import (
    IMAGE_MIME_TYPE,
    ChartAnalysisClient,
    build_image_parts,
    clean_response_text,
    strip_data_uri,
)
from tradesense.prompts import HYBRID_ANALYSIS_PROMPT

from .conftest import FakeResponse


def data_uri(raw: bytes, media_type: str = "image/jpeg") -> str:
    return f"data:{media_type};base64,{base64.b64encode(raw).decode()}"


class TestRequestConstruction:
    def test_strip_data_uri(self):
        assert strip_data_uri("data:image/png;base64,QUJD") == "QUJD"
        assert strip_data_uri("QUJD") == "QUJD"

    def test_parts_use_fixed_media_type(self):
        parts = build_image_parts([data_uri(b"one", "image/jpeg"), data_uri(b"two", "image/webp")])

        assert [p.mime_type for p in parts] == [IMAGE_MIME_TYPE, IMAGE_MIME_TYPE]
        assert parts[0].data == base64.b64encode(b"one").decode()

    def test_contents_prompt_then_images_in_order(self, analysis_client):
        uris = [data_uri(f"image-{i}".encode()) for i in range(3)]

        contents = analysis_client.build_contents(uris)

        assert contents[0] == HYBRID_ANALYSIS_PROMPT
        assert [part["data"] for part in contents[1:]] == [b"image-0", b"image-1", b"image-2"]
        assert all(part["mime_type"] == "image/png" for part in contents[1:])

    def test_generation_config_declares_schema(self, analysis_client):
        config = analysis_client.generation_config()

        assert config.response_mime_type == "application/json"
        assert config.response_schema["required"][0] == "sentiment"
        assert "tradeSetup" in config.response_schema["properties"]


class TestAnalyze:
    @pytest.mark.asyncio
    async def test_single_request_with_all_images(self, analysis_client, fake_model):
        uris = [data_uri(b"a"), data_uri(b"b")]

        result = await analysis_client.analyze(uris)

        assert len(fake_model.calls) == 1
        assert len(fake_model.calls[0]["contents"]) == 3
        assert result.sentiment == "強気トレンド"
        assert result.trade_setup.timeframe == "4時間"

    @pytest.mark.asyncio
    async def test_empty_image_list(self, analysis_client, fake_model):
        with pytest.raises(ValueError):
            await analysis_client.analyze([])
        assert fake_model.calls == []

    @pytest.mark.asyncio
    async def test_code_fenced_json(self, analysis_client, fake_model, sample_analysis):
        fake_model.reply("```json\n" + json.dumps(sample_analysis, ensure_ascii=False) + "\n```")

        result = await analysis_client.analyze([data_uri(b"a")])

        assert result.key_resistance_levels == ["4400"]

    @pytest.mark.asyncio
    async def test_provider_error_is_generic(self, analysis_client, fake_model, caplog):
        fake_model.error = RuntimeError("quota exceeded")

        with pytest.raises(AnalysisError) as exc_info:
            await analysis_client.analyze([data_uri(b"a")])

        assert exc_info.value.message == ANALYSIS_FAILED_MESSAGE
        assert "quota exceeded" not in exc_info.value.message
        assert "quota exceeded" in caplog.text

    @pytest.mark.parametrize("response", [FakeResponse(""), FakeResponse(None), FakeResponse(blocked=True)])
    @pytest.mark.asyncio
    async def test_no_text(self, analysis_client, fake_model, response):
        fake_model.response = response

        with pytest.raises(AnalysisError) as exc_info:
            await analysis_client.analyze([data_uri(b"a")])

        assert exc_info.value.message == ANALYSIS_FAILED_MESSAGE

    @pytest.mark.asyncio
    async def test_malformed_json(self, analysis_client, fake_model):
        fake_model.reply("{not json")

        with pytest.raises(AnalysisError):
            await analysis_client.analyze([data_uri(b"a")])

    @pytest.mark.asyncio
    async def test_schema_violation(self, analysis_client, fake_model, sample_analysis):
        sample_analysis["tradeSetup"] = {"entryPrice": "4210"}
        fake_model.reply(sample_analysis)

        with pytest.raises(AnalysisError):
            await analysis_client.analyze([data_uri(b"a")])


def test_clean_response_text():
    assert clean_response_text("```json\n{}\n```") == "{}"
    assert clean_response_text("  {}  ") == "{}"
