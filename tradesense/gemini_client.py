"""
Gemini Analysis Client
======================
Builds the hybrid-analysis request (prompt + chart images + response schema),
sends it to Gemini and validates the answer against the analysis contract.
"""

import base64
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import google.generativeai as genai

from .config import DEFAULT_MODEL
from .errors import AnalysisError, NO_RESULT_MESSAGE
from .prompts import HYBRID_ANALYSIS_PROMPT
from .schema import AnalysisResult, provider_schema

logger = logging.getLogger(__name__)

# Every image goes out as PNG regardless of the uploaded type
IMAGE_MIME_TYPE = "image/png"


@dataclass(frozen=True)
class ImagePart:
    mime_type: str
    data: str  # raw base64 payload, data-URI prefix removed

    def to_blob(self) -> Dict[str, Any]:
        return {"mime_type": self.mime_type, "data": base64.b64decode(self.data)}


def strip_data_uri(data_uri: str) -> str:
    """'data:image/png;base64,AAAA' -> 'AAAA' (bare base64 passes through)"""
    if data_uri.startswith("data:") and "," in data_uri:
        return data_uri.split(",", 1)[1]
    return data_uri


def build_image_parts(data_uris: Sequence[str]) -> List[ImagePart]:
    return [ImagePart(IMAGE_MIME_TYPE, strip_data_uri(uri)) for uri in data_uris]


def clean_response_text(text: str) -> str:
    """Remove Markdown code fences some models wrap around JSON"""
    text = re.sub(r"```json\s*", "", text)
    text = re.sub(r"```\s*", "", text)
    return text.strip()


class ChartAnalysisClient:
    """
    One instance per process. The API key is passed in explicitly; the client
    never looks at the environment itself.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model_name: str = DEFAULT_MODEL,
        temperature: float = 0.1,
        model: Any = None,
    ):
        self.model_name = model_name
        self.temperature = temperature
        self.response_schema = provider_schema()

        if model is None:
            if api_key:
                genai.configure(api_key=api_key)
            model = genai.GenerativeModel(model_name)
        self._model = model
        logger.info(f"Using Gemini model: {model_name}")

    def build_contents(self, data_uris: Sequence[str]) -> List[Any]:
        """Prompt first, then every image in the order given"""
        return [HYBRID_ANALYSIS_PROMPT] + [part.to_blob() for part in build_image_parts(data_uris)]

    def generation_config(self) -> "genai.types.GenerationConfig":
        return genai.types.GenerationConfig(
            temperature=self.temperature,
            response_mime_type="application/json",
            response_schema=self.response_schema,
        )

    async def analyze(self, data_uris: Sequence[str]) -> AnalysisResult:
        """
        Run one hybrid analysis over the given chart images.

        Raises:
            ValueError: no images were given
            AnalysisError: anything went wrong on the way; the cause is logged
        """
        if not data_uris:
            raise ValueError("at least one image is required")

        try:
            response = await self._model.generate_content_async(
                self.build_contents(data_uris),
                generation_config=self.generation_config(),
            )
            result_text = _response_text(response)
            if not result_text:
                raise AnalysisError(NO_RESULT_MESSAGE)
            return AnalysisResult.model_validate_json(clean_response_text(result_text))
        except Exception as e:
            logger.exception(f"Gemini analysis error ({len(data_uris)} images): {e}")
            raise AnalysisError() from e


def _response_text(response: Any) -> str:
    # `.text` raises ValueError when the candidate was blocked or empty
    try:
        return response.text or ""
    except ValueError:
        logger.warning("Gemini returned no text parts")
        return ""
