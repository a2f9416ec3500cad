"""
Analysis contract
=================
The pydantic models below are the single definition of the analysis shape.
The schema declared to Gemini is derived from them, and the same models
validate whatever Gemini sends back.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SCHEMA_VERSION = "2024-06.1"


class _Contract(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class TradeSetup(_Contract):
    # Free-form: values carry annotations such as "4210 (直近安値)"
    entry_price: str = Field(min_length=1)
    stop_loss: str = Field(min_length=1)
    take_profit: str = Field(min_length=1)
    timeframe: str = Field(min_length=1)


class AnalysisResult(_Contract):
    sentiment: str = Field(description="市場の方向性を表す日本語（例：強気トレンド、弱気調整中、中立など）")
    confidence: float = Field(ge=0, le=100)
    key_support_levels: List[str] = Field(description="主要サポート・需要ゾーン（日本語の説明付き）")
    key_resistance_levels: List[str] = Field(description="主要レジスタンス・供給ゾーン（日本語の説明付き）")
    indicators_observed: List[str]
    technical_reasoning: str
    liquidity_reasoning: str
    overall_summary: str
    trade_setup: Optional[TradeSetup] = None


class TimestampedAnalysis(AnalysisResult):
    """An AnalysisResult plus the local time it was received"""

    analyzed_at: str

    @classmethod
    def attach(cls, result: AnalysisResult, analyzed_at: str) -> "TimestampedAnalysis":
        return cls(**result.model_dump(), analyzed_at=analyzed_at)


# ============================================================
# PROVIDER SCHEMA
# ============================================================

_PROVIDER_TYPES = {
    "object": "OBJECT",
    "string": "STRING",
    "number": "NUMBER",
    "integer": "INTEGER",
    "boolean": "BOOLEAN",
    "array": "ARRAY",
}


def provider_schema() -> Dict[str, Any]:
    """Gemini `response_schema` for AnalysisResult (OpenAPI subset, upper-case types)"""
    raw = AnalysisResult.model_json_schema(by_alias=True)
    return _to_provider(raw, raw.get("$defs", {}))


def _to_provider(node: Dict[str, Any], defs: Dict[str, Any]) -> Dict[str, Any]:
    description = node.get("description")

    if "$ref" in node:
        node = defs[node["$ref"].rsplit("/", 1)[-1]]
    if "anyOf" in node:
        # Optional[X] renders as anyOf [X, null]; optionality is expressed via `required`
        branches = [b for b in node["anyOf"] if b.get("type") != "null"]
        converted = _to_provider(branches[0], defs)
        if description:
            converted["description"] = description
        return converted

    out: Dict[str, Any] = {"type": _PROVIDER_TYPES[node["type"]]}
    if description:
        out["description"] = description

    if out["type"] == "OBJECT":
        out["properties"] = {
            name: _to_provider(child, defs) for name, child in node.get("properties", {}).items()
        }
        if node.get("required"):
            out["required"] = list(node["required"])
    elif out["type"] == "ARRAY":
        out["items"] = _to_provider(node["items"], defs)
    return out
