"""
Result rendering: sentiment buckets, the UI view model and the text report.
"""

import re
from enum import Enum
from typing import Any, Dict, Optional

from .schema import AnalysisResult

BULLISH_TERMS = ("強気", "上昇", "反発", "bullish", "uptrend", "rebound")
BEARISH_TERMS = ("弱気", "下落", "調整", "bearish", "downtrend", "correction")

# Indicators worth drawing attention to in the UI
HIGHLIGHT_TERMS = ("ダイバージェンス", "MACD")

NO_SIGNAL_TEXT = "明確なエントリーシグナルなし"
UNKNOWN_TIME_TEXT = "不明"
REPORT_RULE = "━" * 22
DISCLAIMER = "※免責事項: 投資は自己責任で行ってください。"
TRADE_DISCLAIMER = "※免責事項: 高度なマルチタイムフレーム解析結果ですが、最終判断は必ずご自身で行ってください。"


class SentimentBucket(str, Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


# Colour tokens the front end maps onto its palette
SENTIMENT_TONES = {
    SentimentBucket.BULLISH: "emerald",
    SentimentBucket.BEARISH: "rose",
    SentimentBucket.NEUTRAL: "amber",
}


def classify_sentiment(sentiment: str) -> SentimentBucket:
    s = sentiment.lower()
    if any(term in s for term in BULLISH_TERMS):
        return SentimentBucket.BULLISH
    if any(term in s for term in BEARISH_TERMS):
        return SentimentBucket.BEARISH
    return SentimentBucket.NEUTRAL


def _analyzed_at(result: AnalysisResult) -> Optional[str]:
    return getattr(result, "analyzed_at", None)


def _format_confidence(confidence: float) -> str:
    return str(int(confidence)) if float(confidence).is_integer() else str(confidence)


def build_report_text(result: AnalysisResult) -> str:
    if result.trade_setup:
        setup = result.trade_setup
        trade_section = "\n".join([
            "【推奨トレードプラン】",
            f"・エントリー目安: {setup.entry_price}",
            f"・利確目安 (TP): {setup.take_profit}",
            f"・損切り目安 (SL): {setup.stop_loss}",
            f"・推奨保持期間: {setup.timeframe}",
        ])
    else:
        trade_section = NO_SIGNAL_TEXT

    return f"""■ TradeSense AI ハイブリッド分析レポート
{REPORT_RULE}
【分析日時】 {_analyzed_at(result) or UNKNOWN_TIME_TEXT}

【市場センチメント】 {result.sentiment} (自信度: {_format_confidence(result.confidence)}%)

【主要なレジサポ / 需給ゾーン】
・上値抵抗 (供給): {', '.join(result.key_resistance_levels)}
・下値支持 (需要): {', '.join(result.key_support_levels)}

【確認された重要サイン】
{', '.join(result.indicators_observed)}

【1. テクニカル分析 (MACD/EMA/Stoch)】
{result.technical_reasoning}

【2. 流動性分析 (SMC/OrderBlock)】
{result.liquidity_reasoning}

【3. 統合的な総括】
{result.overall_summary}

{trade_section}

{REPORT_RULE}
{DISCLAIMER}"""


def report_filename(result: AnalysisResult) -> str:
    analyzed_at = _analyzed_at(result)
    if not analyzed_at:
        return "Analysis_report.txt"
    return f"Analysis_{re.sub(r'[:/ ]', '_', analyzed_at)}.txt"


def build_view(result: AnalysisResult) -> Dict[str, Any]:
    """JSON-ready view model of a result for the front end"""
    bucket = classify_sentiment(result.sentiment)
    view: Dict[str, Any] = {
        "analyzedAt": _analyzed_at(result),
        "sentiment": {
            "label": result.sentiment,
            "bucket": bucket.value,
            "tone": SENTIMENT_TONES[bucket],
        },
        "confidence": result.confidence,
        "levels": {
            "resistance": list(result.key_resistance_levels),
            "support": list(result.key_support_levels),
        },
        "indicators": [
            {"name": name, "highlight": any(term in name for term in HIGHLIGHT_TERMS)}
            for name in result.indicators_observed
        ],
        "sections": [
            {"title": "1. テクニカル分析 (MACD/ストキャス/EMA)", "body": result.technical_reasoning},
            {"title": "2. 流動性分析 (SMC/オーダーブロック)", "body": result.liquidity_reasoning},
            {"title": "3. ハイブリッド総括", "body": result.overall_summary},
        ],
        "tradeSetup": None,
        "filename": report_filename(result),
    }
    if result.trade_setup:
        view["tradeSetup"] = {
            **result.trade_setup.model_dump(by_alias=True),
            "disclaimer": TRADE_DISCLAIMER,
        }
    return view
