"""
Vercel Serverless Function for Chart Analysis
Handles: multipart chart upload, Gemini hybrid analysis, report rendering
"""

from http.server import BaseHTTPRequestHandler
from email.parser import BytesParser
from email.policy import HTTP
from functools import lru_cache
from typing import Dict, List
import asyncio
import json
import logging

from tradesense.config import Settings
from tradesense.errors import AnalysisError, InvalidIntakeError
from tradesense.gemini_client import ChartAnalysisClient
from tradesense.intake import IntakeItem, stage_batch
from tradesense.previews import PreviewStore
from tradesense.report import build_report_text, build_view, report_filename
from tradesense.schema import TimestampedAnalysis
from tradesense.session import TIMESTAMP_FORMAT, local_now

logger = logging.getLogger(__name__)

FILE_FIELDS = ("file", "files")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()


@lru_cache(maxsize=1)
def get_client() -> ChartAnalysisClient:
    settings = get_settings()
    return ChartAnalysisClient(
        settings.gemini_api_key,
        model_name=settings.gemini_model,
        temperature=settings.gemini_temperature,
    )


def parse_multipart(content_type: str, body: bytes) -> List[IntakeItem]:
    """Pull the `file`/`files` parts out of a multipart/form-data body"""
    if not content_type.lower().startswith("multipart/"):
        return []
    message = BytesParser(policy=HTTP).parsebytes(
        b"Content-Type: " + content_type.encode("latin-1") + b"\r\n\r\n" + body
    )
    items = []
    for part in message.iter_parts():
        if part.get_param("name", header="content-disposition") not in FILE_FIELDS:
            continue
        items.append(IntakeItem(
            media_type=part.get_content_type(),
            content=part.get_payload(decode=True) or b"",
            filename=part.get_filename(),
        ))
    return items


async def run_analysis(items: List[IntakeItem]) -> Dict:
    settings = get_settings()
    previews = PreviewStore()
    images = await stage_batch(
        items, previews,
        preview_max_size=settings.preview_max_size,
        max_image_bytes=settings.max_image_bytes,
    )
    try:
        result = await get_client().analyze([image.data_uri for image in images])
    finally:
        # Stateless: previews only existed to validate the images
        for image in images:
            previews.revoke(image.preview)

    stamped = TimestampedAnalysis.attach(
        result, local_now(settings.analysis_timezone).strftime(TIMESTAMP_FORMAT)
    )
    return {
        "success": True,
        "images": len(images),
        "analysis": stamped.model_dump(by_alias=True),
        "view": build_view(stamped),
        "report": build_report_text(stamped),
        "filename": report_filename(stamped),
    }


class handler(BaseHTTPRequestHandler):
    def do_OPTIONS(self):
        self.send_response(204)
        self._cors_headers()
        self.end_headers()

    def do_POST(self):
        content_length = int(self.headers.get('Content-Length', 0))
        post_data = self.rfile.read(content_length)
        items = parse_multipart(self.headers.get('Content-Type', ''), post_data)

        try:
            result = asyncio.run(run_analysis(items))
        except InvalidIntakeError as e:
            self._send_json(400, {"success": False, "error": e.message})
            return
        except AnalysisError as e:
            self._send_json(502, {"success": False, "error": e.message})
            return

        self._send_json(200, result)

    def _cors_headers(self):
        self.send_header('Access-Control-Allow-Origin', '*')
        self.send_header('Access-Control-Allow-Methods', 'POST, OPTIONS')
        self.send_header('Access-Control-Allow-Headers', 'Content-Type')

    def _send_json(self, status: int, body: Dict):
        payload = json.dumps(body, ensure_ascii=False).encode('utf-8')
        self.send_response(status)
        self.send_header('Content-Type', 'application/json; charset=utf-8')
        self.send_header('Content-Length', str(len(payload)))
        self._cors_headers()
        self.end_headers()
        self.wfile.write(payload)
