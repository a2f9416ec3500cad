"""
TradeSense - Hybrid AI Chart Analysis API
=========================================
Implements: Image intake + Session state + Gemini Vision analysis + Report export
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, Response
from pydantic import BaseModel

from . import __version__
from .config import Settings
from .errors import ImageNotFound, InvalidIntakeError, InvalidTransition, SessionNotFound
from .gemini_client import ChartAnalysisClient
from .intake import IntakeItem, StagedImage, item_from_paste
from .report import build_report_text, report_filename
from .schema import SCHEMA_VERSION
from .session import AnalysisSession, SessionManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

NO_RESULT_DETAIL = "分析結果がありません。"


# ============================================================
# REQUEST MODELS
# ============================================================

class PasteItem(BaseModel):
    type: str = ""
    data: str


class PasteRequest(BaseModel):
    items: List[PasteItem]


# ============================================================
# DEPENDENCIES
# ============================================================

def get_manager(request: Request) -> SessionManager:
    return request.app.state.manager


def get_session(session_id: str, manager: SessionManager = Depends(get_manager)) -> AnalysisSession:
    try:
        return manager.get(session_id)
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)


def _describe(session: AnalysisSession, request: Request) -> dict:
    def preview_url(image: StagedImage) -> str:
        return str(request.url_for("get_preview", session_id=session.id, image_id=image.id).path)

    return session.describe(preview_url)


# ============================================================
# SESSION ENDPOINTS
# ============================================================

@router.post("/sessions", status_code=201)
async def create_session(request: Request, manager: SessionManager = Depends(get_manager)):
    """POST /api/sessions - Start an empty analysis session"""
    return _describe(manager.create(), request)


@router.get("/sessions/{session_id}")
async def get_session_state(request: Request, session: AnalysisSession = Depends(get_session)):
    return _describe(session, request)


@router.delete("/sessions/{session_id}", status_code=204)
async def delete_session(session_id: str, manager: SessionManager = Depends(get_manager)):
    """DELETE /api/sessions/{id} - Clear the session and release its previews"""
    try:
        manager.delete(session_id)
    except SessionNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)
    return Response(status_code=204)


@router.post("/sessions/{session_id}/clear")
async def clear_session(request: Request, session: AnalysisSession = Depends(get_session)):
    session.clear()
    return _describe(session, request)


# ============================================================
# IMAGE INTAKE
# ============================================================

async def _stage(session: AnalysisSession, request: Request, items: List[IntakeItem]) -> dict:
    try:
        await session.add_images(items)
    except InvalidIntakeError as e:
        raise HTTPException(status_code=400, detail=e.message)
    return _describe(session, request)


@router.post("/sessions/{session_id}/images")
async def upload_images(
    request: Request,
    files: List[UploadFile] = File(...),
    session: AnalysisSession = Depends(get_session),
):
    """POST /api/sessions/{id}/images - Stage one or more uploaded chart images"""
    items = [
        IntakeItem(media_type=f.content_type or "", content=await f.read(), filename=f.filename)
        for f in files
    ]
    return await _stage(session, request, items)


@router.post("/sessions/{session_id}/paste")
async def paste_images(
    payload: PasteRequest,
    request: Request,
    session: AnalysisSession = Depends(get_session),
):
    """POST /api/sessions/{id}/paste - Stage clipboard items sent as data-URIs"""
    items = [item_from_paste(item.type, item.data) for item in payload.items]
    return await _stage(session, request, items)


@router.get("/sessions/{session_id}/images/{image_id}/preview", name="get_preview")
async def get_preview(image_id: str, session: AnalysisSession = Depends(get_session)):
    try:
        image = session.find_image(image_id)
    except ImageNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)
    preview = session.previews.get(image.preview)
    if preview is None:
        raise HTTPException(status_code=404, detail="Preview released")
    return Response(content=preview.content, media_type=preview.media_type)


@router.delete("/sessions/{session_id}/images/{image_id}")
async def remove_image(image_id: str, request: Request, session: AnalysisSession = Depends(get_session)):
    try:
        session.remove_image(image_id)
    except ImageNotFound as e:
        raise HTTPException(status_code=404, detail=e.message)
    return _describe(session, request)


# ============================================================
# ANALYSIS
# ============================================================

@router.post("/sessions/{session_id}/analyze")
async def analyze_session(request: Request, session: AnalysisSession = Depends(get_session)):
    """POST /api/sessions/{id}/analyze - Hybrid analysis of every staged chart

    A failed analysis is reported through the session state (status "failed"
    with the error message), not as an HTTP error.
    """
    try:
        await session.analyze()
    except InvalidTransition as e:
        status_code = 409 if session.state.loading else 400
        raise HTTPException(status_code=status_code, detail=e.message)
    return _describe(session, request)


# ============================================================
# REPORT EXPORT
# ============================================================

def _require_result(session: AnalysisSession):
    result = session.state.result
    if result is None:
        raise HTTPException(status_code=404, detail=NO_RESULT_DETAIL)
    return result


@router.get("/sessions/{session_id}/report")
async def get_report(session: AnalysisSession = Depends(get_session)):
    """GET /api/sessions/{id}/report - Plain-text report for the clipboard"""
    result = _require_result(session)
    return PlainTextResponse(build_report_text(result), media_type="text/plain; charset=utf-8")


@router.get("/sessions/{session_id}/report/download")
async def download_report(session: AnalysisSession = Depends(get_session)):
    result = _require_result(session)
    filename = report_filename(result)
    headers = {
        "Content-Disposition": f"attachment; filename=\"{filename}\"; filename*=UTF-8''{quote(filename)}"
    }
    return Response(
        content=build_report_text(result).encode("utf-8"),
        media_type="text/plain; charset=utf-8",
        headers=headers,
    )


# ============================================================
# HEALTH CHECK
# ============================================================

@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint"""
    manager: SessionManager = request.app.state.manager
    return {
        "status": "healthy",
        "model": manager.client.model_name,
        "schema_version": SCHEMA_VERSION,
        "sessions": len(manager),
        "timestamp": datetime.now().isoformat(),
    }


# ============================================================
# APP CONFIGURATION
# ============================================================

def create_app(
    settings: Optional[Settings] = None,
    client: Optional[ChartAnalysisClient] = None,
    clock: Optional[Callable[[], datetime]] = None,
) -> FastAPI:
    settings = settings or Settings.from_env()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if client is None:
        client = ChartAnalysisClient(
            settings.gemini_api_key,
            model_name=settings.gemini_model,
            temperature=settings.gemini_temperature,
        )

    app = FastAPI(title="TradeSense Hybrid Analysis API", version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.settings = settings
    app.state.manager = SessionManager(client, settings, clock=clock)
    app.include_router(router)
    return app


if __name__ == "__main__":
    import uvicorn

    settings = Settings.from_env()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)
