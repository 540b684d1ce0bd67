import logging
import os
from contextlib import asynccontextmanager
from typing import List, Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import ai_utils
from exceptions import LLMError, PersistenceError
from schemas import (
    AnalyzeIn,
    CommentOut,
    GenerateResponseIn,
    GeneratedResponseOut,
    SubmitActionIn,
    TranslateIn,
)
from store import CommentStore

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8001"))

# CORS_ORIGINS="http://localhost:5173,http://127.0.0.1:5173", по умолчанию всё
_cors_raw = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = [o.strip() for o in _cors_raw.split(",") if o.strip()] or ["*"]

logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def get_store(request: Request) -> CommentStore:
    return request.app.state.store


def require_comment(store: CommentStore, comment_id: int) -> dict:
    comment = store.get_comment(comment_id)
    if not comment:
        raise HTTPException(status_code=404, detail="Comment not found")
    return comment


@router.get("/comments", response_model=List[CommentOut])
def list_comments(store: CommentStore = Depends(get_store)):
    return store.list_comments()


@router.post("/analyze", response_model=List[CommentOut])
def analyze(
    data: Optional[AnalyzeIn] = None,
    store: CommentStore = Depends(get_store),
):
    if data and data.id:
        comments = [require_comment(store, data.id)]
    else:
        comments = store.list_comments()

    # в модель уходят только id и текст
    payload = [{"id": c["id"], "text": c["text"]} for c in comments]
    requested_ids = {c["id"] for c in comments}

    results = ai_utils.analyze_comments(payload)

    for key, analysis in results.items():
        try:
            comment_id = int(key)
        except (TypeError, ValueError):
            logger.warning("Пропускаем анализ с некорректным ключом %r", key)
            continue
        if comment_id not in requested_ids or not isinstance(analysis, dict):
            logger.warning("Пропускаем анализ для комментария %s", key)
            continue
        store.save_analysis(comment_id, analysis)

    return store.list_comments()


@router.post("/reset", response_model=List[CommentOut])
def reset(store: CommentStore = Depends(get_store)):
    store.reset_demo()
    logger.info("Демо-данные сброшены")
    return store.list_comments()


@router.post("/generate-response", response_model=GeneratedResponseOut)
def generate_response(
    data: GenerateResponseIn,
    store: CommentStore = Depends(get_store),
):
    if not data.id:
        raise HTTPException(status_code=400, detail="Missing comment ID")

    comment = require_comment(store, data.id)
    language = data.language or ai_utils.DEFAULT_RESPONSE_LANGUAGE
    text = ai_utils.draft_response(comment, data.type, language)
    return {"response": text}


@router.post("/submit-action", response_model=List[CommentOut])
def submit_action(
    data: SubmitActionIn,
    store: CommentStore = Depends(get_store),
):
    if not data.id or not data.status:
        raise HTTPException(status_code=400, detail="Missing required fields")

    require_comment(store, data.id)
    store.save_action(data.id, data.status.value, data.response)
    return store.list_comments()


@router.post("/translate", response_model=List[CommentOut])
def translate(
    data: TranslateIn,
    store: CommentStore = Depends(get_store),
):
    if not data.id:
        raise HTTPException(status_code=400, detail="Missing comment ID")

    comment = require_comment(store, data.id)
    translation = ai_utils.translate_text(comment["text"])
    store.save_translation(data.id, translation.translated_text)
    return store.list_comments()


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    # неизвестный метод на существующем пути отдаём как обычный 404
    if exc.status_code == 405:
        return JSONResponse(status_code=404, content={"error": "Not Found"})
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})


async def validation_error_handler(request: Request, exc: RequestValidationError):
    messages = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error.get("loc", []))
        messages.append(f"{field}: {error.get('msg', 'Validation error')}")
    return JSONResponse(status_code=400, content={"error": "; ".join(messages)})


async def failure_handler(request: Request, exc: Exception):
    logger.exception("Ошибка при обработке %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": str(exc)})


def create_app(store: Optional[CommentStore] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.store = store or CommentStore()
        app.state.store.open()
        yield
        app.state.store.close()

    app = FastAPI(title="Comment Triage Service", version="0.1.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(LLMError, failure_handler)
    app.add_exception_handler(PersistenceError, failure_handler)
    app.add_exception_handler(Exception, failure_handler)

    app.include_router(router)

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "comment-triage"}

    return app


app = create_app()


def run_server():
    uvicorn.run("main:app", host=HOST, port=PORT)


if __name__ == "__main__":
    run_server()
