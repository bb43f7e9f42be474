# app/main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.deps import get_session_registry
from app.api.routers.scanner import router as scanner_router
from app.api.routers.scanner_sessions import router as scanner_sessions_router
from app.core.config import get_settings
from app.core.logging import setup_logging
from app.db.session import close_engines
from app.metrics import PrometheusMiddleware
from app.metrics import router as metrics_router

_settings = get_settings()
setup_logging(_settings.LOG_LEVEL, json=_settings.JSON_LOG)
logger = logging.getLogger("assetscan")


@asynccontextmanager
async def lifespan(_app: FastAPI):
    yield
    # 关闭所有扫码会话，丢弃仍在进行的结果
    get_session_registry().clear()
    await close_engines()


app = FastAPI(
    title="Asset-Scan",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://127.0.0.1:5173",
        "http://localhost:5173",
        "http://127.0.0.1:8000",
        "http://localhost:8000",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(PrometheusMiddleware)


@app.exception_handler(Exception)
async def _unhandled_exc(_req: Request, exc: Exception):
    logger.exception("UNHANDLED_EXC: %s", exc)
    return JSONResponse(status_code=500, content={"detail": "INTERNAL_ERROR"})


@app.exception_handler(RequestValidationError)
async def _validation_exc(_req: Request, exc: RequestValidationError):
    safe = exc.errors()
    return JSONResponse(status_code=422, content={"detail": safe})


@app.exception_handler(HTTPException)
async def _http_exc(_req: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


# ===========================
#          挂载路由
# ===========================
app.include_router(scanner_router)
app.include_router(scanner_sessions_router)

# 观测
app.include_router(metrics_router)


@app.get("/")
async def root():
    return {"name": "Asset-Scan", "version": "1.0.0"}


@app.get("/ping")
async def ping():
    return {"status": "ok"}


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}
