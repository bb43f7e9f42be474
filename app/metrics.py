# app/metrics.py
from __future__ import annotations

import os
import time

from fastapi import APIRouter
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware

try:
    # multiprocess 支持（需在进程启动前设置好 PROMETHEUS_MULTIPROC_DIR）
    from prometheus_client import REGISTRY, CollectorRegistry, multiprocess

    _HAVE_MP = True
except ImportError:  # 无 multiprocess 环境
    from prometheus_client import REGISTRY

    _HAVE_MP = False

# 扫码链路指标
SCAN_RESOLVE = Counter("scanner_resolve_total", "Scanned code resolutions", ["kind"])
SCAN_ACTIONS = Counter("scanner_scans_total", "Scans handled by sessions", ["mode", "status"])
SCAN_SUPPRESSED = Counter(
    "scanner_scans_suppressed_total", "Scans discarded before resolution", ["reason"]
)

http_requests_total = Counter("http_requests_total", "HTTP requests", ["method", "path", "code"])
http_request_duration = Histogram(
    "http_request_duration_seconds", "HTTP request duration seconds", ["method", "path"]
)

router = APIRouter()


class PrometheusMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start
        # 用路由模板而不是实际路径，避免 /scanner/sessions/{sid} 把标签撑爆
        route = request.scope.get("route")
        path = getattr(route, "path", request.url.path)
        http_requests_total.labels(request.method, path, str(response.status_code)).inc()
        http_request_duration.labels(request.method, path).observe(elapsed)
        return response


@router.get("/metrics")
def metrics() -> Response:
    """
    在单进程模式下直接导出默认 REGISTRY；
    在多进程模式下，创建临时 CollectorRegistry，并让 MultiProcessCollector 合并各分片。
    """
    if _HAVE_MP and os.environ.get("PROMETHEUS_MULTIPROC_DIR"):
        registry = CollectorRegistry()
        multiprocess.MultiProcessCollector(registry)
        payload = generate_latest(registry)
    else:
        payload = generate_latest(REGISTRY)
    return Response(content=payload, media_type=CONTENT_TYPE_LATEST)
