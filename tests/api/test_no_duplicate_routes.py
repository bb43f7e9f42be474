import pytest
from fastapi import FastAPI

from app.main import app

pytestmark = pytest.mark.grp_api

# —— 内部路由白名单（FastAPI/Starlette 自带）——
_INTERNAL_PATH_PREFIXES = ("/openapi.json", "/docs", "/redoc", "/static")


def _iter_routes(app: FastAPI):
    for r in app.routes:
        methods = getattr(r, "methods", None) or []
        path = getattr(r, "path", getattr(r, "path_format", None))
        name = getattr(r, "name", None)
        endpoint = getattr(r, "endpoint", None)
        yield r, methods, path, name, endpoint


def _is_internal(path: str | None) -> bool:
    if not path:
        return True
    return any(path.startswith(p) for p in _INTERNAL_PATH_PREFIXES)


def test_no_conflicting_method_path_pairs():
    """
    允许同一 (METHOD, PATH) 被重复注册到“同一个 endpoint”（典型：多次 include_router），
    但禁止被注册到“不同 endpoint”（风险：阴影路由/行为分叉）。
    """
    mapping: dict[tuple[str, str], set[int]] = {}
    for _r, methods, path, _name, endpoint in _iter_routes(app):
        if _is_internal(path):
            continue
        for m in methods:
            key = (m.upper(), path)
            mapping.setdefault(key, set()).add(id(endpoint))

    conflicts = {key: ids for key, ids in mapping.items() if len(ids) > 1}
    assert not conflicts, (
        "Conflicting (METHOD, PATH) routes found (mapped to different endpoints): "
        f"{sorted(conflicts.keys())}"
    )


def test_route_names_unique_or_same_endpoint():
    """
    允许重复的 route name，只要它们指向同一个 endpoint。
    若同名路由指向不同 endpoint，则判定为冲突。
    """
    name_to_eps: dict[str, set[int]] = {}
    for _r, _methods, path, name, endpoint in _iter_routes(app):
        if not name or _is_internal(path):
            continue
        name_to_eps.setdefault(name, set()).add(id(endpoint))

    conflicts = {name: ids for name, ids in name_to_eps.items() if len(ids) > 1}
    assert (
        not conflicts
    ), f"Duplicate route names mapped to different endpoints: {sorted(conflicts.keys())}"


def test_scanner_routes_mounted():
    """扫码入口必须全部挂载（前端按固定路径调用）"""
    expected = {
        ("POST", "/scanner/resolve"),
        ("POST", "/scanner/action"),
        ("POST", "/scanner/undo"),
        ("POST", "/scanner/sessions"),
        ("GET", "/scanner/sessions/{sid}"),
        ("DELETE", "/scanner/sessions/{sid}"),
        ("PUT", "/scanner/sessions/{sid}/mode"),
        ("PUT", "/scanner/sessions/{sid}/target-location"),
        ("POST", "/scanner/sessions/{sid}/scan"),
        ("POST", "/scanner/sessions/{sid}/undo"),
        ("GET", "/metrics"),
        ("GET", "/healthz"),
    }
    # 以 OpenAPI 为准：include_router 挂进来的路由都会出现在 paths 里
    paths = app.openapi()["paths"]
    mounted = {(m.upper(), path) for path, ops in paths.items() for m in ops}
    assert expected <= mounted, sorted(expected - mounted)
