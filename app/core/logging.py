# app/core/logging.py
import logging
import sys
from contextvars import ContextVar

# 当前请求所属的扫码会话（无会话时为 "-"），由会话路由设置
scan_session_id: ContextVar[str] = ContextVar("scan_session_id", default="-")

# 本服务的 logger 分层：assetscan.<组件>
COMPONENT_LOGGERS = (
    "assetscan.resolver",
    "assetscan.actions",
    "assetscan.undo",
    "assetscan.session",
    "assetscan.store",
    "assetscan.models",
)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [scan=%(scan_session)s] %(message)s"


class ScanSessionFilter(logging.Filter):
    """给每条记录补上 scan_session 字段，供 LOG_FORMAT 使用"""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "scan_session"):
            record.scan_session = scan_session_id.get()
        return True


def bind_scan_session(sid: str) -> None:
    scan_session_id.set(sid)


def setup_logging(level: str = "INFO", json: bool = False) -> None:
    """
    极简统一日志：
    - 根 logger 设级别
    - 单一 stdout handler，避免重复输出；每行带扫码会话 id
    - 预留 json 开关（暂不实现）
    """
    level = level.upper()
    root = logging.getLogger()
    root.setLevel(level)

    # 清已有 handlers，避免重复
    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(ScanSessionFilter())
    root.addHandler(handler)

    logging.getLogger("uvicorn.access").setLevel(logging.INFO)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if level == "DEBUG" else logging.WARNING
    )

    # 扫码链路：父 logger 跟随根级别，子 logger 不单独设级别、只向上传播
    logging.getLogger("assetscan").setLevel(level)
    for name in COMPONENT_LOGGERS:
        child = logging.getLogger(name)
        child.setLevel(logging.NOTSET)
        child.propagate = True
