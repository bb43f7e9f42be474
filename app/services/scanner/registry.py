# app/services/scanner/registry.py
from __future__ import annotations

import logging
import time
import uuid
from typing import Callable, Dict, List, Optional, Tuple

from app.services.scanner.session import ScanSession

log = logging.getLogger("assetscan.session")


class ScanSessionRegistry:
    """
    进程内会话表（HTTP 层使用）：session_id → ScanSession。
    会话不持久化，进程重启即失效。

    ttl_s：空闲超过该秒数的会话在下一次 open() 时被回收（None / 0 表示不回收）；
    get() 视为一次访问。动作进行中的会话不回收。
    """

    def __init__(
        self,
        ttl_s: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sessions: Dict[str, ScanSession] = {}
        self._touched: Dict[str, float] = {}
        self._ttl_s = ttl_s or None
        self._clock = clock

    def open(self, session: ScanSession) -> Tuple[str, ScanSession]:
        self.evict_idle()
        sid = uuid.uuid4().hex
        self._sessions[sid] = session
        self._touched[sid] = self._clock()
        log.info("scan session %s opened (mode=%s)", sid, session.mode)
        return sid, session

    def get(self, sid: str) -> ScanSession:
        """不存在时抛 KeyError"""
        session = self._sessions[sid]
        self._touched[sid] = self._clock()
        return session

    def close(self, sid: str) -> None:
        session = self._sessions.pop(sid)
        self._touched.pop(sid, None)
        session.close()
        log.info("scan session %s closed", sid)

    def evict_idle(self) -> List[str]:
        """回收空闲超时的会话，返回被回收的 session_id"""
        if self._ttl_s is None:
            return []
        deadline = self._clock() - self._ttl_s
        expired = [
            sid
            for sid, ts in self._touched.items()
            if ts < deadline and not self._sessions[sid].is_processing
        ]
        for sid in expired:
            session = self._sessions.pop(sid)
            del self._touched[sid]
            session.close()
            log.info("scan session %s evicted after %.0fs idle", sid, self._ttl_s)
        return expired

    def clear(self) -> None:
        for session in self._sessions.values():
            session.close()
        self._sessions.clear()
        self._touched.clear()
