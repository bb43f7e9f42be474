# app/models/enums.py
from __future__ import annotations

from enum import StrEnum


class ScannerMode(StrEnum):
    """
    扫码会话的动作意图（同一会话同一时刻只允许一种）：

    - LOOKUP           只读识别，不落库
    - ASSIGN_LOCATION  分配库位 / 装箱
    - JOB_BOOK         预订到 job（job_booked_assets）
    - JOB_PACK         装车到 job（job_assets_on_job）
    """

    LOOKUP = "lookup"
    ASSIGN_LOCATION = "assign-location"
    JOB_BOOK = "job-book"
    JOB_PACK = "job-pack"


class ActionStatus(StrEnum):
    """
    动作结果：
    - INFO 表示“无需变更”（幂等命中 / 目标保持），与 SUCCESS 区分开，前端据此区分颜色
    """

    SUCCESS = "success"
    ERROR = "error"
    INFO = "info"


class StoreTable(StrEnum):
    """扫码链路读写的表（AssetStore 的表名词汇）"""

    ASSET_TAGS = "asset_tags"
    EQUIPMENTS = "equipments"
    CASES = "cases"
    ARTICLES = "articles"
    LOCATIONS = "locations"
    JOBS = "jobs"
    JOB_BOOKED = "job_booked_assets"
    JOB_PACKED = "job_assets_on_job"
