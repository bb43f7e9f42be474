# app/adapters/sqla_store.py
from __future__ import annotations

import logging
from typing import Any, List, Mapping, Optional

import sqlalchemy as sa
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.base import Base, init_models
from app.domain.ports import Row, StoreError

log = logging.getLogger("assetscan.store")


def _error_message(e: SQLAlchemyError) -> str:
    # DBAPI 异常优先：保留驱动原始报错（例如唯一约束冲突的说明）
    orig = getattr(e, "orig", None)
    if orig is not None and str(orig).strip():
        return str(orig).strip()
    return str(e).strip()


class SqlAlchemyStore:
    """
    AssetStore 的 SQLAlchemy 实现。

    - 每次操作单独开一个短生命周期 AsyncSession（自带 begin/commit），
      因此解析器的多路载体查询可以 asyncio.gather 并发执行
    - 表通过 Base.metadata 按名查找，不依赖具体 ORM 类
    """

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]) -> None:
        init_models()
        self._maker = session_maker

    def _table(self, name: str) -> sa.Table:
        try:
            return Base.metadata.tables[str(name)]
        except KeyError:
            raise StoreError(f"unknown table: {name}") from None

    @staticmethod
    def _where(table: sa.Table, filters: Mapping[str, Any]) -> List[Any]:
        conds: List[Any] = []
        for col, val in filters.items():
            c = table.c[col]
            conds.append(c.is_(None) if val is None else c == val)
        return conds

    async def find_one(self, table: str, filters: Mapping[str, Any]) -> Optional[Row]:
        rows = await self.find_many(table, filters, limit=1)
        return rows[0] if rows else None

    async def find_many(
        self,
        table: str,
        filters: Mapping[str, Any],
        *,
        limit: Optional[int] = None,
    ) -> List[Row]:
        t = self._table(table)
        stmt = sa.select(t).where(*self._where(t, filters)).order_by(t.c.id.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        try:
            async with self._maker() as session:
                res = await session.execute(stmt)
                return [dict(m) for m in res.mappings().all()]
        except SQLAlchemyError as e:
            log.warning("find_many(%s) failed: %s", table, e)
            raise StoreError(_error_message(e)) from e

    async def insert(self, table: str, row: Mapping[str, Any]) -> Row:
        t = self._table(table)
        stmt = sa.insert(t).values(**dict(row)).returning(*t.c)
        try:
            async with self._maker() as session:
                async with session.begin():
                    res = await session.execute(stmt)
                    return dict(res.mappings().one())
        except SQLAlchemyError as e:
            log.warning("insert(%s) failed: %s", table, e)
            raise StoreError(_error_message(e)) from e

    async def update(
        self,
        table: str,
        filters: Mapping[str, Any],
        patch: Mapping[str, Any],
    ) -> int:
        t = self._table(table)
        stmt = sa.update(t).where(*self._where(t, filters)).values(**dict(patch))
        try:
            async with self._maker() as session:
                async with session.begin():
                    res = await session.execute(stmt)
                    return int(res.rowcount or 0)
        except SQLAlchemyError as e:
            log.warning("update(%s) failed: %s", table, e)
            raise StoreError(_error_message(e)) from e
