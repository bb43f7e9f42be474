# create_tables.py
import asyncio

from app.db import Base, init_models
from app.db.session import close_engines, get_engine


async def main() -> None:
    print("正在创建所有数据库表...")

    # 导入所有模型，确保它们的元数据被注册
    init_models()

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await close_engines()

    print("所有数据库表创建完成！")


if __name__ == "__main__":
    asyncio.run(main())
