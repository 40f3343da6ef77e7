#!/usr/bin/env python3
"""
数据库初始化脚本 - 创建所有表并引导默认超级管理员
"""

import asyncio
import sys
from pathlib import Path

# 添加项目根目录到路径
backend_path = Path(__file__).parent.parent
sys.path.insert(0, str(backend_path))

from authgate.common.base import Base
from authgate.common.config import settings
from authgate.common.database import db_manager
from authgate.domains.admin.service import get_admin_service


async def init_database():
    """初始化数据库 - 创建所有表"""
    print(f"🔧 Initializing {settings.database_type} database...")

    # initialize() 会创建缺失的表
    await db_manager.initialize()

    print("✅ All tables created successfully!")
    print("\n📋 Tables:")
    for table in sorted(Base.metadata.tables.keys()):
        print(f"  - {table}")

    async with db_manager.get_session() as session:
        admin = await get_admin_service().ensure_default_admin(
            session,
            username=settings.default_admin_username,
            password=settings.default_admin_password,
            name=settings.default_admin_name,
        )
    if admin:
        print(f"\n👤 Default super admin created: {admin.username}")
    else:
        print("\n👤 Admins already exist, bootstrap skipped")

    await db_manager.dispose()


if __name__ == "__main__":
    asyncio.run(init_database())
