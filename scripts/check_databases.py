#!/usr/bin/env python3
"""
Dependency health check script for authgate
Verifies the database and the notification service are reachable.
"""

import asyncio
import sys
from typing import Dict

from authgate.common.config import settings
from authgate.common.database import db_manager
from authgate.domains.notification import get_notification_client

# Color codes for terminal output
GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
RESET = "\033[0m"


class DependencyChecker:
    def __init__(self):
        self.results: Dict[str, bool] = {}

    async def check_database(self) -> bool:
        """Check the configured database and its tables"""
        try:
            await db_manager.initialize()
        except RuntimeError as e:
            print(f"{RED}✗{RESET} {settings.database_type}: {e}")
            return False

        ok = await db_manager.ping()
        await db_manager.dispose()
        if ok:
            print(f"{GREEN}✓{RESET} {settings.database_type}: Connected, tables ready")
        else:
            print(f"{RED}✗{RESET} {settings.database_type}: ping failed")
        return ok

    async def check_notification_service(self) -> bool:
        """Check the outbound email service"""
        if await get_notification_client().check_health():
            print(f"{GREEN}✓{RESET} Notification service: {settings.notification_service_url}")
            return True
        if settings.skip_notification_health_check:
            print(f"{YELLOW}⚠{RESET} Notification service unreachable (check skipped at startup)")
            return True
        print(f"{RED}✗{RESET} Notification service: {settings.notification_service_url} unreachable")
        return False

    async def run_all_checks(self) -> bool:
        print("\n🔍 Checking authgate dependencies...\n")
        self.results["database"] = await self.check_database()
        self.results["notification"] = await self.check_notification_service()

        passed = sum(self.results.values())
        total = len(self.results)
        print(f"\n{passed}/{total} checks passed\n")
        return passed == total


async def main():
    checker = DependencyChecker()
    ok = await checker.run_all_checks()
    sys.exit(0 if ok else 1)


if __name__ == "__main__":
    asyncio.run(main())
