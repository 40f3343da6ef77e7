"""
authgate - 认证与身份服务
注册、登录、邮箱验证、密码重置与管理员账号管理
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

from authgate.common.config import settings
from authgate.common.database import db_manager
from authgate.common.exceptions import ServiceError
from authgate.common.logging_config import setup_logging

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    "already_exists": 409,
    "not_found": 404,
    "unauthorized": 401,
    "precondition_failed": 400,
    "rate_limited": 429,
    "dependency_unavailable": 503,
    "forbidden": 403,
}


async def bootstrap_admin() -> None:
    from authgate.domains.admin.service import get_admin_service

    async with db_manager.get_session() as session:
        await get_admin_service().ensure_default_admin(
            session,
            username=settings.default_admin_username,
            password=settings.default_admin_password,
            name=settings.default_admin_name,
        )


async def check_notification_service() -> None:
    from authgate.domains.notification import get_notification_client

    if settings.skip_notification_health_check:
        logger.warning("⚠ Notification service health check skipped")
        return
    if not await get_notification_client().check_health():
        raise RuntimeError(
            f"Notification service at {settings.notification_service_url} is not reachable"
        )
    logger.info("✓ Notification service reachable")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    setup_logging(log_level=settings.log_level, log_dir=settings.log_dir)
    logger.info(f"🚀 {settings.app_name} starting ({settings.environment})...")

    await db_manager.initialize()
    await bootstrap_admin()
    await check_notification_service()
    logger.info("✅ Startup completed")

    yield

    logger.info("Application shutting down...")
    await db_manager.dispose()


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        description="Authentication and identity service",
        version=settings.app_version,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        status_code = ERROR_STATUS.get(exc.kind, 500)
        headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
        return JSONResponse(
            status_code=status_code,
            content={"error": exc.kind, "message": exc.message},
            headers=headers,
        )

    @app.get("/health")
    async def health_check():
        """健康检查端点 (含数据库探测)"""
        db_ok = await db_manager.ping()
        return JSONResponse(
            status_code=200 if db_ok else 503,
            content={
                "status": "healthy" if db_ok else "unhealthy",
                "version": settings.app_version,
                "database": "✓ connected" if db_ok else "✗ disconnected",
            },
        )

    @app.get("/health/simple")
    async def health_simple():
        return {"status": "ok"}

    from authgate.domains.auth.api import router as auth_router
    from authgate.domains.user.api import router as user_router
    from authgate.domains.admin.api import router as admin_router

    app.include_router(auth_router, prefix="/api/v1/auth", tags=["auth"])
    app.include_router(user_router, prefix="/api/v1/users", tags=["users"])
    app.include_router(admin_router, prefix="/api/v1/admin", tags=["admin"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "authgate.main:app",
        host="0.0.0.0",
        port=8888,
        reload=settings.debug,
        log_level="info"
    )
