"""Infoscope 主应用入口."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from infoscope.api import backup
from infoscope.backup.scheduler import BackupScheduler
from infoscope.backup.service import BackupService
from infoscope.backup.store import BackupStore
from infoscope.config import get_settings
from infoscope.core.refresh import FeedRefreshDispatcher
from infoscope.models.database import async_session_maker, close_db, init_db

# 配置日志
logging.basicConfig(
    level=get_settings().log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """应用生命周期管理."""
    app_settings = get_settings()

    logger.info("正在初始化数据库...")
    await init_db(app_settings.database_url)

    dispatcher = FeedRefreshDispatcher()
    dispatcher.start()

    service = BackupService(
        async_session_maker(),
        BackupStore(app_settings.backup_path),
        refresh_dispatcher=dispatcher,
    )
    app.state.refresh_dispatcher = dispatcher
    app.state.backup_service = service

    logger.info("正在启动自动备份...")
    scheduler = BackupScheduler(service, app_settings.backup_poll_seconds)
    scheduler.start()
    app.state.backup_scheduler = scheduler

    logger.info(f"Infoscope 启动完成，备份目录: {app_settings.backup_path}")
    yield

    logger.info("正在关闭...")
    await scheduler.shutdown()
    await dispatcher.stop()
    await close_db()
    logger.info("Infoscope 已关闭")


app = FastAPI(
    title="Infoscope",
    description="RSS 聚合器 - 数据备份与恢复",
    version="0.1.0",
    lifespan=lifespan,
)

# CORS 配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(backup.router)


@app.get("/")
async def root() -> dict:
    """根路径."""
    return {
        "name": "Infoscope",
        "version": "0.1.0",
        "description": "RSS 聚合器",
    }


@app.get("/health")
async def health() -> dict:
    """健康检查."""
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "infoscope.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
