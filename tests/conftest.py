"""测试配置和 fixtures."""

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel, select

from infoscope.api.backup import get_backup_service
from infoscope.backup.service import BackupService
from infoscope.backup.store import BackupStore
from infoscope.main import app
from infoscope.models.database import insert_default_settings


@pytest_asyncio.fixture
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """创建测试数据库引擎（每个测试独立的 SQLite 文件）."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """创建测试会话工厂（含默认配置）."""
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await insert_default_settings(factory)
    return factory


@pytest.fixture
def store(tmp_path: Path) -> BackupStore:
    """创建测试备份目录."""
    return BackupStore(tmp_path / "backups")


@pytest.fixture
def service(
    session_factory: async_sessionmaker[AsyncSession], store: BackupStore
) -> BackupService:
    """创建备份服务."""
    return BackupService(session_factory, store)


@pytest_asyncio.fixture
async def client(service: BackupService) -> AsyncGenerator[AsyncClient, None]:
    """创建测试用的 HTTP 客户端."""
    app.dependency_overrides[get_backup_service] = lambda: service
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def count_rows(
    session_factory: async_sessionmaker[AsyncSession], model: type[SQLModel]
) -> int:
    """统计表中的行数."""
    async with session_factory() as session:
        return await session.scalar(select(func.count()).select_from(model))


async def fetch_all(
    session_factory: async_sessionmaker[AsyncSession], model: type[SQLModel]
) -> list:
    """读取表中的所有行."""
    async with session_factory() as session:
        result = await session.execute(select(model))
        return list(result.scalars().all())


async def seed(session_factory: async_sessionmaker[AsyncSession], *rows: SQLModel) -> None:
    """写入测试数据."""
    async with session_factory() as session:
        session.add_all(rows)
        await session.commit()
