"""备份 API."""

from datetime import datetime

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from fastapi.responses import FileResponse, Response
from pydantic import BaseModel

from infoscope.backup.errors import (
    BackupNotFoundError,
    ImportAbortedError,
    InvalidBackupNameError,
    SnapshotDecodeError,
)
from infoscope.backup.importer import ImportResults
from infoscope.backup.service import BackupService
from infoscope.backup.snapshot import decode_snapshot, encode_snapshot
from infoscope.config import get_settings

router = APIRouter(prefix="/api/backup", tags=["backup"])


def get_backup_service(request: Request) -> BackupService:
    """获取应用级备份服务（用于依赖注入）."""
    return request.app.state.backup_service


class ImportResponse(BaseModel):
    """导入响应."""

    success: bool
    message: str
    version: str
    stats: dict[str, int]
    warnings: list[str] | None = None


def _import_response(results: ImportResults, message: str) -> ImportResponse:
    return ImportResponse(
        success=True,
        message=message,
        version=results.version,
        stats=results.stats(),
        warnings=results.errors or None,
    )


@router.get("")
async def export_backup(
    service: BackupService = Depends(get_backup_service),
) -> Response:
    """下载当前数据的完整备份."""
    snapshot = await service.export_snapshot()
    filename = f"infoscope_backup_{datetime.now():%Y-%m-%d}.json"
    return Response(
        content=encode_snapshot(snapshot),
        media_type="application/json",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.post("/import", response_model_exclude_none=True)
async def import_backup(
    backup: UploadFile = File(...),
    service: BackupService = Depends(get_backup_service),
) -> ImportResponse:
    """上传并导入备份文件."""
    max_bytes = get_settings().import_max_bytes
    data = await backup.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise HTTPException(status_code=413, detail="备份文件过大")

    try:
        snapshot = decode_snapshot(data)
    except SnapshotDecodeError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    try:
        results = await service.import_snapshot(snapshot)
    except ImportAbortedError as e:
        raise HTTPException(status_code=500, detail="导入失败，未做任何修改") from e

    return _import_response(results, "备份导入成功")


@router.get("/files")
async def list_backup_files(
    service: BackupService = Depends(get_backup_service),
) -> dict:
    """列出备份目录中的文件."""
    return {"files": [f.to_dict() for f in service.list_backups()]}


@router.post("/files")
async def create_backup_file(
    service: BackupService = Depends(get_backup_service),
) -> dict:
    """生成备份并写入备份目录."""
    try:
        name = await service.write_backup()
    except OSError as e:
        raise HTTPException(status_code=500, detail=f"写入备份失败: {e}") from e
    return {"success": True, "filename": name}


@router.get("/files/{name}")
async def download_backup_file(
    name: str,
    service: BackupService = Depends(get_backup_service),
) -> FileResponse:
    """下载备份文件."""
    try:
        path = service.store.path_for(name)
    except InvalidBackupNameError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except BackupNotFoundError as e:
        raise HTTPException(status_code=404, detail="备份文件不存在") from e
    return FileResponse(path, media_type="application/json", filename=path.name)


@router.post("/files/{name}/restore", response_model_exclude_none=True)
async def restore_backup_file(
    name: str,
    service: BackupService = Depends(get_backup_service),
) -> ImportResponse:
    """从备份目录恢复."""
    try:
        results = await service.restore_backup(name)
    except (InvalidBackupNameError, SnapshotDecodeError) as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except BackupNotFoundError as e:
        raise HTTPException(status_code=404, detail="备份文件不存在") from e
    except ImportAbortedError as e:
        raise HTTPException(status_code=500, detail="恢复失败，未做任何修改") from e

    return _import_response(results, "备份已恢复")


@router.delete("/files/{name}")
async def delete_backup_file(
    name: str,
    service: BackupService = Depends(get_backup_service),
) -> dict:
    """删除备份文件."""
    try:
        service.delete_backup(name)
    except InvalidBackupNameError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    except BackupNotFoundError as e:
        raise HTTPException(status_code=404, detail="备份文件不存在") from e
    return {"success": True}


@router.get("/schedule")
async def get_backup_schedule(
    request: Request,
    service: BackupService = Depends(get_backup_service),
) -> dict:
    """获取自动备份配置和调度器状态."""
    config = await service.schedule_config()
    scheduler = getattr(request.app.state, "backup_scheduler", None)
    return {
        **config.to_dict(),
        "state": scheduler.state.value if scheduler else None,
    }
