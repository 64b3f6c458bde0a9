"""分享文件路由：上传、列表、详情、公开分享页、下载、更新、可见性切换与删除。

路由层只负责参数解析与响应封装，权限与校验全部交给 ``FileLifecycleService``。
"""

from __future__ import annotations

import mimetypes
from datetime import datetime
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.packages.fileshare.api.v1.schemas.files import (
    FileDeletionResponse,
    FileDetailResponse,
    FileListResponse,
    FileUpdateBody,
)
from app.packages.fileshare.core.dependencies import get_db, get_file_service, get_requester
from app.packages.fileshare.core.enums import ListScopeEnum, SortOrderEnum
from app.packages.fileshare.core.responses import create_response
from app.packages.fileshare.core.timezone import now as tz_now
from app.packages.fileshare.services.access_policy import Requester
from app.packages.fileshare.services.file_serializer import serialize_file
from app.packages.fileshare.services.file_service import FileLifecycleService

router = APIRouter(prefix="/files", tags=["files"])

_GENERIC_MIME = "application/octet-stream"


def _resolve_mime(upload: UploadFile) -> Optional[str]:
    declared = (upload.content_type or "").strip().lower()
    if declared and declared != _GENERIC_MIME:
        return declared
    guessed, _ = mimetypes.guess_type(upload.filename or "")
    return guessed or declared or None


def _content_disposition(filename: str) -> str:
    quoted = quote(filename)
    if quoted != filename:
        return f"attachment; filename*=utf-8''{quoted}"
    return f'attachment; filename="{filename}"'


@router.post("", response_model=FileDetailResponse, status_code=status.HTTP_201_CREATED)
def upload_file(
    file: UploadFile = File(...),
    is_public: bool = Form(True),
    expires_at: Optional[datetime] = Form(None),
    db: Session = Depends(get_db),
    requester: Optional[Requester] = Depends(get_requester),
    service: FileLifecycleService = Depends(get_file_service),
) -> FileDetailResponse:
    now = tz_now()
    # 多读一个字节用于判断是否超限
    content = file.file.read(service.settings.max_upload_bytes + 1)
    record = service.create(
        db,
        content=content,
        original_name=file.filename or "",
        declared_mime_type=_resolve_mime(file),
        is_public=is_public,
        expires_at=expires_at,
        owner_id=requester.id if requester else None,
        now=now,
    )
    data = serialize_file(record, requester, now, service.settings)
    return create_response("文件上传成功", data, status.HTTP_201_CREATED)


@router.get("", response_model=FileListResponse)
def list_files(
    scope: ListScopeEnum = Query(ListScopeEnum.PUBLIC, description="mine=我的文件, public=公开文件"),
    type: Optional[str] = Query(None, description="文件类型：image / video"),
    is_public: Optional[bool] = Query(None, description="仅在 scope=mine 时生效"),
    search: Optional[str] = Query(None, description="按原始文件名模糊匹配"),
    include_expired: bool = Query(False, description="仅在 scope=mine 时生效"),
    sort_by: str = Query("created_at"),
    sort_order: str = Query(SortOrderEnum.DESC.value),
    page: int = Query(1, description="页码，从 1 开始"),
    per_page: Optional[int] = Query(None, description="每页数量，超出上限时按上限处理"),
    db: Session = Depends(get_db),
    requester: Optional[Requester] = Depends(get_requester),
    service: FileLifecycleService = Depends(get_file_service),
) -> FileListResponse:
    now = tz_now()
    result = service.list_files(
        db,
        requester,
        scope=scope,
        type=type,
        is_public=is_public,
        search=search,
        include_expired=include_expired,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        per_page=per_page,
        now=now,
    )
    data = {
        "items": [serialize_file(item, requester, now, service.settings) for item in result.items],
        "total": result.total,
        "page": result.page,
        "per_page": result.per_page,
        "last_page": result.last_page,
    }
    return create_response("获取文件列表成功", data)


@router.get("/public/{share_id}", response_model=FileDetailResponse)
def get_public_file(
    share_id: str,
    db: Session = Depends(get_db),
    requester: Optional[Requester] = Depends(get_requester),
    service: FileLifecycleService = Depends(get_file_service),
) -> FileDetailResponse:
    now = tz_now()
    record = service.get_public(db, share_id, now=now)
    return create_response("获取文件成功", serialize_file(record, requester, now, service.settings))


@router.get("/download/{share_id}")
def download_file(
    share_id: str,
    db: Session = Depends(get_db),
    requester: Optional[Requester] = Depends(get_requester),
    service: FileLifecycleService = Depends(get_file_service),
) -> StreamingResponse:
    result = service.download(db, share_id, requester)
    headers = {
        "Content-Disposition": _content_disposition(result.filename),
        "Content-Length": str(result.size),
    }
    return StreamingResponse(result.chunks, media_type=result.mime_type, headers=headers)


@router.get("/{file_id}", response_model=FileDetailResponse)
def get_file(
    file_id: int,
    db: Session = Depends(get_db),
    requester: Optional[Requester] = Depends(get_requester),
    service: FileLifecycleService = Depends(get_file_service),
) -> FileDetailResponse:
    now = tz_now()
    record = service.get(db, file_id, requester, now=now)
    return create_response("获取文件成功", serialize_file(record, requester, now, service.settings))


@router.put("/{file_id}", response_model=FileDetailResponse)
def update_file(
    file_id: int,
    payload: FileUpdateBody,
    db: Session = Depends(get_db),
    requester: Optional[Requester] = Depends(get_requester),
    service: FileLifecycleService = Depends(get_file_service),
) -> FileDetailResponse:
    now = tz_now()
    record = service.update(db, file_id, requester, payload.model_dump(exclude_unset=True), now=now)
    return create_response("文件信息更新成功", serialize_file(record, requester, now, service.settings))


@router.post("/{file_id}/toggle-visibility", response_model=FileDetailResponse)
def toggle_visibility(
    file_id: int,
    db: Session = Depends(get_db),
    requester: Optional[Requester] = Depends(get_requester),
    service: FileLifecycleService = Depends(get_file_service),
) -> FileDetailResponse:
    now = tz_now()
    record = service.toggle_visibility(db, file_id, requester)
    msg = "文件已设为公开" if record.is_public else "文件已设为私有"
    return create_response(msg, serialize_file(record, requester, now, service.settings))


@router.delete("/{file_id}", response_model=FileDeletionResponse)
def delete_file(
    file_id: int,
    db: Session = Depends(get_db),
    requester: Optional[Requester] = Depends(get_requester),
    service: FileLifecycleService = Depends(get_file_service),
) -> FileDeletionResponse:
    service.delete(db, file_id, requester)
    return create_response("文件删除成功", {"id": file_id})
