"""存储后端抽象与实现：统一封装本地与 S3 的对象读写。

上层只按 key 存取字节，不关心物理路径；所有 I/O 失败统一转换为 ``StorageError``，
对象不存在时抛出 ``BlobNotFoundError``。
"""

from __future__ import annotations

from pathlib import Path
from typing import BinaryIO, Iterator, Optional

from fastapi import status

from app.packages.fileshare.core.config import Settings
from app.packages.fileshare.core.enums import StorageTypeEnum
from app.packages.fileshare.core.exceptions import BlobNotFoundError, StorageError
from app.packages.fileshare.core.logger import logger

CHUNK_SIZE = 1024 * 1024


def _iter_stream(handle: BinaryIO, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
    try:
        while True:
            chunk = handle.read(chunk_size)
            if not chunk:
                break
            yield chunk
    finally:
        handle.close()


class BlobStore:
    """Blob 存储接口。"""

    def put(self, key: str, data: bytes, *, content_type: Optional[str] = None) -> None:
        raise NotImplementedError

    def get(self, key: str) -> Iterator[bytes]:
        raise NotImplementedError

    def delete(self, key: str) -> None:
        raise NotImplementedError

    def locate(self, key: str) -> str:
        """返回用于本地预览的路径或 URL，不作为权威来源。"""
        raise NotImplementedError


# ------------------------------------------
# 本地文件系统实现
# ------------------------------------------


class LocalBlobStore(BlobStore):
    def __init__(self, root: str | Path):
        self.root = Path(root).resolve()
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:  # pragma: no cover - 极端情况下可能失败
            raise StorageError(f"无法创建本地存储目录: {exc}") from exc

    # 统一的安全路径拼接，防止路径遍历
    def _resolve(self, key: str) -> Path:
        rel = (key or "").strip().lstrip("/")
        if not rel:
            raise StorageError("非法的存储 key", status.HTTP_400_BAD_REQUEST)
        candidate = (self.root / rel).resolve()
        try:
            candidate.relative_to(self.root)
        except ValueError as exc:
            raise StorageError("非法路径: 越权访问", status.HTTP_400_BAD_REQUEST) from exc
        return candidate

    def put(self, key: str, data: bytes, *, content_type: Optional[str] = None) -> None:
        target = self._resolve(key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "wb") as f:
                f.write(data)
        except OSError as exc:
            logger.exception("Local put failed for key %s", key)
            raise StorageError(f"文件写入失败: {exc}") from exc

    def get(self, key: str) -> Iterator[bytes]:
        target = self._resolve(key)
        if not target.is_file():
            raise BlobNotFoundError()
        try:
            handle = open(target, "rb")
        except OSError as exc:
            raise StorageError(f"文件读取失败: {exc}") from exc
        return _iter_stream(handle)

    def delete(self, key: str) -> None:
        target = self._resolve(key)
        if not target.is_file():
            raise BlobNotFoundError()
        try:
            target.unlink()
        except OSError as exc:
            logger.exception("Local delete failed for key %s", key)
            raise StorageError(f"文件删除失败: {exc}") from exc

    def locate(self, key: str) -> str:
        return str(self._resolve(key))


# ------------------------------------------
# S3 实现（boto3）
# ------------------------------------------


class S3BlobStore(BlobStore):
    def __init__(
        self,
        *,
        bucket: str,
        region: Optional[str],
        access_key_id: Optional[str],
        secret_access_key: Optional[str],
        prefix: Optional[str] = None,
        endpoint_url: Optional[str] = None,
        client=None,
    ):
        self.bucket = bucket
        self.prefix = (prefix or "").strip("/")
        if client is None:
            import boto3

            client = boto3.client(
                "s3",
                region_name=region,
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key,
                endpoint_url=endpoint_url,
            )
        self._client = client

    # 拼接基于 prefix 的对象 key
    def _join_key(self, key: str) -> str:
        rel = key.lstrip("/")
        if self.prefix:
            return f"{self.prefix}/{rel}"
        return rel

    @staticmethod
    def _is_missing(exc: Exception) -> bool:
        response = getattr(exc, "response", None) or {}
        code = str(response.get("Error", {}).get("Code", ""))
        return code in {"NoSuchKey", "404", "NotFound"}

    def put(self, key: str, data: bytes, *, content_type: Optional[str] = None) -> None:
        from botocore.exceptions import BotoCoreError, ClientError

        extra = {"ContentType": content_type} if content_type else {}
        try:
            self._client.put_object(Bucket=self.bucket, Key=self._join_key(key), Body=data, **extra)
        except (BotoCoreError, ClientError) as exc:
            logger.exception("S3 put failed for key %s", key)
            raise StorageError(f"S3 上传失败: {exc}") from exc

    def get(self, key: str) -> Iterator[bytes]:
        from botocore.exceptions import BotoCoreError, ClientError

        try:
            obj = self._client.get_object(Bucket=self.bucket, Key=self._join_key(key))
        except ClientError as exc:
            if self._is_missing(exc):
                raise BlobNotFoundError() from exc
            raise StorageError(f"S3 读取失败: {exc}") from exc
        except BotoCoreError as exc:
            raise StorageError(f"S3 读取失败: {exc}") from exc
        return _iter_stream(obj["Body"])

    def delete(self, key: str) -> None:
        from botocore.exceptions import BotoCoreError, ClientError

        object_key = self._join_key(key)
        try:
            # S3 删除不存在的对象不会报错，先探测一次以区分“已不存在”
            self._client.head_object(Bucket=self.bucket, Key=object_key)
            self._client.delete_object(Bucket=self.bucket, Key=object_key)
        except ClientError as exc:
            if self._is_missing(exc):
                raise BlobNotFoundError() from exc
            logger.exception("S3 delete failed for key %s", key)
            raise StorageError(f"S3 删除失败: {exc}") from exc
        except BotoCoreError as exc:
            raise StorageError(f"S3 删除失败: {exc}") from exc

    def locate(self, key: str) -> str:
        return self._client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": self._join_key(key)},
            ExpiresIn=1800,
        )


def build_blob_store(settings: Settings) -> BlobStore:
    """根据配置构建存储后端。"""
    storage_type = (settings.storage_type or "").strip().upper()
    if storage_type == StorageTypeEnum.LOCAL.value:
        return LocalBlobStore(settings.storage_local_directory)
    if storage_type == StorageTypeEnum.S3.value:
        if not settings.storage_s3_bucket:
            raise StorageError("S3 存储缺少 bucket 配置", status.HTTP_500_INTERNAL_SERVER_ERROR)
        return S3BlobStore(
            bucket=settings.storage_s3_bucket,
            region=settings.storage_s3_region,
            access_key_id=settings.storage_s3_access_key_id,
            secret_access_key=settings.storage_s3_secret_access_key,
            prefix=settings.storage_s3_prefix,
            endpoint_url=settings.storage_s3_endpoint_url,
        )
    raise StorageError(f"不支持的存储类型: {settings.storage_type}", status.HTTP_500_INTERNAL_SERVER_ERROR)
