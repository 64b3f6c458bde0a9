"""异常处理模块：定义统一的业务异常与响应格式。

文件生命周期中的每一类失败都对应一个固定的异常类型与 HTTP 状态码，
调用方（HTTP 层）据此做确定性的映射，而不是解析错误文本。
"""

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse

from .logger import logger
from .responses import create_response


class AppException(HTTPException):
    """携带统一响应结构的业务异常，方便在全局处理中转换响应体。"""

    def __init__(self, msg: str, code: int = status.HTTP_400_BAD_REQUEST, data=None) -> None:
        super().__init__(status_code=code, detail=msg)
        self.data = data


class FileShareError(AppException):
    """文件分享领域异常基类，子类固定自身的默认状态码与提示语。"""

    default_code = status.HTTP_400_BAD_REQUEST
    default_msg = "请求处理失败"

    def __init__(self, msg: str | None = None, code: int | None = None, data=None) -> None:
        super().__init__(msg or self.default_msg, code or self.default_code, data)


class FileValidationError(FileShareError):
    """上传或更新参数不合法（类型、大小、名称、过期时间），用户可自行修正。"""

    default_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    default_msg = "参数校验失败"


class AccessDeniedError(FileShareError):
    """无权访问。读取路径上以 404 呈现，避免泄露文件是否存在。"""

    default_code = status.HTTP_403_FORBIDDEN
    default_msg = "无权操作该文件"

    @classmethod
    def hidden(cls) -> "AccessDeniedError":
        return cls("文件不存在或无权访问", status.HTTP_404_NOT_FOUND)


class FileNotFoundInStoreError(FileShareError):
    default_code = status.HTTP_404_NOT_FOUND
    default_msg = "文件不存在或不可访问"


class FileExpiredError(FileShareError):
    """文件已过期，对应 HTTP 410 Gone。"""

    default_code = status.HTTP_410_GONE
    default_msg = "文件已过期，无法访问"


class StorageError(FileShareError):
    """Blob 存储读写失败，调用方可重试。"""

    default_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_msg = "文件存储服务暂不可用"


class BlobNotFoundError(StorageError):
    default_code = status.HTTP_404_NOT_FOUND
    default_msg = "物理文件不存在"


class DuplicateShareIdError(FileShareError):
    """分享 ID 与已有记录冲突；仅在内部用于触发重新生成。"""

    default_code = status.HTTP_409_CONFLICT
    default_msg = "分享 ID 冲突"


class ConsistencyError(FileShareError):
    """记录与物理文件删除只完成了一半，需要人工介入，不自动重试。"""

    default_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_msg = "文件删除未完成，记录与存储状态不一致"


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:  # pragma: no cover - framework glue
    """将 FastAPI 的 ``HTTPException`` 转换为统一响应格式。"""
    payload = create_response(exc.detail, getattr(exc, "data", None), exc.status_code)
    return JSONResponse(status_code=exc.status_code, content=payload, headers=getattr(exc, "headers", None))


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:  # pragma: no cover - framework glue
    """兜底处理：将未捕获异常转换为标准的 500 响应结构。"""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    payload = create_response("服务器内部错误", None, status.HTTP_500_INTERNAL_SERVER_ERROR)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=payload)
