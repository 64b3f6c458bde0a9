"""日志配置模块：统一控制台/文件输出格式，并为每条日志附带请求 ID 与文件上下文。

业务代码通过 ``extra={"file_id": ..., "share_id": ...}`` 传入文件上下文，
文本格式与 JSON 格式都会输出这些字段，便于按分享 ID 追踪一次上传或下载。
"""

import json
import logging
import logging.config
import sys
from contextvars import ContextVar
from datetime import datetime
from typing import Any, Dict, Optional

from .config import get_settings

CONTEXT_FIELDS = ("file_id", "share_id")
_MISSING = "-"

TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s [rid=%(request_id)s share=%(share_id)s] %(message)s"

_request_id_ctx: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def set_request_id(request_id: Optional[str]) -> None:
    _request_id_ctx.set(request_id)


def get_request_id() -> Optional[str]:
    return _request_id_ctx.get()


class _TZFormatter(logging.Formatter):
    """按配置时区渲染时间戳，未指定 datefmt 时输出毫秒级 ISO-8601。"""

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:  # noqa: N802
        stamp = datetime.fromtimestamp(record.created, get_settings().timezone_info)
        if datefmt:
            return stamp.strftime(datefmt)
        return stamp.isoformat(sep=" ", timespec="milliseconds")


class ColorFormatter(_TZFormatter):
    """终端按日志级别着色；输出被重定向到文件或管道时自动关闭颜色。"""

    RESET = "\033[0m"
    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[1;41m",
    }

    def __init__(self, fmt: str, datefmt: Optional[str] = None, use_colors: Optional[bool] = None) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.use_colors = sys.stderr.isatty() if use_colors is None else use_colors

    def format(self, record: logging.LogRecord) -> str:
        text = super().format(record)
        color = self.LEVEL_COLORS.get(record.levelno) if self.use_colors else None
        return f"{color}{text}{self.RESET}" if color else text


class JsonFormatter(_TZFormatter):
    """每条日志一行 JSON，仅输出实际存在的文件上下文字段。"""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "request_id": getattr(record, "request_id", None),
        }
        for field in CONTEXT_FIELDS:
            value = getattr(record, field, None)
            if value is not None and value != _MISSING:
                payload[field] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class RequestIdFilter(logging.Filter):
    """写入当前请求 ID，并为未携带文件上下文的记录补齐占位值，保证文本格式可渲染。"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = _request_id_ctx.get()
        for field in CONTEXT_FIELDS:
            if not hasattr(record, field):
                setattr(record, field, _MISSING)
        return True


def _handler(settings, formatter: str, **options: Any) -> Dict[str, Any]:
    return {"level": settings.log_level, "formatter": formatter, "filters": ["context"], **options}


def setup_logging() -> None:
    """初始化日志：控制台 + 按天滚动的文件，应用与 uvicorn 日志共用同一套输出。"""
    settings = get_settings()
    settings.log_directory.mkdir(parents=True, exist_ok=True)

    console_formatter = "json" if settings.log_json else "console"
    file_formatter = "json" if settings.log_json else "text"
    shared = {"handlers": ["console", "file"], "level": settings.log_level, "propagate": False}

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {"context": {"()": RequestIdFilter}},
            "formatters": {
                "console": {"()": ColorFormatter, "fmt": TEXT_FORMAT},
                "text": {"()": _TZFormatter, "fmt": TEXT_FORMAT},
                "json": {"()": JsonFormatter},
            },
            "handlers": {
                "console": _handler(settings, console_formatter, **{"class": "logging.StreamHandler"}),
                "file": _handler(
                    settings,
                    file_formatter,
                    **{
                        "class": "logging.handlers.TimedRotatingFileHandler",
                        "filename": str(settings.log_file_path),
                        "when": "midnight",
                        "backupCount": 14,
                        "encoding": "utf-8",
                        "delay": True,
                    },
                ),
            },
            "loggers": {name: dict(shared) for name in ("app", "uvicorn", "uvicorn.error", "uvicorn.access")},
            "root": {"handlers": ["console", "file"], "level": settings.log_level},
        }
    )


logger = logging.getLogger("app")
