"""业务包契约：主应用只通过这里声明的入口与业务包交互。"""

from __future__ import annotations

from dataclasses import dataclass
from logging import Logger
from typing import Any, Awaitable, Callable

from fastapi import APIRouter
from starlette.requests import Request
from starlette.responses import Response

ExceptionHandler = Callable[[Request, Exception], Awaitable[Response]]


@dataclass(frozen=True)
class AppPackage:
    """一个可挂载的业务包：路由、配置、日志、建表与统一异常处理。"""

    name: str
    api_router: APIRouter
    get_settings: Callable[[], Any]
    setup_logging: Callable[[], None]
    logger: Logger
    init_db: Callable[[], None]
    create_response: Callable[..., dict]
    http_exception_handler: ExceptionHandler
    generic_exception_handler: ExceptionHandler
    description: str = ""
