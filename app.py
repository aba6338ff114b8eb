from fastapi import FastAPI, Request
import uvicorn

from core.config import settings
from core.exceptions import TranscoderException, handle_exception
from core.logging import get_logger
from middleware import GzipMiddleware
from routers import system_router

logger = get_logger("app")


def create_app() -> FastAPI:
    """建立 FastAPI 應用並掛上 gzip 轉碼中間件"""
    application = FastAPI(title="Response Transcoder")

    application.add_middleware(
        GzipMiddleware,
        minimum_size=settings.GZIP_MINIMUM_COMPRESSIBLE_LENGTH,
    )

    # 註冊為 Exception 處理器，由最外層的 ServerErrorMiddleware 使用，
    # 中間件內拋出的轉碼異常也會經過這裡
    @application.exception_handler(Exception)
    async def server_error_handler(request: Request, exc: Exception):
        if isinstance(exc, TranscoderException):
            logger.warning(f"轉碼異常: {exc.code} - {exc.message}")
        return handle_exception(exc)

    application.include_router(system_router)
    return application


app = create_app()


if __name__ == "__main__":
    uvicorn.run("app:app", host=settings.HOST, port=settings.PORT)
