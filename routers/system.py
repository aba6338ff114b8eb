"""
系統相關 API 路由
包含狀態檢查與壓縮測試用的範例回應
"""

from fastapi import APIRouter, Query
from fastapi.responses import PlainTextResponse

from core.config import settings
from core.logging import get_logger

logger = get_logger("routers.system")

router = APIRouter(tags=["系統"])

# 範例回應的重複文字
SAMPLE_TEXT = "The quick brown fox jumps over the lazy dog. "


@router.get("/status")
async def get_status():
    """系統狀態檢查"""
    return {
        "status": "running",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT,
        "gzip_minimum_compressible_length": settings.GZIP_MINIMUM_COMPRESSIBLE_LENGTH,
    }


@router.get("/api/sample", response_class=PlainTextResponse)
async def get_sample(size: int = Query(2000, ge=0, le=10_000_000)):
    """
    回傳指定大小的重複文字

    用來手動檢查小回應與壓縮回應兩條路徑
    """
    repeats = size // len(SAMPLE_TEXT) + 1
    return PlainTextResponse((SAMPLE_TEXT * repeats)[:size])
