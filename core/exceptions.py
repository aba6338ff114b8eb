"""
統一異常處理
定義轉碼器自訂異常類別和錯誤響應格式
"""

from typing import Optional, Dict, Any
from fastapi import HTTPException
from fastapi.responses import JSONResponse


class TranscoderException(Exception):
    """轉碼器基礎異常類別"""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """轉換為字典格式"""
        return {
            "success": False,
            "error": {
                "code": self.code,
                "message": self.message,
                "details": self.details,
            }
        }

    def to_response(self) -> JSONResponse:
        """轉換為 JSON 響應"""
        return JSONResponse(
            status_code=self.status_code,
            content=self.to_dict(),
        )


# ==================== 串流相關異常 ====================

class StreamContractError(TranscoderException):
    """下游執行後，擷取的回應串流已不可讀或不可定位"""

    def __init__(self, readable: bool, seekable: bool):
        super().__init__(
            message="回應串流已被替換為不可讀或不可定位的串流",
            code="STREAM_CONTRACT_VIOLATION",
            status_code=500,
            details={"readable": readable, "seekable": seekable},
        )


class ResponseAlreadyStartedError(TranscoderException):
    """回應已開始傳送，無法再修改"""

    def __init__(self, message: str = "回應已開始傳送"):
        super().__init__(
            message=message,
            code="RESPONSE_ALREADY_STARTED",
            status_code=500,
        )


class RequestCancelledError(TranscoderException):
    """請求已被客戶端取消"""

    def __init__(self, protocol: str = ""):
        super().__init__(
            message="請求已被取消",
            code="REQUEST_CANCELLED",
            status_code=499,
            details={"protocol": protocol},
        )


# ==================== 配置相關異常 ====================

class ConfigurationError(TranscoderException):
    """配置值無效"""

    def __init__(self, field: str, message: str):
        super().__init__(
            message=f"配置 '{field}' 無效: {message}",
            code="CONFIGURATION_ERROR",
            status_code=500,
            details={"field": field},
        )


# ==================== 異常處理器 ====================

def create_error_response(
    code: str,
    message: str,
    status_code: int = 500,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """創建標準錯誤響應"""
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "error": {
                "code": code,
                "message": message,
                "details": details or {},
            }
        }
    )


def handle_exception(exc: Exception) -> JSONResponse:
    """
    統一異常處理

    將各種異常轉換為標準 JSON 響應
    """
    if isinstance(exc, TranscoderException):
        return exc.to_response()

    if isinstance(exc, HTTPException):
        return create_error_response(
            code="HTTP_ERROR",
            message=exc.detail,
            status_code=exc.status_code,
        )

    import logging
    logger = logging.getLogger("core.exceptions")
    logger.exception(f"未處理的異常: {exc}")

    return create_error_response(
        code="INTERNAL_ERROR",
        message="內部伺服器錯誤",
        status_code=500,
    )
