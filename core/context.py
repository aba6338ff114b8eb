"""
請求描述與回應上下文
由宿主框架提供，轉碼器只透過這裡讀取協商資訊並修改回應標頭
"""

import asyncio
from contextlib import contextmanager
from typing import Iterable, Iterator, List, Optional, Tuple

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import Scope

from core.exceptions import ResponseAlreadyStartedError


def parse_accept_encoding(value: Optional[str]) -> List[str]:
    """把 Accept-Encoding 原始值依逗號拆成 token 列表"""
    if not value:
        return []
    return [token.strip() for token in value.split(",") if token.strip()]


class RequestDescriptor:
    """請求描述（對轉碼器唯讀）"""

    def __init__(
        self,
        protocol: str,
        accept_encoding: Optional[Iterable[str]] = None,
        cancelled: Optional[asyncio.Event] = None,
    ):
        self.protocol = protocol
        self.accept_encoding: List[str] = list(accept_encoding or [])
        self._cancelled = cancelled if cancelled is not None else asyncio.Event()

    @classmethod
    def from_scope(cls, scope: Scope) -> "RequestDescriptor":
        """從 ASGI scope 建立請求描述"""
        headers = Headers(scope=scope)
        tokens: List[str] = []
        for value in headers.getlist("accept-encoding"):
            tokens.extend(parse_accept_encoding(value))
        return cls(
            protocol=f"HTTP/{scope.get('http_version', '1.1')}",
            accept_encoding=tokens,
        )

    @property
    def accepts_gzip(self) -> bool:
        """客戶端是否接受 gzip（不分大小寫，包含 gzip 即可）"""
        return any("gzip" in (token or "").lower() for token in self.accept_encoding)

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()


class ResponseContext:
    """
    回應上下文

    body 是可替換的輸出串流插槽；Content-Length 與
    Transfer-Encoding: chunked 互斥，設定其中一個會移除另一個。
    """

    def __init__(
        self,
        body=None,
        status_code: int = 200,
        headers: Optional[List[Tuple[bytes, bytes]]] = None,
    ):
        self.body = body
        self.status_code = status_code
        self.headers = MutableHeaders(raw=list(headers or []))
        self.headers_sent = False

    def start(self, status_code: int, raw_headers: Iterable[Tuple[bytes, bytes]]) -> None:
        """記錄下游送出的狀態碼與標頭"""
        self._ensure_mutable()
        self.status_code = status_code
        self.headers = MutableHeaders(raw=list(raw_headers))

    def _ensure_mutable(self) -> None:
        if self.headers_sent:
            raise ResponseAlreadyStartedError("回應標頭已送出，無法再修改")

    @property
    def content_encoding(self) -> Optional[str]:
        return self.headers.get("content-encoding")

    @content_encoding.setter
    def content_encoding(self, value: str) -> None:
        self._ensure_mutable()
        self.headers["content-encoding"] = value

    @property
    def transfer_encoding(self) -> Optional[str]:
        return self.headers.get("transfer-encoding")

    @transfer_encoding.setter
    def transfer_encoding(self, value: str) -> None:
        self._ensure_mutable()
        if "content-length" in self.headers:
            del self.headers["content-length"]
        self.headers["transfer-encoding"] = value

    @property
    def content_length(self) -> Optional[int]:
        value = self.headers.get("content-length")
        return int(value) if value is not None else None

    @content_length.setter
    def content_length(self, value: int) -> None:
        self._ensure_mutable()
        if "transfer-encoding" in self.headers:
            del self.headers["transfer-encoding"]
        self.headers["content-length"] = str(value)


@contextmanager
def borrow_output(response: ResponseContext, replacement) -> Iterator:
    """
    暫時取得回應輸出插槽的獨佔使用權

    進入時以 replacement 取代真實串流，離開時（不論成功、失敗或取消）
    一律把原本的串流放回插槽，並釋放 replacement。
    """
    original = response.body
    response.body = replacement
    try:
        yield replacement
    finally:
        response.body = original
        close = getattr(replacement, "close", None)
        if callable(close):
            close()
