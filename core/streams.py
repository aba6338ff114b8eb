"""
回應輸出串流
擷取緩衝、ASGI 真實輸出串流與可取消的串流複製
"""

import io

from starlette.types import Send

from core.exceptions import RequestCancelledError, ResponseAlreadyStartedError

# 串流複製的預設緩衝大小（bytes）
DEFAULT_COPY_BUFFER_SIZE = 81920


class OutputStream:
    """回應輸出串流介面"""

    def readable(self) -> bool:
        return False

    def seekable(self) -> bool:
        return False

    async def write(self, data: bytes) -> None:
        raise NotImplementedError


class MemoryStream(OutputStream):
    """
    記憶體內的可讀、可定位位元組串流

    用作擷取緩衝與 gzip 中間緩衝，生命週期不超過單一請求
    """

    def __init__(self, initial: bytes = b""):
        self._buffer = io.BytesIO(initial)

    def readable(self) -> bool:
        return not self._buffer.closed

    def seekable(self) -> bool:
        return not self._buffer.closed

    async def write(self, data: bytes) -> None:
        self._buffer.write(data)

    def read(self, size: int = -1) -> bytes:
        return self._buffer.read(size)

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        return self._buffer.seek(offset, whence)

    def tell(self) -> int:
        return self._buffer.tell()

    @property
    def length(self) -> int:
        """串流總長度（不改變目前位置）"""
        position = self._buffer.tell()
        end = self._buffer.seek(0, io.SEEK_END)
        self._buffer.seek(position)
        return end

    def __len__(self) -> int:
        return self.length

    def getvalue(self) -> bytes:
        return self._buffer.getvalue()

    def close(self) -> None:
        self._buffer.close()

    @property
    def closed(self) -> bool:
        return self._buffer.closed

    def __enter__(self) -> "MemoryStream":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class ASGIOutputStream(OutputStream):
    """
    ASGI 連線的真實輸出串流

    第一次寫入非空資料時才送出 http.response.start，
    因此在第一個位元組之前對回應標頭的修改都會生效。
    """

    def __init__(self, send: Send, response):
        self._send = send
        self._response = response
        self.started = False
        self.finished = False

    async def _start(self) -> None:
        await self._send({
            "type": "http.response.start",
            "status": self._response.status_code,
            "headers": self._response.headers.raw,
        })
        self._response.headers_sent = True
        self.started = True

    async def write(self, data: bytes) -> None:
        if self.finished:
            raise ResponseAlreadyStartedError("回應已結束，無法再寫入")
        if not data:
            return
        if not self.started:
            await self._start()
        await self._send({
            "type": "http.response.body",
            "body": bytes(data),
            "more_body": True,
        })

    async def finish(self) -> None:
        """送出回應結尾（重複呼叫無作用）"""
        if self.finished:
            return
        if not self.started:
            await self._start()
        await self._send({"type": "http.response.body", "body": b"", "more_body": False})
        self.finished = True


async def copy_stream(
    source,
    destination: OutputStream,
    request=None,
    buffer_size: int = DEFAULT_COPY_BUFFER_SIZE,
) -> int:
    """
    從目前位置把 source 依序複製到 destination

    每個區塊之前檢查請求的取消訊號，已取消時拋出 RequestCancelledError

    Returns:
        複製的位元組數
    """
    total = 0
    while True:
        if request is not None and request.is_cancelled:
            raise RequestCancelledError(request.protocol)
        chunk = source.read(buffer_size)
        if not chunk:
            break
        await destination.write(chunk)
        total += len(chunk)
    return total
