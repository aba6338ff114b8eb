"""
回應轉碼器
擷取下游輸出的回應內容，依協商結果決定是否 gzip 壓縮，
並依協定版本選擇 chunked 或 Content-Length 分框
"""

import gzip
import io
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from core.config import settings
from core.context import RequestDescriptor, ResponseContext, borrow_output
from core.exceptions import ConfigurationError, RequestCancelledError, StreamContractError
from core.logging import get_logger
from core.streams import DEFAULT_COPY_BUFFER_SIZE, MemoryStream, OutputStream, copy_stream

logger = get_logger("core.transcoder")

# 預設最小壓縮大小（bytes）
DEFAULT_MINIMUM_COMPRESSIBLE_LENGTH = 1400

# 唯一支援 chunked 傳輸分框的協定
CHUNKED_PROTOCOL = "HTTP/1.1"


@dataclass(frozen=True)
class TranscoderConfig:
    """轉碼器配置（建立後不可變）"""

    minimum_compressible_length: int = DEFAULT_MINIMUM_COMPRESSIBLE_LENGTH
    copy_buffer_size: int = DEFAULT_COPY_BUFFER_SIZE

    def __post_init__(self):
        if self.minimum_compressible_length < 0:
            raise ConfigurationError("minimum_compressible_length", "不可為負數")
        if self.copy_buffer_size <= 0:
            raise ConfigurationError("copy_buffer_size", "必須大於 0")

    @classmethod
    def from_settings(cls) -> "TranscoderConfig":
        return cls(
            minimum_compressible_length=settings.GZIP_MINIMUM_COMPRESSIBLE_LENGTH,
            copy_buffer_size=settings.GZIP_COPY_BUFFER_SIZE,
        )


class Framing(Enum):
    """壓縮後回應的傳輸分框方式"""

    CHUNKED = "chunked"
    LENGTH_PREFIXED = "length-prefixed"

    @classmethod
    def for_protocol(cls, protocol: str) -> "Framing":
        # 只有 HTTP/1.1 可安全使用 chunked，其餘一律先算出長度
        if protocol == CHUNKED_PROTOCOL:
            return cls.CHUNKED
        return cls.LENGTH_PREFIXED


class Outcome(Enum):
    """單一請求的轉碼結果"""

    PASS_THROUGH = "pass-through"
    SMALL_BODY = "small-body"
    GZIP_CHUNKED = "gzip-chunked"
    GZIP_LENGTH_PREFIXED = "gzip-length-prefixed"
    PRE_ENCODED = "pre-encoded"


def decide_outcome(
    accepts_gzip: bool,
    body_length: Optional[int],
    protocol: str,
    threshold: int,
    already_encoded: bool = False,
) -> Outcome:
    """
    決定轉碼結果

    只取決於（是否接受 gzip、擷取長度、協定版本、下游是否已設定
    Content-Encoding），相同輸入必得相同結果。
    不接受 gzip 時 body_length 可為 None。
    """
    if not accepts_gzip:
        return Outcome.PASS_THROUGH
    if body_length is None:
        raise ValueError("接受 gzip 時必須提供 body_length")
    # 下游已自行編碼，不可再壓縮一次
    if already_encoded:
        return Outcome.PRE_ENCODED
    if body_length < threshold:
        return Outcome.SMALL_BODY
    if Framing.for_protocol(protocol) is Framing.CHUNKED:
        return Outcome.GZIP_CHUNKED
    return Outcome.GZIP_LENGTH_PREFIXED


class GzipEncoder(OutputStream):
    """
    gzip 編碼串流

    壓縮後的資料逐塊寫入目標串流；finish() 只結束 gzip 框架，
    不會關閉目標串流。
    """

    def __init__(self, destination: OutputStream):
        self._destination = destination
        self._buffer = io.BytesIO()
        # mtime 固定為 0，相同輸入產生相同位元組
        self._gzip_file = gzip.GzipFile(mode="wb", fileobj=self._buffer, mtime=0)

    async def write(self, data: bytes) -> None:
        self._gzip_file.write(data)
        await self._drain()

    async def finish(self) -> None:
        self._gzip_file.close()
        await self._drain()

    async def _drain(self) -> None:
        data = self._buffer.getvalue()
        if data:
            await self._destination.write(data)
            self._buffer.seek(0)
            self._buffer.truncate()


class ResponseTranscoder:
    """
    回應轉碼器

    每個請求呼叫一次 transcode()；所有暫存緩衝都由該次呼叫獨佔，
    不同請求之間沒有共享的可變狀態。
    """

    def __init__(self, config: Optional[TranscoderConfig] = None):
        self.config = config or TranscoderConfig()

    async def transcode(
        self,
        request: RequestDescriptor,
        response: ResponseContext,
        call_next: Callable[[], Awaitable[None]],
    ) -> Outcome:
        """
        執行下游並轉碼其輸出

        Args:
            request: 請求描述
            response: 回應上下文，body 插槽目前放的是真實輸出串流
            call_next: 下游處理，寫入 body 插槽中的串流

        Returns:
            本次請求的轉碼結果

        Raises:
            StreamContractError: 下游把擷取緩衝換成不可讀或不可定位的串流
            RequestCancelledError: 複製途中請求被取消
        """
        # 客戶端不接受 gzip：直接寫到真實串流，不付出緩衝成本
        if not request.accepts_gzip:
            await call_next()
            logger.debug(f"未協商 gzip，直接輸出 ({request.protocol})")
            return Outcome.PASS_THROUGH

        real_stream = response.body

        try:
            with borrow_output(response, MemoryStream()):
                await call_next()

                captured = response.body
                self._ensure_capture_contract(captured)

                body_length = captured.length
                outcome = decide_outcome(
                    True,
                    body_length,
                    request.protocol,
                    self.config.minimum_compressible_length,
                    already_encoded=response.content_encoding is not None,
                )

                captured.seek(0)
                if outcome in (Outcome.SMALL_BODY, Outcome.PRE_ENCODED):
                    await self._write_verbatim(request, response, captured, body_length, real_stream)
                elif outcome is Outcome.GZIP_CHUNKED:
                    await self._write_gzip_chunked(request, response, captured, real_stream)
                else:
                    await self._write_gzip_length_prefixed(request, response, captured, real_stream)
        except RequestCancelledError:
            logger.debug(f"請求已取消，停止輸出回應 ({request.protocol})")
            raise

        return outcome

    def _ensure_capture_contract(self, captured) -> None:
        readable = self._check_capability(captured, "readable")
        seekable = self._check_capability(captured, "seekable")
        if not (readable and seekable):
            logger.error(
                f"回應串流已被替換: {type(captured).__name__} "
                f"(readable={readable}, seekable={seekable})"
            )
            raise StreamContractError(readable=readable, seekable=seekable)

    @staticmethod
    def _check_capability(stream, capability: str) -> bool:
        check = getattr(stream, capability, None)
        return bool(callable(check) and check())

    async def _write_verbatim(
        self,
        request: RequestDescriptor,
        response: ResponseContext,
        captured: MemoryStream,
        body_length: int,
        real_stream: OutputStream,
    ) -> None:
        response.content_length = body_length
        await copy_stream(captured, real_stream, request, self.config.copy_buffer_size)
        logger.debug(
            f"原樣輸出: {body_length} bytes "
            f"(Content-Encoding={response.content_encoding}, "
            f"門檻 {self.config.minimum_compressible_length})"
        )

    def _mark_gzip(self, response: ResponseContext) -> None:
        response.content_encoding = "gzip"
        response.headers.add_vary_header("Accept-Encoding")

    async def _write_gzip_chunked(
        self,
        request: RequestDescriptor,
        response: ResponseContext,
        captured: MemoryStream,
        real_stream: OutputStream,
    ) -> None:
        self._mark_gzip(response)
        response.transfer_encoding = "chunked"

        encoder = GzipEncoder(real_stream)
        copied = await copy_stream(captured, encoder, request, self.config.copy_buffer_size)
        await encoder.finish()

        logger.debug(f"gzip 壓縮回應（chunked）: {copied} bytes")

    async def _write_gzip_length_prefixed(
        self,
        request: RequestDescriptor,
        response: ResponseContext,
        captured: MemoryStream,
        real_stream: OutputStream,
    ) -> None:
        # Content-Length 必須在第一個位元組前送出，所以先壓縮到中間緩衝
        with MemoryStream() as compressed:
            encoder = GzipEncoder(compressed)
            copied = await copy_stream(captured, encoder, request, self.config.copy_buffer_size)
            await encoder.finish()

            compressed.seek(0)
            compressed_length = compressed.length

            self._mark_gzip(response)
            response.content_length = compressed_length
            await copy_stream(compressed, real_stream, request, self.config.copy_buffer_size)

        logger.debug(
            f"gzip 壓縮回應（Content-Length）: {copied} -> {compressed_length} bytes "
            f"({100 - compressed_length * 100 // max(copied, 1)}% 減少)"
        )
