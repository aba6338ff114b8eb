"""
回應壓縮中間件
把 ASGI 下游應用接到 ResponseTranscoder，依協商結果 gzip 壓縮回應
"""

import asyncio
from dataclasses import replace
from typing import Optional

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from core.context import RequestDescriptor, ResponseContext
from core.exceptions import RequestCancelledError
from core.logging import get_logger
from core.streams import ASGIOutputStream
from core.transcoder import ResponseTranscoder, TranscoderConfig

logger = get_logger("middleware.compression")


class GzipMiddleware:
    """
    Gzip 壓縮中間件（純 ASGI）

    功能：
    1. 檢查客戶端是否支援 gzip，不支援時直接輸出
    2. 擷取下游回應，小於門檻或已編碼的原樣輸出並設定 Content-Length
    3. HTTP/1.1 以 chunked 串流壓縮，其他協定先壓縮再設定 Content-Length
    4. 客戶端斷線時停止輸出
    """

    def __init__(
        self,
        app: ASGIApp,
        minimum_size: Optional[int] = None,
        config: Optional[TranscoderConfig] = None,
    ) -> None:
        self.app = app
        if config is None:
            config = TranscoderConfig.from_settings()
        if minimum_size is not None:
            config = replace(config, minimum_compressible_length=minimum_size)
        self.transcoder = ResponseTranscoder(config)

        logger.info(
            f"Gzip 中間件初始化: 最小壓縮大小 {config.minimum_compressible_length} bytes"
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = RequestDescriptor.from_scope(scope)
        response = ResponseContext()
        real_stream = ASGIOutputStream(send, response)
        response.body = real_stream
        watcher: Optional[asyncio.Task] = None

        async def receive_with_disconnect() -> Message:
            message = await receive()
            if message["type"] == "http.disconnect":
                request.cancel()
            return message

        async def watch_disconnect() -> None:
            # 下游結束後不再讀取請求，改由這裡監聽斷線
            while not request.is_cancelled:
                await receive_with_disconnect()

        async def send_to_slot(message: Message) -> None:
            message_type = message["type"]
            if message_type == "http.response.start":
                response.start(message["status"], message.get("headers", []))
            elif message_type == "http.response.body":
                # 寫入目前佔用插槽的串流（真實串流或擷取緩衝）
                await response.body.write(message.get("body", b""))
            else:
                await send(message)

        async def call_next() -> None:
            nonlocal watcher
            await self.app(scope, receive_with_disconnect, send_to_slot)
            if not request.is_cancelled:
                watcher = asyncio.create_task(watch_disconnect())

        try:
            outcome = await self.transcoder.transcode(request, response, call_next)
        except RequestCancelledError:
            # 客戶端已離線，輸出插槽已還原，不再送出回應結尾
            logger.warning(
                f"{scope.get('method', '')} {scope.get('path', '')} - 客戶端已斷線，停止輸出"
            )
            return
        finally:
            if watcher is not None:
                watcher.cancel()
                await asyncio.gather(watcher, return_exceptions=True)

        await real_stream.finish()

        logger.debug(f"{scope.get('method', '')} {scope.get('path', '')} - {outcome.value}")
