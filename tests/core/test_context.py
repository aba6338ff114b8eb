"""
測試 core/context.py 請求描述與回應上下文
"""

import pytest

from core.context import (
    RequestDescriptor,
    ResponseContext,
    borrow_output,
    parse_accept_encoding,
)
from core.exceptions import ResponseAlreadyStartedError
from core.streams import MemoryStream


class TestRequestDescriptor:
    """測試請求描述"""

    def test_parse_accept_encoding(self):
        """測試拆解 Accept-Encoding"""
        assert parse_accept_encoding("gzip, deflate,br") == ["gzip", "deflate", "br"]
        assert parse_accept_encoding("") == []
        assert parse_accept_encoding(None) == []

    def test_accepts_gzip(self):
        """測試 gzip 協商判斷"""
        assert RequestDescriptor("HTTP/1.1", ["deflate", "GZIP"]).accepts_gzip is True
        assert RequestDescriptor("HTTP/1.1", ["x-gzip"]).accepts_gzip is True
        assert RequestDescriptor("HTTP/1.1", ["deflate"]).accepts_gzip is False
        assert RequestDescriptor("HTTP/1.1").accepts_gzip is False

    def test_from_scope(self):
        """測試從 ASGI scope 建立"""
        scope = {
            "type": "http",
            "http_version": "1.0",
            "headers": [
                (b"accept-encoding", b"deflate"),
                (b"accept-encoding", b"gzip;q=0.8, br"),
            ],
        }
        request = RequestDescriptor.from_scope(scope)

        assert request.protocol == "HTTP/1.0"
        assert request.accept_encoding == ["deflate", "gzip;q=0.8", "br"]
        assert request.accepts_gzip is True

    def test_from_scope_without_header(self):
        """測試沒有 Accept-Encoding 標頭"""
        request = RequestDescriptor.from_scope({"type": "http", "http_version": "1.1", "headers": []})
        assert request.accept_encoding == []
        assert request.accepts_gzip is False

    def test_cancel(self):
        """測試取消訊號"""
        request = RequestDescriptor("HTTP/1.1")
        assert request.is_cancelled is False
        request.cancel()
        assert request.is_cancelled is True


class TestResponseContext:
    """測試回應上下文"""

    def test_content_length_removes_chunked(self):
        """測試設定 Content-Length 會移除 chunked"""
        response = ResponseContext()
        response.transfer_encoding = "chunked"
        response.content_length = 42

        assert response.content_length == 42
        assert response.transfer_encoding is None

    def test_chunked_removes_content_length(self):
        """測試設定 chunked 會移除 Content-Length"""
        response = ResponseContext(headers=[(b"content-length", b"100")])
        response.transfer_encoding = "chunked"

        assert response.transfer_encoding == "chunked"
        assert response.content_length is None
        assert "content-length" not in response.headers

    def test_start_replaces_headers(self):
        """測試記錄下游的狀態碼與標頭"""
        response = ResponseContext()
        response.start(201, [(b"content-type", b"text/plain")])

        assert response.status_code == 201
        assert response.headers["content-type"] == "text/plain"

    def test_headers_locked_after_sent(self):
        """測試標頭送出後不可修改"""
        response = ResponseContext()
        response.headers_sent = True

        with pytest.raises(ResponseAlreadyStartedError):
            response.content_encoding = "gzip"
        with pytest.raises(ResponseAlreadyStartedError):
            response.start(200, [])


class TestBorrowOutput:
    """測試輸出插槽借用"""

    def test_swap_and_restore(self):
        """測試借用期間替換、結束後還原並釋放"""
        real_stream = MemoryStream()
        response = ResponseContext(body=real_stream)

        with borrow_output(response, MemoryStream()) as capture:
            assert response.body is capture

        assert response.body is real_stream
        assert capture.closed

    def test_restore_on_error(self):
        """測試發生異常時仍還原"""
        real_stream = MemoryStream()
        response = ResponseContext(body=real_stream)

        with pytest.raises(KeyError):
            with borrow_output(response, MemoryStream()):
                response.body = object()
                raise KeyError("boom")

        assert response.body is real_stream
