"""下载器单元测试（fake opener，不访问网络）"""

from __future__ import annotations

import io
import urllib.error
from pathlib import Path

import pytest

from haxelib.core.config import Config
from haxelib.core.downloader import Downloader, is_retryable, validate_url_scheme
from haxelib.core.exceptions import DownloadError, ValidationError

URL = "https://lib.example.org/files/foo-1,0,0.zip"


class FakeResponse(io.BytesIO):
    def __init__(self, data: bytes, status: int = 200) -> None:
        super().__init__(data)
        self.status = status


class FakeOpener:
    """按顺序返回预置结果；元素是异常时抛出"""

    def __init__(self, *results: object) -> None:
        self.results = list(results)
        self.requests: list = []

    def __call__(self, request, timeout=None):
        self.requests.append(request)
        result = self.results.pop(0)
        if isinstance(result, BaseException):
            raise result
        return result


def _downloader(opener: FakeOpener, sleeps: list[float] | None = None,
                retries: int = 3) -> Downloader:
    cfg = Config(download_retries=retries, retry_delay=0.5)
    record = sleeps if sleeps is not None else []
    return Downloader(cfg, opener=opener, sleep=record.append)


def _http_error(code: int) -> urllib.error.HTTPError:
    return urllib.error.HTTPError(URL, code, "err", hdrs=None, fp=None)


class TestValidateUrlScheme:
    def test_https_ok(self) -> None:
        validate_url_scheme("https://example.com/x.zip")

    @pytest.mark.parametrize("url", ["file:///etc/passwd", "ftp://x/y", "/local/path"])
    def test_rejected(self, url: str) -> None:
        with pytest.raises(ValidationError, match="不允许的 URL 协议"):
            validate_url_scheme(url)

    def test_context_in_error(self) -> None:
        with pytest.raises(ValidationError, match="download foo"):
            validate_url_scheme("file:///x", context="download foo")


class TestIsRetryable:
    def test_timeouts(self) -> None:
        assert is_retryable(TimeoutError())
        assert is_retryable(urllib.error.URLError(TimeoutError("timed out")))

    def test_others(self) -> None:
        assert not is_retryable(urllib.error.URLError(ConnectionRefusedError()))
        assert not is_retryable(_http_error(500))


class TestDownload:
    def test_fresh(self, tmp_path: Path) -> None:
        opener = FakeOpener(FakeResponse(b"zipdata"))
        dest = tmp_path / "sub" / "foo.zip"
        assert _downloader(opener).download(URL, dest) == dest
        assert dest.read_bytes() == b"zipdata"
        assert opener.requests[0].get_header("Range") is None

    def test_resume_partial(self, tmp_path: Path) -> None:
        dest = tmp_path / "foo.zip"
        dest.write_bytes(b"abc")
        opener = FakeOpener(FakeResponse(b"def", status=206))
        _downloader(opener).download(URL, dest)
        assert opener.requests[0].get_header("Range") == "bytes=3-"
        assert dest.read_bytes() == b"abcdef"

    def test_resume_not_supported_rewrites(self, tmp_path: Path) -> None:
        dest = tmp_path / "foo.zip"
        dest.write_bytes(b"stale")
        _downloader(FakeOpener(FakeResponse(b"fresh"))).download(URL, dest)
        assert dest.read_bytes() == b"fresh"

    def test_416_means_complete(self, tmp_path: Path) -> None:
        dest = tmp_path / "foo.zip"
        dest.write_bytes(b"complete")
        _downloader(FakeOpener(_http_error(416))).download(URL, dest)
        assert dest.read_bytes() == b"complete"

    def test_416_without_offset_fails(self, tmp_path: Path) -> None:
        with pytest.raises(DownloadError, match="416"):
            _downloader(FakeOpener(_http_error(416))).download(URL, tmp_path / "foo.zip")

    def test_http_error_not_retried(self, tmp_path: Path) -> None:
        opener = FakeOpener(_http_error(404))
        with pytest.raises(DownloadError, match="404"):
            _downloader(opener).download(URL, tmp_path / "foo.zip")
        assert len(opener.requests) == 1

    def test_connection_error_not_retried(self, tmp_path: Path) -> None:
        opener = FakeOpener(urllib.error.URLError(ConnectionRefusedError()))
        sleeps: list[float] = []
        with pytest.raises(DownloadError):
            _downloader(opener, sleeps).download(URL, tmp_path / "foo.zip")
        assert len(opener.requests) == 1
        assert sleeps == []

    def test_timeout_retried(self, tmp_path: Path) -> None:
        opener = FakeOpener(TimeoutError(), TimeoutError(), FakeResponse(b"ok"))
        sleeps: list[float] = []
        dest = tmp_path / "foo.zip"
        _downloader(opener, sleeps).download(URL, dest)
        assert dest.read_bytes() == b"ok"
        assert sleeps == [0.5, 0.5]

    def test_retries_exhausted(self, tmp_path: Path) -> None:
        opener = FakeOpener(TimeoutError(), TimeoutError(), TimeoutError())
        with pytest.raises(DownloadError, match="已重试 3 次"):
            _downloader(opener).download(URL, tmp_path / "foo.zip")
        assert len(opener.requests) == 3

    def test_scheme_checked_before_request(self, tmp_path: Path) -> None:
        opener = FakeOpener()
        with pytest.raises(ValidationError):
            _downloader(opener).download("file:///etc/passwd", tmp_path / "x.zip")
        assert opener.requests == []
