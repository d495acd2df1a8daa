"""压缩包下载器

- 断点续传: 目标文件已存在时带 Range 头继续下载
- 仅对超时重试，固定间隔，次数有限；其他网络错误立即失败
- 续传时服务端返回 416 视为已下载完整
"""

from __future__ import annotations

import logging
import shutil
import time
import urllib.error
import urllib.request
from collections.abc import Callable
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

from haxelib.core.config import Config, get_config
from haxelib.core.exceptions import DownloadError, ValidationError

logger = logging.getLogger(__name__)

_ALLOWED_SCHEMES = frozenset(("http", "https"))


def validate_url_scheme(url: str, *, context: str = "") -> None:
    """校验下载地址仅使用 http/https，防止 file:// 等非预期协议访问"""
    parsed = urlparse(url)
    if parsed.scheme not in _ALLOWED_SCHEMES:
        label = f" ({context})" if context else ""
        raise ValidationError(
            f"不允许的 URL 协议 '{parsed.scheme}'{label}，"
            f"仅支持 http/https: {url}"
        )


def is_retryable(exc: BaseException) -> bool:
    """只有超时可以重试"""
    if isinstance(exc, TimeoutError):
        return True
    return isinstance(exc, urllib.error.URLError) and isinstance(exc.reason, TimeoutError)


class Downloader:
    """HTTP 下载器"""

    def __init__(
        self,
        config: Config | None = None,
        *,
        opener: Callable[..., Any] = urllib.request.urlopen,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        cfg = config or get_config()
        self.retries = max(1, cfg.download_retries)
        self.retry_delay = cfg.retry_delay
        self.timeout = cfg.request_timeout
        self._opener = opener
        self._sleep = sleep

    def download(self, url: str, dest: Path) -> Path:
        validate_url_scheme(url, context=f"download {dest.name}")
        dest.parent.mkdir(parents=True, exist_ok=True)

        for attempt in range(1, self.retries + 1):
            try:
                self._fetch(url, dest)
                return dest
            except (TimeoutError, urllib.error.URLError) as e:
                if not is_retryable(e):
                    raise DownloadError(f"下载失败: {url} - {e}") from e
                if attempt == self.retries:
                    raise DownloadError(
                        f"下载超时，已重试 {self.retries} 次: {url}"
                    ) from e
                logger.warning(
                    "下载超时 (%d/%d)，%.1f 秒后重试: %s",
                    attempt, self.retries, self.retry_delay, url,
                )
                self._sleep(self.retry_delay)
        return dest

    def _fetch(self, url: str, dest: Path) -> None:
        offset = dest.stat().st_size if dest.exists() else 0
        headers = {"User-Agent": "haxelib-py"}
        if offset:
            headers["Range"] = f"bytes={offset}-"
        request = urllib.request.Request(url, headers=headers)  # noqa: S310

        try:
            response = self._opener(request, timeout=self.timeout)
        except urllib.error.HTTPError as e:
            if e.code == 416 and offset:
                logger.info("  已下载完整: %s", dest)
                return
            raise DownloadError(f"下载失败: {url} - HTTP {e.code}") from e

        with response:
            resumed = offset and getattr(response, "status", 200) == 206
            mode = "ab" if resumed else "wb"
            if offset and not resumed:
                logger.info("  服务端不支持续传，重新下载: %s", url)
            with open(dest, mode) as f:
                shutil.copyfileobj(response, f)
        logger.info("  已保存: %s", dest)
