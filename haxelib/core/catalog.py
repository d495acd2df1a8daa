"""远程库目录客户端

HttpCatalog 通过 JSON 接口查询版本:
    GET {server}/api/3.0/{库名}   ->  {"name": "...", "versions": ["1.0.0", ...]}
压缩包地址:
    {server}/files/3.0/{库名}-{版本}.zip   （库名与版本中的 . 替换为 ,）
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from collections.abc import Callable
from typing import Any
from urllib.parse import quote

from haxelib.core.config import Config, get_config
from haxelib.core.downloader import validate_url_scheme
from haxelib.core.exceptions import DownloadError, ValidationError
from haxelib.core.manifest import check_name
from haxelib.core.version import escape_version, latest

logger = logging.getLogger(__name__)


class HttpCatalog:
    """基于 HTTP JSON 的远程目录"""

    def __init__(
        self,
        config: Config | None = None,
        *,
        opener: Callable[..., Any] = urllib.request.urlopen,
    ) -> None:
        cfg = config or get_config()
        self.server = cfg.server.rstrip("/")
        self.timeout = cfg.request_timeout
        self._opener = opener

    def _get_json(self, url: str) -> dict[str, Any]:
        validate_url_scheme(url, context="catalog")
        request = urllib.request.Request(  # noqa: S310
            url, headers={"Accept": "application/json"},
        )
        try:
            with self._opener(request, timeout=self.timeout) as resp:
                data = json.loads(resp.read().decode("utf-8"))
        except urllib.error.HTTPError as e:
            if e.code == 404:
                raise ValidationError(f"远程目录中不存在: {url}") from e
            raise DownloadError(f"查询远程目录失败: {url} - HTTP {e.code}") from e
        except (urllib.error.URLError, OSError) as e:
            raise DownloadError(f"查询远程目录失败: {url} - {e}") from e
        except json.JSONDecodeError as e:
            raise DownloadError(f"远程目录返回了非法 JSON: {url}") from e
        if not isinstance(data, dict):
            raise DownloadError(f"远程目录返回格式错误: {url}")
        return data

    def versions(self, name: str) -> list[str]:
        data = self._get_json(f"{self.server}/api/3.0/{quote(check_name(name))}")
        return [str(v) for v in data.get("versions", [])]

    def latest_version(self, name: str) -> str:
        """最新正式版本；只有预发布版本时取最新的预发布版本"""
        versions = self.versions(name)
        found = latest(versions) or latest(versions, include_pre_release=True)
        if found is None:
            raise ValidationError(f"库 {name} 没有任何已发布版本")
        logger.debug("库 %s 最新版本: %s", name, found)
        return found

    def archive_url(self, name: str, version: str) -> str:
        filename = f"{escape_version(check_name(name))}-{escape_version(version)}.zip"
        return f"{self.server}/files/3.0/{quote(filename, safe=',')}"
