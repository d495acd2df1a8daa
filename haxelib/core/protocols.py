"""外部协作者协议定义

集中定义安装引擎依赖的外部接口（Protocol），
实现依赖倒置 — 解析器和服务层依赖抽象而非具体实现。

使用 typing.Protocol 而非 ABC，测试中的 fake 无需继承即可满足协议。
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol


# =========================================================================
# 远程目录服务
# =========================================================================

class CatalogClient(Protocol):
    """远程库目录协议

    只暴露安装引擎需要的两个查询，搜索、提交、用户管理等不在此列。
    """

    def latest_version(self, name: str) -> str:
        """库的最新发布版本"""
        ...

    def archive_url(self, name: str, version: str) -> str:
        """指定版本压缩包的下载地址"""
        ...


# =========================================================================
# 下载
# =========================================================================

class ArchiveFetcher(Protocol):
    """下载器协议"""

    def download(self, url: str, dest: Path) -> Path:
        """下载到 dest（支持断点续传），返回 dest"""
        ...


# =========================================================================
# 提示 / 确认
# =========================================================================

class Reporter(Protocol):
    """面向用户的提示与确认

    日志走 logging；Reporter 只负责需要用户看到或回答的内容。
    """

    def info(self, message: str) -> None:
        ...

    def warn(self, message: str) -> None:
        """需要用户注意但不中断命令的提示"""
        ...

    def confirm(self, question: str) -> bool:
        """向用户确认，返回是否同意"""
        ...
