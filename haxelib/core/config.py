"""集中配置管理

替代各模块散落的默认常量，提供统一的配置入口。
支持从 YAML 文件加载 + 编程式覆盖。

注意: 全局仓库路径不在此配置中，它保存在单行的用户配置文件
（config_file，默认 ~/.haxelib）里，由 RepositoryLocator 负责读写。
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path

from haxelib.utils.fileio import load_yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "~/.config/haxelib/config.yml"


@dataclass
class Config:
    """库管理器全局配置"""

    # 远程目录服务
    server: str = "https://lib.haxe.org"
    request_timeout: int = 30

    # 下载重试
    download_retries: int = 3
    retry_delay: float = 1.0

    # 仓库路径配置文件
    config_file: str = "~/.haxelib"
    system_config_file: str = "/etc/.haxelib"

    # 自定义扩展 (放不到字段里的配置项)
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_file(cls, path: str | Path = DEFAULT_CONFIG_PATH) -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        data = load_yaml(Path(path).expanduser())
        if not data:
            return cls()
        known = {f.name for f in cls.__dataclass_fields__.values()}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        cfg = cls(**matched)
        cfg.extra = extra
        return cfg

    @property
    def user_config_path(self) -> Path:
        return Path(self.config_file).expanduser()

    def to_dict(self) -> dict:
        return asdict(self)


# 全局单例，首次 import 时不加载文件；由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str | Path | None = None) -> Config:
    """从文件初始化全局配置，路径默认取 HAXELIB_CONFIG 环境变量"""
    global _current  # noqa: PLW0603
    path = path or os.environ.get("HAXELIB_CONFIG") or DEFAULT_CONFIG_PATH
    _current = Config.from_file(path)
    logger.debug("配置已加载: %s", path)
    return _current
