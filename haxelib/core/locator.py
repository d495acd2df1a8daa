"""仓库目录定位

确定本次命令使用哪个目录作为仓库:

  1. 本地仓库: 从当前目录逐级向上查找 .haxelib 标记目录
  2. 全局仓库，按顺序:
       a. HAXELIB_PATH 环境变量（去除首尾空白后原样使用，不检查存在性）
       b. 用户配置文件（默认 ~/.haxelib，单行绝对路径）
       c. 系统级配置文件 /etc/.haxelib（仅非 Windows）
       d. Windows 平台默认路径 <HAXEPATH>/lib，自动创建

每次命令调用都重新计算，不跨调用缓存。
"""

from __future__ import annotations

import logging
import os
import platform
import shutil
from collections.abc import Mapping
from pathlib import Path

from haxelib.core.config import Config, get_config
from haxelib.core.exceptions import (
    InvalidRepositoryPathError,
    RepositoryError,
    RepositoryNotConfiguredError,
    ReservedPathError,
)
from haxelib.core.models import LOCAL_REPO_MARKER, LocationKind, RepositoryLocation
from haxelib.utils.fileio import atomic_write, read_text_trimmed

logger = logging.getLogger(__name__)

REPO_PATH_ENV = "HAXELIB_PATH"


class RepositoryLocator:
    """仓库目录定位器"""

    def __init__(
        self,
        config: Config | None = None,
        environ: Mapping[str, str] | None = None,
        system: str | None = None,
    ) -> None:
        self.config = config or get_config()
        self.environ = os.environ if environ is None else environ
        self.system = system or platform.system()

    @property
    def is_windows(self) -> bool:
        return self.system == "Windows"

    @property
    def config_file(self) -> Path:
        return self.config.user_config_path

    # ------------------------------------------------------------------
    # 本地仓库
    # ------------------------------------------------------------------

    @staticmethod
    def find_local(start_dir: str | Path) -> Path | None:
        """从 start_dir 逐级向上查找 .haxelib 标记目录，找不到返回 None"""
        current = Path(start_dir).absolute()
        while True:
            if _has_exact_child_dir(current, LOCAL_REPO_MARKER):
                return current / LOCAL_REPO_MARKER
            if current.parent == current:
                return None
            current = current.parent

    def create_local_marker(self, directory: str | Path) -> Path:
        """在 directory 下创建本地仓库（不向上查找）"""
        marker = Path(directory) / LOCAL_REPO_MARKER
        if marker.exists():
            raise RepositoryError(f"本地仓库已存在: {marker}")
        marker.mkdir(parents=True)
        logger.info("已创建本地仓库: %s", marker)
        return marker

    def delete_local_marker(self, directory: str | Path) -> Path:
        """删除 directory 下的本地仓库（不向上查找）"""
        marker = Path(directory) / LOCAL_REPO_MARKER
        if not marker.is_dir():
            raise RepositoryError(f"本地仓库不存在: {marker}")
        shutil.rmtree(marker)
        logger.info("已删除本地仓库: %s", marker)
        return marker

    # ------------------------------------------------------------------
    # 全局仓库
    # ------------------------------------------------------------------

    def locate_global(self, *, validate: bool = True) -> RepositoryLocation:
        """按优先级确定全局仓库位置

        validate=True 时配置文件中的路径必须是已存在的目录；
        validate=False 供 setup 等在仓库创建前的场景使用。
        """
        override = self.environ.get(REPO_PATH_ENV, "").strip()
        if override:
            return RepositoryLocation(Path(override), LocationKind.ENVIRONMENT_OVERRIDE)

        configured = read_text_trimmed(self.config_file)
        if not configured and not self.is_windows:
            configured = read_text_trimmed(Path(self.config.system_config_file))
        if configured:
            path = Path(configured)
            if validate:
                _check_directory(path)
            return RepositoryLocation(path, LocationKind.GLOBAL_CONFIG)

        if self.is_windows:
            path = self._windows_default()
            path.mkdir(parents=True, exist_ok=True)
            return RepositoryLocation(path, LocationKind.PLATFORM_DEFAULT)

        raise RepositoryNotConfiguredError(
            "全局仓库未配置，请先执行 haxelib setup"
        )

    def get_global(self) -> Path:
        """全局仓库路径（校验存在性）"""
        return self.locate_global(validate=True).path

    def get_global_unchecked(self) -> Path:
        """全局仓库路径（不校验存在性）"""
        return self.locate_global(validate=False).path

    def find_effective(
        self, start_dir: str | Path, *, force_global: bool = False,
    ) -> RepositoryLocation:
        """本次调用实际使用的仓库：本地优先，其次全局"""
        if not force_global:
            local = self.find_local(start_dir)
            if local is not None:
                return RepositoryLocation(local, LocationKind.LOCAL_MARKER_FOUND)
        return self.locate_global(validate=True)

    def save_global(self, path: str | Path) -> Path:
        """保存全局仓库路径到用户配置文件，目录不存在时递归创建"""
        target = Path(path).expanduser().absolute()
        if target == self.config_file.absolute():
            raise ReservedPathError(
                f"仓库路径不能与配置文件相同: {target}"
            )
        if target.exists() and not target.is_dir():
            raise InvalidRepositoryPathError(
                f"仓库路径已存在且不是目录: {target}", path=str(target),
            )
        target.mkdir(parents=True, exist_ok=True)
        atomic_write(self.config_file, f"{target}\n")
        logger.info("全局仓库已设置为: %s", target)
        return target

    def _windows_default(self) -> Path:
        haxepath = self.environ.get("HAXEPATH", "").strip()
        if haxepath:
            return Path(haxepath) / "lib"
        return Path.home() / "haxelib"


def _has_exact_child_dir(parent: Path, name: str) -> bool:
    """按名称精确匹配子目录（大小写不敏感的文件系统上也不做模糊匹配）"""
    try:
        entries = os.listdir(parent)
    except OSError:
        return False
    return name in entries and (parent / name).is_dir()


def _check_directory(path: Path) -> None:
    if not path.exists():
        raise InvalidRepositoryPathError(f"仓库目录不存在: {path}", path=str(path))
    if not path.is_dir():
        raise InvalidRepositoryPathError(f"仓库路径不是目录: {path}", path=str(path))
