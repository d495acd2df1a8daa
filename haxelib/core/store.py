"""仓库目录布局管理

目录结构:
    <root>/<库名>/<版本>/...      各版本文件（库名、版本中的 . 替换为 ,）
    <root>/<库名>/.current        当前版本（单行文本）
    <root>/<库名>/.dev            开发目录（单行路径，支持 %VAR% 环境变量）

库状态: 不存在 -> 已安装(至少一个版本) -> 不存在（整库删除），
"有当前版本" 与 "有开发目录" 是已安装状态上的两个独立标志。
既没有 .current 也没有 .dev 的库目录视为未安装。

所有写操作执行前都会重新确认仓库目录仍然存在。
"""

from __future__ import annotations

import logging
import os
import re
import shutil
from collections.abc import Mapping
from pathlib import Path

from haxelib.core.exceptions import (
    NotInstalledError,
    ProtectedVersionError,
    RepositoryDeletedError,
)
from haxelib.core.manifest import check_name
from haxelib.core.models import CURRENT_FILE, DEV_FILE, DEV_VERSION, InstalledLibrary
from haxelib.core.version import SemVer, escape_version, latest, unescape_version
from haxelib.utils.fileio import atomic_write, read_text_trimmed

logger = logging.getLogger(__name__)

DEV_FILTER_ENV = "HAXELIB_DEV_FILTER"

_ENV_VAR_RE = re.compile(r"%([A-Za-z0-9_]+)%")


class PackageStore:
    """已安装库的磁盘布局"""

    def __init__(self, root: str | Path, environ: Mapping[str, str] | None = None) -> None:
        self.root = Path(root)
        self.environ = os.environ if environ is None else environ

    # ------------------------------------------------------------------
    # 路径
    # ------------------------------------------------------------------

    def lib_path(self, name: str) -> Path:
        return self.root / escape_version(check_name(name))

    def version_path(self, name: str, version: str) -> Path:
        return self.lib_path(name) / escape_version(version)

    def ensure_repository(self) -> None:
        """仓库目录可能在解析与执行之间被外部进程删除"""
        if not self.root.is_dir():
            raise RepositoryDeletedError(f"仓库目录已被删除: {self.root}")

    # ------------------------------------------------------------------
    # 查询
    # ------------------------------------------------------------------

    def is_installed(self, name: str) -> bool:
        lib = self.lib_path(name)
        return (lib / CURRENT_FILE).is_file() or (lib / DEV_FILE).is_file()

    def has_version(self, name: str, version: str) -> bool:
        return self.version_path(name, version).is_dir()

    def list_libraries(self) -> list[str]:
        """列出仓库中所有处于有效状态的库"""
        if not self.root.is_dir():
            return []
        names = []
        for entry in sorted(os.listdir(self.root), key=str.lower):
            lib = self.root / entry
            if entry.startswith(".") or not lib.is_dir():
                continue
            if (lib / CURRENT_FILE).is_file() or (lib / DEV_FILE).is_file():
                names.append(unescape_version(entry))
        return names

    def list_versions(self, name: str) -> list[str]:
        """列出已安装版本：语义化版本升序在前，其余标签按目录顺序追加"""
        lib = self.lib_path(name)
        if not lib.is_dir():
            return []
        semantic: list[SemVer] = []
        opaque: list[str] = []
        for entry in os.listdir(lib):
            if entry.startswith(".") or not (lib / entry).is_dir():
                continue
            version = unescape_version(entry)
            if SemVer.is_valid(version):
                semantic.append(SemVer.parse(version))
            else:
                opaque.append(version)
        return [str(v) for v in sorted(semantic)] + opaque

    def get_latest(self, name: str, *, include_pre_release: bool = False) -> str | None:
        return latest(self.list_versions(name), include_pre_release=include_pre_release)

    def current_version(self, name: str) -> str | None:
        """当前版本，无 .current 时返回 None（不考虑 .dev）"""
        return read_text_trimmed(self.lib_path(name) / CURRENT_FILE) or None

    def get_current(self, name: str) -> str:
        """当前生效版本，存在 .dev 时返回 "dev"（不检查开发目录是否存在）"""
        lib = self.lib_path(name)
        if not lib.is_dir():
            raise NotInstalledError(name)
        if (lib / DEV_FILE).is_file():
            return DEV_VERSION
        current = self.current_version(name)
        if current is None:
            raise NotInstalledError(name)
        return current

    def get_dev(self, name: str) -> str | None:
        """开发目录路径，每次读取时展开 %VAR%，未设置的变量展开为空串"""
        raw = read_text_trimmed(self.lib_path(name) / DEV_FILE)
        if not raw:
            return None
        return _ENV_VAR_RE.sub(lambda m: self.environ.get(m.group(1), ""), raw)

    def is_dev_path_excluded(self, path: str | Path) -> bool:
        """HAXELIB_DEV_FILTER 设置时，不以任一过滤前缀开头的开发目录被排除"""
        raw = self.environ.get(DEV_FILTER_ENV, "")
        filters = [_normalize(f) for f in raw.split(";") if f.strip()]
        if not filters:
            return False
        target = _normalize(str(path))
        return not any(target.startswith(f) for f in filters)

    def info(self, name: str) -> InstalledLibrary:
        lib = InstalledLibrary(name=name, installed_versions=self.list_versions(name))
        lib.dev_override_path = self.get_dev(name)
        lib.current_version = DEV_VERSION if lib.is_dev else self.current_version(name)
        return lib

    # ------------------------------------------------------------------
    # 修改
    # ------------------------------------------------------------------

    def set_current(self, name: str, version: str) -> None:
        """切换当前版本，目标版本目录必须存在；已是当前版本时不做任何事"""
        self.ensure_repository()
        if not self.has_version(name, version):
            raise NotInstalledError(name, version)
        if self.current_version(name) == version:
            return
        atomic_write(self.lib_path(name) / CURRENT_FILE, version)
        logger.info("库 %s 当前版本切换为 %s", name, version)

    def set_dev(self, name: str, path: str) -> None:
        """设置开发目录，库目录不存在时先创建；路径原样保存，读取时再展开变量"""
        self.ensure_repository()
        lib = self.lib_path(name)
        lib.mkdir(exist_ok=True)
        atomic_write(lib / DEV_FILE, path.strip())
        logger.info("库 %s 开发目录设置为 %s", name, path)

    def clear_dev(self, name: str) -> bool:
        """取消开发目录，返回是否真的删除了 .dev"""
        self.ensure_repository()
        dev_file = self.lib_path(name) / DEV_FILE
        if not dev_file.is_file():
            return False
        dev_file.unlink()
        logger.info("库 %s 已取消开发目录", name)
        return True

    def remove_version(self, name: str, version: str) -> None:
        """删除单个版本，当前版本和开发目录指向的版本受保护"""
        self.ensure_repository()
        target = self.version_path(name, version)
        if not target.is_dir():
            raise NotInstalledError(name, version)
        if self.current_version(name) == version:
            raise ProtectedVersionError(f"不能删除库 {name} 的当前版本 {version}")
        dev = self.get_dev(name)
        if dev and _is_within(Path(dev), target):
            raise ProtectedVersionError(
                f"不能删除库 {name} 的版本 {version}：它是开发目录"
            )
        shutil.rmtree(target)
        logger.info("已删除 %s@%s", name, version)

    def remove_library(self, name: str) -> None:
        """删除整个库"""
        self.ensure_repository()
        lib = self.lib_path(name)
        if not lib.is_dir():
            raise NotInstalledError(name)
        shutil.rmtree(lib)
        logger.info("已删除库 %s", name)


def _normalize(path: str) -> str:
    return path.strip().replace("\\", "/").lower()


def _is_within(path: Path, root: Path) -> bool:
    try:
        resolved = path.resolve()
        return resolved == root.resolve() or root.resolve() in resolved.parents
    except OSError:
        return False
