"""压缩包安装器

安装流程:
  1. 读取 zip 为 (路径, 内容, 时间戳) 条目列表
  2. 定位清单: 取路径最浅的 haxelib.json（同深度取字典序最小），
     其所在目录作为 base，兼容外层多包一层目录的压缩包
  3. 宽松解析清单（只校验 JSON 语法）
  4. 去掉 base 前缀后校验每个相对路径，拒绝绝对路径和 .. 段
  5. 解压到 <repo>/<库名>/<版本>/，目录已存在则跳过解压
  6. 首次安装或 set_current=True 时设置当前版本
"""

from __future__ import annotations

import io
import logging
import os
import re
import shutil
import time
import zipfile
from dataclasses import dataclass
from pathlib import Path

from haxelib.core.exceptions import ManifestError, ManifestNotFoundError, UnsafePathError
from haxelib.core.manifest import check_name, parse_manifest
from haxelib.core.models import MANIFEST_FILE, Manifest
from haxelib.core.store import PackageStore

logger = logging.getLogger(__name__)

_SEPARATORS_RE = re.compile(r"[/\\]")
_DRIVE_RE = re.compile(r"^[A-Za-z]:")


@dataclass
class ArchiveEntry:
    """压缩包中的一个条目"""

    path: str
    data: bytes
    mtime: float = 0.0

    @property
    def is_dir(self) -> bool:
        return self.path.endswith("/")


def read_entries(source: bytes | str | Path) -> list[ArchiveEntry]:
    """读取 zip 内容（字节或文件路径）为条目列表，按各条目自身的压缩方式解压"""
    raw = source if isinstance(source, bytes) else Path(source).read_bytes()
    try:
        with zipfile.ZipFile(io.BytesIO(raw)) as zf:
            return [
                ArchiveEntry(
                    path=info.filename.replace("\\", "/"),
                    data=b"" if info.is_dir() else zf.read(info),
                    mtime=time.mktime(info.date_time + (0, 0, -1)),
                )
                for info in zf.infolist()
            ]
    except zipfile.BadZipFile as e:
        raise ManifestError(f"不是合法的 zip 压缩包: {e}") from e


def find_manifest_entry(entries: list[ArchiveEntry]) -> ArchiveEntry:
    """路径最浅的 haxelib.json，同深度取字典序最小"""
    candidates = [
        e for e in entries
        if not e.is_dir and e.path.rsplit("/", 1)[-1] == MANIFEST_FILE
    ]
    if not candidates:
        raise ManifestNotFoundError(f"压缩包中没有 {MANIFEST_FILE}")
    return min(candidates, key=lambda e: (e.path.count("/"), e.path))


def check_safe_path(rel: str) -> None:
    """拒绝以分隔符开头、带盘符或包含 .. 段的相对路径"""
    if rel.startswith(("/", "\\")) or _DRIVE_RE.match(rel):
        raise UnsafePathError(f"压缩包包含绝对路径: {rel!r}", path=rel)
    if any(seg == ".." for seg in _SEPARATORS_RE.split(rel)):
        raise UnsafePathError(f"压缩包包含上级目录引用: {rel!r}", path=rel)


class ArchiveInstaller:
    """把压缩包安装到仓库"""

    def __init__(self, store: PackageStore) -> None:
        self.store = store

    def install(
        self,
        archive: bytes | str | Path,
        *,
        set_current: bool = False,
        delete_source_after: bool = True,
    ) -> Manifest:
        """安装压缩包，返回其清单以便调用方继续安装依赖

        delete_source_after=False 用于安装用户本地文件，不能删除用户的文件。
        """
        entries = read_entries(archive)
        manifest_entry = find_manifest_entry(entries)
        base = manifest_entry.path[: -len(MANIFEST_FILE)]
        manifest = parse_manifest(manifest_entry.data, source=manifest_entry.path)

        name = check_name(manifest.name)
        version = manifest.version.strip()
        if not version or _SEPARATORS_RE.search(version):
            raise ManifestError(f"库 {name} 的版本号不能用作目录名: {version!r}")

        target = self.store.version_path(name, version)
        if target.is_dir():
            logger.info("%s@%s 已安装，跳过解压", name, version)
            if set_current:
                self.store.set_current(name, version)
            return manifest

        files: list[tuple[str, ArchiveEntry]] = []
        for entry in entries:
            if not entry.path.startswith(base):
                continue
            rel = entry.path[len(base):]
            if not rel:
                continue
            check_safe_path(rel)
            files.append((rel, entry))

        self.store.ensure_repository()
        logger.info("安装 %s@%s -> %s", name, version, target)
        try:
            self._extract(target, files)
        except BaseException:
            # 中断时同样清理，半成品目录会被误认为已完整安装
            shutil.rmtree(target, ignore_errors=True)
            raise

        if set_current or self.store.current_version(name) is None:
            self.store.set_current(name, version)

        if delete_source_after and not isinstance(archive, bytes):
            Path(archive).unlink(missing_ok=True)
        return manifest

    @staticmethod
    def _extract(target: Path, files: list[tuple[str, ArchiveEntry]]) -> None:
        target.mkdir(parents=True)
        root = target.resolve()
        for rel, entry in files:
            dest = (target / rel).resolve()
            if dest != root and root not in dest.parents:
                raise UnsafePathError(f"解压路径越界: {rel!r}", path=rel)
            if entry.is_dir:
                dest.mkdir(parents=True, exist_ok=True)
                continue
            dest.parent.mkdir(parents=True, exist_ok=True)
            dest.write_bytes(entry.data)
            if entry.mtime:
                os.utime(dest, (entry.mtime, entry.mtime))
