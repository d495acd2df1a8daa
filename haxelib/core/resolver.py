"""依赖解析与依赖安装

DependencyResolver:
    只做本地解析，不触发任何下载。从起始库出发递归遍历 haxelib.json
    中的依赖，每个库在一次解析中最多出现一次，所有路径必须同意同一版本，
    否则抛 VersionConflictError（不重试）。

DependencyInstaller:
    安装清单声明的依赖: 普通依赖走远程目录 + ArchiveInstaller，
    git/hg 依赖走 VcsBackend。InstallSession 记录本次运行已处理的
    VCS 库及其分支，同一个库经由多条依赖路径到达时不会重复处理。
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from haxelib.core.archive import ArchiveInstaller
from haxelib.core.exceptions import NotInstalledError, VcsError, VersionConflictError
from haxelib.core.manifest import read_manifest
from haxelib.core.models import DEV_VERSION, DependencySpec, Manifest, ResolutionNode, VcsKind
from haxelib.core.protocols import ArchiveFetcher, CatalogClient, Reporter
from haxelib.core.store import PackageStore
from haxelib.core.vcs import VcsBackend
from haxelib.core.version import escape_version
from haxelib.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)


# =========================================================================
# 本地解析
# =========================================================================


class DependencyResolver:
    """基于仓库现状的依赖解析器"""

    def __init__(self, store: PackageStore) -> None:
        self.store = store

    def resolve(
        self,
        name: str,
        version: str | None = None,
        into: dict[str, ResolutionNode] | None = None,
        *,
        recurse: bool = True,
    ) -> dict[str, ResolutionNode]:
        """解析 name（及其依赖）到 into，返回 into

        version 为 None 时使用当前版本；设置了开发目录时开发目录优先。
        """
        into = {} if into is None else into
        self._resolve(name, version, into, recurse)
        return into

    def _resolve(
        self,
        name: str,
        version: str | None,
        into: dict[str, ResolutionNode],
        recurse: bool,
    ) -> None:
        existing = into.get(name)
        if existing is not None:
            _check_agrees(existing, version)
            return

        node = self.locate(name, version)
        into[name] = node
        if not recurse or node.manifest is None:
            return

        for dep in node.manifest.dependencies:
            wanted = dep.vcs.value if dep.vcs else dep.version
            if dep.name in into:
                _check_agrees(into[dep.name], wanted)
                continue
            self._resolve(dep.name, wanted, into, recurse)

    def locate(self, name: str, version: str | None = None) -> ResolutionNode:
        """定位单个库的安装目录，不递归"""
        if not self.store.is_installed(name):
            raise NotInstalledError(name)

        dev = self.store.get_dev(name)
        if dev is not None and not self.store.is_dev_path_excluded(dev):
            dev_path = Path(dev)
            if not dev_path.is_dir():
                raise NotInstalledError(name, f"{DEV_VERSION} ({dev})")
            return ResolutionNode(name, DEV_VERSION, dev_path, read_manifest(dev_path))
        if dev is not None:
            logger.info("库 %s 的开发目录被 HAXELIB_DEV_FILTER 排除: %s", name, dev)

        version = version or self.store.current_version(name)
        if not version:
            raise NotInstalledError(name)
        path = self.store.version_path(name, version)
        if not path.is_dir():
            raise NotInstalledError(name, version)
        return ResolutionNode(name, version, path, read_manifest(path))


def _check_agrees(node: ResolutionNode, version: str | None) -> None:
    if version is None or node.resolved_version in (version, DEV_VERSION):
        return
    raise VersionConflictError(node.project, node.resolved_version, version)


# =========================================================================
# 依赖安装
# =========================================================================


@dataclass
class InstallSession:
    """一次命令调用内的安装记录"""

    vcs_branches: dict[str, str] = field(default_factory=dict)
    installed: set[tuple[str, str]] = field(default_factory=set)


class DependencyInstaller:
    """按清单安装依赖（远程压缩包或 VCS）"""

    def __init__(
        self,
        store: PackageStore,
        catalog: CatalogClient,
        fetcher: ArchiveFetcher,
        reporter: Reporter,
        executor: CommandExecutor | None = None,
    ) -> None:
        self.store = store
        self.catalog = catalog
        self.fetcher = fetcher
        self.reporter = reporter
        self.executor = executor
        self.archive = ArchiveInstaller(store)

    def backend(self, kind: VcsKind) -> VcsBackend:
        return VcsBackend(kind, self.executor)

    def install_dependencies(
        self,
        dependencies: list[DependencySpec],
        *,
        skip: bool = False,
        session: InstallSession | None = None,
    ) -> None:
        if skip:
            return
        session = session if session is not None else InstallSession()
        for dep in dependencies:
            if dep.vcs is not None:
                self.install_vcs(
                    dep.name, dep.vcs, dep.vcs_url,
                    branch=dep.vcs_branch or None,
                    subdir=dep.vcs_subdir,
                    session=session,
                )
            else:
                self._install_archive_dependency(dep, session)

    def _install_archive_dependency(self, dep: DependencySpec, session: InstallSession) -> None:
        if dep.version is None and self._dev_satisfies(dep.name):
            logger.info("依赖 %s 使用开发目录，跳过安装", dep.name)
            return

        version = dep.version or self.catalog.latest_version(dep.name)
        key = (dep.name, version)
        if key in session.installed:
            return
        session.installed.add(key)

        if self.store.has_version(dep.name, version):
            logger.info("依赖 %s@%s 已安装", dep.name, version)
            manifest = read_manifest(self.store.version_path(dep.name, version))
        else:
            self.reporter.info(f"安装依赖 {dep.name} {version}")
            manifest = self.install_from_catalog(dep.name, version)

        if manifest is not None:
            self.install_dependencies(manifest.dependencies, session=session)

    def _dev_satisfies(self, name: str) -> bool:
        if not self.store.lib_path(name).is_dir():
            return False
        dev = self.store.get_dev(name)
        return (
            dev is not None
            and Path(dev).is_dir()
            and not self.store.is_dev_path_excluded(dev)
        )

    def install_from_catalog(
        self, name: str, version: str, *, set_current: bool = False,
    ) -> Manifest:
        """下载指定版本的压缩包并安装，已安装时只处理 set_current"""
        if self.store.has_version(name, version):
            if set_current:
                self.store.set_current(name, version)
            manifest = read_manifest(self.store.version_path(name, version))
            return manifest or Manifest(name=name, version=version)

        self.store.ensure_repository()
        url = self.catalog.archive_url(name, version)
        dest = self.store.root / f"{escape_version(name)}-{escape_version(version)}.zip"
        logger.info("下载 %s@%s: %s", name, version, url)
        self.fetcher.download(url, dest)
        return self.archive.install(dest, set_current=set_current, delete_source_after=True)

    # ------------------------------------------------------------------
    # VCS
    # ------------------------------------------------------------------

    def install_vcs(
        self,
        name: str,
        kind: VcsKind,
        url: str,
        *,
        branch: str | None = None,
        subdir: str = "",
        version: str | None = None,
        session: InstallSession | None = None,
        skip_dependencies: bool = False,
    ) -> Manifest | None:
        """从 git/hg 安装库

        工作副本已存在时:
          - 本次运行已处理过且分支相同: 直接跳过
          - 本次运行已处理过但分支不同: 确认后删除重新 clone
          - 本次运行未处理过: 原地更新
        """
        session = session if session is not None else InstallSession()
        backend = self.backend(kind)
        lib = self.store.lib_path(name)
        work_dir = lib / backend.directory_name
        wanted = branch or ""

        if work_dir.exists():
            if name in session.vcs_branches:
                recorded = session.vcs_branches[name]
                if recorded == wanted:
                    logger.debug("库 %s 本次已处理，跳过", name)
                    return None
                question = (
                    f"库 {name} 已从 {backend.name} 安装（分支 {recorded or '默认'}），"
                    f"是否覆盖为分支 {wanted or '默认'}？"
                )
                if not self.reporter.confirm(question):
                    return None
                self._reclone(backend, name, work_dir, url, branch, version, session)
            else:
                session.vcs_branches[name] = wanted
                if backend.update(work_dir):
                    self.reporter.info(f"库 {name} 已更新")
                else:
                    self.reporter.info(f"库 {name} 已是最新")
        else:
            self._clone(backend, name, work_dir, url, branch, version, session)

        self._activate(name, backend.directory_name, work_dir, subdir)
        manifest = read_manifest(work_dir / subdir if subdir else work_dir)
        if manifest is not None:
            self.install_dependencies(
                manifest.dependencies, skip=skip_dependencies, session=session,
            )
        return manifest

    def _clone(
        self,
        backend: VcsBackend,
        name: str,
        work_dir: Path,
        url: str,
        branch: str | None,
        version: str | None,
        session: InstallSession,
    ) -> None:
        session.vcs_branches[name] = branch or ""
        self.store.ensure_repository()
        lib = work_dir.parent
        try:
            backend.clone(work_dir, url, branch, version)
        except VcsError:
            shutil.rmtree(work_dir, ignore_errors=True)
            if lib.is_dir() and not any(lib.iterdir()):
                lib.rmdir()
            raise
        self.reporter.info(f"库 {name} 已从 {backend.name} 安装")

    def _reclone(
        self,
        backend: VcsBackend,
        name: str,
        work_dir: Path,
        url: str,
        branch: str | None,
        version: str | None,
        session: InstallSession,
    ) -> None:
        """旧工作副本先移到隐藏目录，新 clone 失败时原样恢复"""
        self.store.ensure_repository()
        backup = work_dir.with_name(f".{work_dir.name}.old")
        if backup.exists():
            shutil.rmtree(backup)
        work_dir.rename(backup)
        previous = session.vcs_branches.get(name)
        try:
            self._clone(backend, name, work_dir, url, branch, version, session)
        except VcsError:
            shutil.rmtree(work_dir, ignore_errors=True)
            backup.rename(work_dir)
            if previous is not None:
                session.vcs_branches[name] = previous
            raise
        shutil.rmtree(backup)

    def _activate(self, name: str, tag: str, work_dir: Path, subdir: str) -> None:
        self.store.set_current(name, tag)
        if subdir:
            self.store.set_dev(name, str(work_dir / subdir))
            return
        dev = self.store.get_dev(name)
        if dev and Path(dev).absolute().is_relative_to(work_dir.absolute()):
            self.store.clear_dev(name)
