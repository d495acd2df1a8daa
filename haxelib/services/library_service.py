"""库管理服务 — 命令层的统一入口

CLI 的每个命令对应这里的一个方法，服务只负责编排:
  - 安装: install / install_file / install_manifest / install_hxml / install_vcs
  - 更新: update / update_all（批量更新时单个库失败只记录日志，继续下一个）
  - 状态: remove / set_version / dev / list_libraries
  - 编译器集成: path / libpath / run

单目标命令的异常直接向上抛给 CLI，以非零状态退出。
"""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Iterator, MutableMapping
from contextlib import contextmanager
from pathlib import Path

from haxelib.core.exceptions import ExecutionError, HaxelibError, NotInstalledError, ValidationError
from haxelib.core.manifest import check_name, parse_manifest
from haxelib.core.models import (
    DEV_VERSION,
    MANIFEST_FILE,
    InstalledLibrary,
    Manifest,
    ResolutionNode,
    VcsKind,
)
from haxelib.core.protocols import ArchiveFetcher, CatalogClient, Reporter
from haxelib.core.resolver import DependencyInstaller, DependencyResolver, InstallSession
from haxelib.core.store import PackageStore
from haxelib.core.vcs import detect_backend
from haxelib.utils.shell import CommandExecutor, get_executor

logger = logging.getLogger(__name__)

RUN_FLAG_ENV = "HAXELIB_RUN"
RUN_NAME_ENV = "HAXELIB_RUN_NAME"

_HXML_LIB_RE = re.compile(r"^\s*(?:-lib|-L|--library)\s+([^\s:]+)(?::(\S+))?\s*$")


class LibraryService:
    """库管理服务"""

    def __init__(
        self,
        store: PackageStore,
        catalog: CatalogClient,
        fetcher: ArchiveFetcher,
        reporter: Reporter,
        executor: CommandExecutor | None = None,
        environ: MutableMapping[str, str] | None = None,
    ) -> None:
        self.store = store
        self.catalog = catalog
        self.reporter = reporter
        self.executor = executor or get_executor()
        self.environ = os.environ if environ is None else environ
        self.resolver = DependencyResolver(store)
        self.installer = DependencyInstaller(
            store, catalog, fetcher, reporter, executor=self.executor,
        )

    # ------------------------------------------------------------------
    # 安装
    # ------------------------------------------------------------------

    def install(
        self,
        name: str,
        version: str | None = None,
        *,
        skip_dependencies: bool = False,
        session: InstallSession | None = None,
    ) -> Manifest:
        """从远程目录安装，未指定版本时取最新版本，并设为当前版本"""
        check_name(name)
        version = version or self.catalog.latest_version(name)
        if self.store.has_version(name, version):
            self.reporter.info(f"{name} {version} 已安装")
        manifest = self.installer.install_from_catalog(name, version, set_current=True)
        self.installer.install_dependencies(
            manifest.dependencies, skip=skip_dependencies,
            session=session if session is not None else InstallSession(),
        )
        self.reporter.info(f"{name} {version} 安装完成")
        return manifest

    def install_file(self, path: str | Path, *, skip_dependencies: bool = False) -> Manifest:
        """安装本地 zip 文件，安装后不删除用户的文件"""
        manifest = self.installer.archive.install(
            Path(path), set_current=True, delete_source_after=False,
        )
        self.installer.install_dependencies(
            manifest.dependencies, skip=skip_dependencies, session=InstallSession(),
        )
        self.reporter.info(f"{manifest.name} {manifest.version} 安装完成")
        return manifest

    def install_manifest(self, path: str | Path = MANIFEST_FILE) -> Manifest:
        """安装本地 haxelib.json 声明的全部依赖"""
        p = Path(path)
        manifest = parse_manifest(p.read_bytes(), source=str(p))
        self.installer.install_dependencies(manifest.dependencies, session=InstallSession())
        return manifest

    def install_hxml(self, path: str | Path) -> list[str]:
        """安装 hxml 中 -lib name[:version] 引用的库，已安装的跳过"""
        libs = parse_hxml_libraries(Path(path).read_text(encoding="utf-8"))
        session = InstallSession()
        installed = []
        for name, version in libs:
            if version is None and self.store.is_installed(name):
                logger.info("%s 已安装，跳过", name)
                continue
            if version is not None and self.store.has_version(name, version):
                logger.info("%s@%s 已安装，跳过", name, version)
                continue
            self.install(name, version, session=session)
            installed.append(name)
        return installed

    def install_vcs(
        self,
        name: str,
        kind: VcsKind,
        url: str,
        *,
        branch: str | None = None,
        subdir: str = "",
        version: str | None = None,
        skip_dependencies: bool = False,
    ) -> Manifest | None:
        check_name(name)
        return self.installer.install_vcs(
            name, kind, url,
            branch=branch, subdir=subdir, version=version,
            session=InstallSession(), skip_dependencies=skip_dependencies,
        )

    # ------------------------------------------------------------------
    # 更新
    # ------------------------------------------------------------------

    def update(self, name: str, *, session: InstallSession | None = None) -> bool:
        """更新单个库，返回是否有变化

        当前版本是 VCS 工作副本时原地拉取，否则安装远程目录中的最新版本。
        """
        if not self.store.is_installed(name):
            raise NotInstalledError(name)
        session = session if session is not None else InstallSession()

        backend = detect_backend(self.store.lib_path(name), self.executor)
        current = self.store.current_version(name)
        if backend is not None and current == backend.directory_name:
            work_dir = self.store.version_path(name, current)
            session.vcs_branches.setdefault(name, "")
            changed = backend.update(work_dir)
            if changed:
                self.reporter.info(f"{name} 已更新")
                manifest = self.resolver.locate(name).manifest
                if manifest is not None:
                    self.installer.install_dependencies(manifest.dependencies, session=session)
            return changed

        if self.store.get_dev(name) is not None:
            self.reporter.warn(f"{name} 使用开发目录，跳过更新")
            return False

        latest = self.catalog.latest_version(name)
        if current == latest:
            logger.info("%s 已是最新版本 %s", name, latest)
            return False
        manifest = self.installer.install_from_catalog(name, latest, set_current=True)
        self.installer.install_dependencies(manifest.dependencies, session=session)
        self.reporter.info(f"{name} 已更新到 {latest}")
        return True

    def update_all(self) -> dict[str, str]:
        """更新全部库，返回 {name: 状态}，单个库失败不影响其余库"""
        results: dict[str, str] = {}
        failed: dict[str, str] = {}
        session = InstallSession()
        for name in self.store.list_libraries():
            try:
                changed = self.update(name, session=session)
                results[name] = "updated" if changed else "up-to-date"
            except (HaxelibError, OSError) as exc:
                logger.exception("更新失败: %s", name)
                failed[name] = str(exc)
                results[name] = f"[FAILED] {exc}"
        if failed:
            logger.warning(
                "更新汇总: %d 成功, %d 失败 (%s)",
                len(results) - len(failed), len(failed), ", ".join(failed),
            )
        return results

    # ------------------------------------------------------------------
    # 状态
    # ------------------------------------------------------------------

    def remove(self, name: str, version: str | None = None) -> None:
        if version:
            self.store.remove_version(name, version)
            self.reporter.info(f"已删除 {name} {version}")
        else:
            self.store.remove_library(name)
            self.reporter.info(f"已删除库 {name}")

    def set_version(self, name: str, version: str) -> None:
        """切换当前版本，未安装时经确认后先安装"""
        if not self.store.has_version(name, version):
            if not self.reporter.confirm(f"{name} {version} 未安装，是否现在安装？"):
                raise NotInstalledError(name, version)
            self.install(name, version)
        self.store.set_current(name, version)
        self.reporter.info(f"{name} 当前版本: {version}")

    def dev(self, name: str, path: str | None = None) -> None:
        """设置开发目录；path 为空时取消"""
        if not path:
            if self.store.clear_dev(name):
                self.reporter.info(f"{name} 已取消开发目录")
            return
        # 含 %VAR% 的路径原样保存，读取时再展开
        value = path if "%" in path else str(Path(path).absolute())
        self.store.set_dev(name, value)
        self.reporter.info(f"{name} 开发目录: {value}")

    def list_libraries(self, name_filter: str = "") -> list[InstalledLibrary]:
        needle = name_filter.lower()
        return [
            self.store.info(name)
            for name in self.store.list_libraries()
            if needle in name.lower()
        ]

    # ------------------------------------------------------------------
    # 编译器集成
    # ------------------------------------------------------------------

    def resolve_all(self, libs: list[tuple[str, str | None]]) -> dict[str, ResolutionNode]:
        into: dict[str, ResolutionNode] = {}
        for name, version in libs:
            self.resolver.resolve(name, version, into)
        return into

    def path(self, libs: list[tuple[str, str | None]]) -> list[str]:
        """编译参数: 每个库的 class path、ndll 目录和 -D name=version"""
        lines: list[str] = []
        for node in self.resolve_all(libs).values():
            class_path = node.manifest.class_path if node.manifest else ""
            cp = node.installed_path / class_path if class_path else node.installed_path
            lines.append(str(cp) + os.sep)
            ndll = node.installed_path / "ndll"
            if ndll.is_dir():
                lines.append(f"-L {ndll}{os.sep}")
            lines.append(f"-D {node.project}={_display_version(node)}")
        return lines

    def libpath(self, name: str) -> Path:
        return self.resolver.locate(name).installed_path

    def run(self, name: str, args: list[str], cwd: str | Path = ".") -> int:
        """运行库自带的脚本（run.n 或清单的 main），返回退出码"""
        node = self.resolver.locate(name)
        caller_dir = str(Path(cwd).absolute()) + os.sep
        if (node.installed_path / "run.n").is_file():
            cmd = ["neko", "run.n", *args, caller_dir]
        elif node.manifest is not None and node.manifest.main:
            class_path = node.installed_path / node.manifest.class_path
            cmd = ["haxe", "-cp", str(class_path), "--run", node.manifest.main, *args, caller_dir]
        else:
            raise ExecutionError(f"库 {name} 没有可运行的脚本")

        with run_markers(self.environ, name):
            result = self.executor.execute(
                cmd, cwd=str(node.installed_path), env=dict(self.environ), capture=False,
            )
        if result.returncode == 127 and result.stderr:
            raise ExecutionError(f"无法启动 {cmd[0]}: {result.stderr}")
        return result.returncode


@contextmanager
def run_markers(environ: MutableMapping[str, str], name: str) -> Iterator[None]:
    """设置 run 脚本标记环境变量，退出时恢复原值（支持嵌套调用）"""
    saved = {key: environ.get(key) for key in (RUN_FLAG_ENV, RUN_NAME_ENV)}
    environ[RUN_FLAG_ENV] = "1"
    environ[RUN_NAME_ENV] = name
    try:
        yield
    finally:
        for key, value in saved.items():
            if value is None:
                environ.pop(key, None)
            else:
                environ[key] = value


def parse_hxml_libraries(text: str) -> list[tuple[str, str | None]]:
    """提取 hxml 中的 -lib 引用"""
    libs = []
    for line in text.splitlines():
        m = _HXML_LIB_RE.match(line)
        if m:
            libs.append((m.group(1), m.group(2)))
    return libs


def parse_lib_arg(arg: str) -> tuple[str, str | None]:
    """解析命令行中的 name 或 name:version"""
    name, _, version = arg.partition(":")
    if not name:
        raise ValidationError(f"非法的库参数: {arg!r}")
    return check_name(name), version or None


def _display_version(node: ResolutionNode) -> str:
    if node.resolved_version == DEV_VERSION and node.manifest is not None:
        return node.manifest.version or DEV_VERSION
    return node.resolved_version
