"""版本控制后端 — Git / Mercurial

两种后端是封闭集合，由 VcsKind 显式分派，而不是子类覆盖:
  - probe():  查找可执行文件（PATH 优先，其次各平台常见安装位置），不抛异常
  - clone():  clone 到目标目录，按需检出分支 / tag 与指定修订
  - update(): 原地拉取更新，返回是否有变化

clone 之后检出失败时，半成品目录由调用方负责删除。
"""

from __future__ import annotations

import logging
import platform
import shutil
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from haxelib.core.exceptions import (
    CantCheckoutBranchError,
    CantCheckoutVersionError,
    CantCloneRepoError,
    VcsError,
    VcsUnavailableError,
)
from haxelib.core.models import VcsKind
from haxelib.utils.shell import CommandExecutor, CommandResult, get_executor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _VcsProfile:
    """单个 VCS 的命令行差异"""

    executable: str
    label: str
    marker: str
    checkout_branch: tuple[str, ...]
    checkout_version: tuple[str, ...]
    fallbacks: dict[str, tuple[str, ...]] = field(default_factory=dict)


_PROFILES: dict[VcsKind, _VcsProfile] = {
    VcsKind.GIT: _VcsProfile(
        executable="git",
        label="Git",
        marker=".git",
        checkout_branch=("checkout",),
        checkout_version=("checkout",),
        fallbacks={
            "Windows": (
                r"C:\Program Files\Git\bin\git.exe",
                r"C:\Program Files (x86)\Git\bin\git.exe",
                r"C:\cygwin64\bin\git.exe",
            ),
            "Darwin": (
                "/usr/local/bin/git",
                "/opt/homebrew/bin/git",
                "/usr/local/git/bin/git",
            ),
            "Linux": ("/usr/local/bin/git",),
        },
    ),
    VcsKind.HG: _VcsProfile(
        executable="hg",
        label="Mercurial",
        marker=".hg",
        checkout_branch=("update",),
        checkout_version=("update", "-r"),
        fallbacks={
            "Windows": (
                r"C:\Program Files\Mercurial\hg.exe",
                r"C:\Program Files\TortoiseHg\hg.exe",
            ),
            "Darwin": ("/usr/local/bin/hg", "/opt/homebrew/bin/hg"),
            "Linux": ("/usr/local/bin/hg",),
        },
    ),
}


class VcsBackend:
    """Git / Mercurial 后端"""

    def __init__(
        self,
        kind: VcsKind,
        executor: CommandExecutor | None = None,
        *,
        system: str | None = None,
        which: Callable[[str], str | None] = shutil.which,
    ) -> None:
        self.kind = kind
        self.profile = _PROFILES[kind]
        self.executor = executor or get_executor()
        self.system = system or platform.system()
        self._which = which
        self.available = False
        self.executable: str | None = None
        self._probed = False

    @property
    def name(self) -> str:
        return self.profile.label

    @property
    def directory_name(self) -> str:
        """库目录下存放工作副本的子目录名，同时也是其版本标签"""
        return self.kind.value

    def probe(self) -> bool:
        """查找可执行文件并设置 available，从不抛异常"""
        self._probed = True
        candidates: list[str] = []
        found = self._which(self.profile.executable)
        if found:
            candidates.append(found)
        candidates.extend(self.profile.fallbacks.get(self.system, ()))

        for exe in candidates:
            if self._executor_ok([exe, "--version"]):
                self.executable = exe
                self.available = True
                logger.debug("%s 可用: %s", self.name, exe)
                return True
        self.available = False
        logger.debug("%s 不可用（已尝试: %s）", self.name, ", ".join(candidates) or "无")
        return False

    def _executor_ok(self, cmd: list[str]) -> bool:
        try:
            return self.executor.execute(cmd).success
        except OSError:
            return False

    def _require(self) -> str:
        if not self._probed:
            self.probe()
        if not self.available or self.executable is None:
            raise VcsUnavailableError(
                f"找不到 {self.name} 可执行文件，请先安装 {self.profile.executable}"
            )
        return self.executable

    def _run(self, args: list[str], cwd: Path) -> CommandResult:
        exe = self._require()
        return self.executor.execute([exe, *args], cwd=str(cwd))

    # ------------------------------------------------------------------
    # clone / update
    # ------------------------------------------------------------------

    def clone(
        self,
        dest: Path,
        url: str,
        branch: str | None = None,
        version: str | None = None,
    ) -> None:
        """clone 到 dest 并按需检出 branch 与 version"""
        self._require()
        dest.parent.mkdir(parents=True, exist_ok=True)
        logger.info("%s clone: %s -> %s", self.name, url, dest)

        r = self._run(["clone", url, str(dest)], dest.parent)
        if not r.success:
            raise CantCloneRepoError(f"无法 clone 仓库 {url}", stderr=r.stderr)

        if branch:
            r = self._run([*self.profile.checkout_branch, branch], dest)
            if not r.success:
                raise CantCheckoutBranchError(
                    f"无法检出分支 {branch}", stderr=r.stderr,
                )

        if version and version != branch:
            r = self._run([*self.profile.checkout_version, version], dest)
            if not r.success:
                raise CantCheckoutVersionError(
                    f"无法检出版本 {version}", stderr=r.stderr,
                )

        if self.kind == VcsKind.GIT:
            r = self._run(["submodule", "update", "--init", "--recursive"], dest)
            if not r.success:
                logger.warning("子模块更新失败: %s", r.stderr.strip())

    def update(self, work_dir: Path) -> bool:
        """原地更新工作副本，返回是否拉取到新内容"""
        if self.kind == VcsKind.GIT:
            return self._update_git(work_dir)
        return self._update_hg(work_dir)

    def _update_git(self, work_dir: Path) -> bool:
        r = self._run(["fetch"], work_dir)
        if not r.success:
            raise VcsError(f"git fetch 失败: {work_dir}", stderr=r.stderr)

        head = self._run(["rev-parse", "HEAD"], work_dir)
        upstream = self._run(["rev-parse", "@{u}"], work_dir)
        if not upstream.success:
            # 检出的是 tag / 游离 HEAD，没有可跟踪的上游
            logger.info("%s 没有上游分支，跳过更新", work_dir)
            return False
        if head.stdout.strip() == upstream.stdout.strip():
            return False

        r = self._run(["merge", "--ff-only", "@{u}"], work_dir)
        if not r.success:
            raise VcsError(f"git 更新失败: {work_dir}", stderr=r.stderr)
        self._run(["submodule", "update", "--init", "--recursive"], work_dir)
        return True

    def _update_hg(self, work_dir: Path) -> bool:
        # hg incoming: 0 有新变更, 1 没有
        r = self._run(["incoming"], work_dir)
        if r.returncode == 1:
            return False
        if not r.success:
            raise VcsError(f"hg incoming 失败: {work_dir}", stderr=r.stderr)
        r = self._run(["pull", "-u"], work_dir)
        if not r.success:
            raise VcsError(f"hg 更新失败: {work_dir}", stderr=r.stderr)
        return True

    def is_working_copy(self, path: Path) -> bool:
        return (path / self.profile.marker).is_dir()


def get_backend(kind: VcsKind | str, executor: CommandExecutor | None = None) -> VcsBackend:
    return VcsBackend(VcsKind(kind), executor)


def detect_backend(
    lib_dir: Path, executor: CommandExecutor | None = None,
) -> VcsBackend | None:
    """检查库目录下是否有 VCS 工作副本，返回对应后端，没有则返回 None"""
    for kind in VcsKind:
        backend = VcsBackend(kind, executor)
        if backend.is_working_copy(lib_dir / backend.directory_name):
            return backend
    return None
