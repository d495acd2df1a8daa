"""外部命令执行 — 统一子进程调用

VCS 后端和 run 脚本都通过 CommandExecutor 协议调用子进程，
测试时注入 fake 实现即可，无需 patch subprocess。
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)


# =========================================================================
# 命令执行结果
# =========================================================================

@dataclass
class CommandResult:
    """命令执行结果（与 subprocess 解耦）"""

    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0


# =========================================================================
# 命令执行器协议
# =========================================================================

class CommandExecutor(Protocol):
    """命令执行器协议 — 抽象子进程调用"""

    def execute(
        self,
        cmd: list[str],
        *,
        cwd: str = ".",
        env: dict[str, str] | None = None,
        capture: bool = True,
    ) -> CommandResult:
        """执行命令并返回结果"""
        ...


# =========================================================================
# 默认实现: 本地执行器
# =========================================================================

class LocalExecutor:
    """本地命令执行器（默认实现）

    capture=False 时子进程直接继承终端的 stdout/stderr（run 脚本、交互式 VCS 认证）。
    可执行文件不存在时返回 returncode=127，而不是抛 OSError。
    """

    def execute(
        self,
        cmd: list[str],
        *,
        cwd: str = ".",
        env: dict[str, str] | None = None,
        capture: bool = True,
    ) -> CommandResult:
        logger.debug("执行: %s (cwd=%s)", " ".join(cmd), cwd)
        try:
            r = subprocess.run(
                cmd, capture_output=capture, text=True,
                cwd=cwd, env=env, check=False,
            )
        except FileNotFoundError as e:
            return CommandResult(returncode=127, stdout="", stderr=str(e))
        return CommandResult(
            returncode=r.returncode,
            stdout=r.stdout or "",
            stderr=r.stderr or "",
        )


# =========================================================================
# 全局默认执行器（可替换）
# =========================================================================

_default_executor: CommandExecutor = LocalExecutor()


def get_executor() -> CommandExecutor:
    """获取全局默认命令执行器"""
    return _default_executor


def set_executor(executor: CommandExecutor) -> None:
    """替换全局默认命令执行器（用于测试）"""
    global _default_executor  # noqa: PLW0603
    _default_executor = executor
