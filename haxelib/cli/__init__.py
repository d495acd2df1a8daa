"""haxelib 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
"""

from __future__ import annotations

import os
from typing import Any

import click

from haxelib import __version__
from haxelib.core.config import init_config
from haxelib.core.exceptions import HaxelibError
from haxelib.services.container import ServiceContainer, get_container, set_container
from haxelib.utils.logger import setup_logging


def _svc() -> ServiceContainer:
    """获取全局服务容器的快捷方式"""
    return get_container()


class ClickReporter:
    """终端 Reporter: 提示用 click.echo，确认用 click.confirm

    --always / --never 时不再询问。
    """

    def __init__(self, always: bool = False, never: bool = False) -> None:
        self.always = always
        self.never = never

    def info(self, message: str) -> None:
        click.echo(message)

    def warn(self, message: str) -> None:
        click.echo(f"警告: {message}", err=True)

    def confirm(self, question: str) -> bool:
        if self.always:
            click.echo(f"{question} [y]")
            return True
        if self.never:
            click.echo(f"{question} [n]")
            return False
        return click.confirm(question, default=False)


class HaxelibGroup(click.Group):
    """把 HaxelibError 转成 ClickException，以非零状态退出"""

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except HaxelibError as e:
            details = list(getattr(e, "details", None) or [])
            stderr = getattr(e, "stderr", "").strip()
            if stderr:
                details.append(stderr)
            message = "\n".join([f"[{e.code}] {e}", *(f"  - {d}" for d in details)])
            raise click.ClickException(message) from e


@click.group(cls=HaxelibGroup)
@click.version_option(version=__version__)
@click.option("--global", "force_global", is_flag=True, help="忽略本地仓库，使用全局仓库")
@click.option("--always", is_flag=True, help="所有确认自动回答 yes")
@click.option("--never", is_flag=True, help="所有确认自动回答 no")
@click.option("--debug", is_flag=True, help="输出调试日志")
@click.option("--cwd", default=".", type=click.Path(file_okay=False), help="工作目录")
@click.option("--config", "config_path", default=None, help="YAML 配置文件路径")
def main(
    force_global: bool, always: bool, never: bool,
    debug: bool, cwd: str, config_path: str | None,
) -> None:
    """haxelib - Haxe 库管理器"""
    setup_logging(
        level="DEBUG" if debug else os.getenv("HAXELIB_LOG_LEVEL", "WARNING"),
        json_output=os.getenv("HAXELIB_LOG_JSON", "") == "1",
    )
    if always and never:
        raise click.UsageError("--always 与 --never 不能同时使用")
    cfg = init_config(config_path)
    set_container(ServiceContainer(
        cfg,
        cwd=cwd,
        force_global=force_global,
        reporter=ClickReporter(always=always, never=never),
    ))


# 注册各领域子命令
from haxelib.cli.cmd_install import register as _reg_install  # noqa: E402
from haxelib.cli.cmd_manage import register as _reg_manage  # noqa: E402
from haxelib.cli.cmd_path import register as _reg_path  # noqa: E402
from haxelib.cli.cmd_repo import register as _reg_repo  # noqa: E402

_reg_install(main)
_reg_manage(main)
_reg_path(main)
_reg_repo(main)
