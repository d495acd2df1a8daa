"""CLI — 仓库目录命令（setup、config、newrepo、deleterepo）"""

from __future__ import annotations

from pathlib import Path

import click

from haxelib.cli import _svc
from haxelib.core.exceptions import RepositoryNotConfiguredError


def register(group: click.Group) -> None:
    group.add_command(setup)
    group.add_command(config)
    group.add_command(newrepo)
    group.add_command(deleterepo)


@click.command()
@click.argument("path", required=False)
def setup(path: str | None) -> None:
    """设置全局仓库目录（不存在时创建）"""
    locator = _svc().locator
    if not path:
        try:
            default = str(locator.get_global_unchecked())
        except RepositoryNotConfiguredError:
            default = str(Path.home() / "haxelib")
        path = click.prompt("请输入仓库目录", default=default)
    target = locator.save_global(path)
    click.echo(f"全局仓库: {target}")


@click.command()
def config() -> None:
    """输出本次使用的仓库目录"""
    click.echo(_svc().location.path)


@click.command()
def newrepo() -> None:
    """在当前目录创建本地仓库"""
    svc = _svc()
    marker = svc.locator.create_local_marker(svc.cwd)
    click.echo(f"本地仓库已创建: {marker.absolute()}")


@click.command()
def deleterepo() -> None:
    """删除当前目录的本地仓库"""
    svc = _svc()
    marker = svc.locator.delete_local_marker(svc.cwd)
    click.echo(f"本地仓库已删除: {marker.absolute()}")
