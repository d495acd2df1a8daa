"""CLI — 库状态管理命令（删除、列表、切换版本、开发目录）"""

from __future__ import annotations

import click

from haxelib.cli import _svc


def register(group: click.Group) -> None:
    group.add_command(remove)
    group.add_command(list_libs)
    group.add_command(set_version)
    group.add_command(dev)


@click.command()
@click.argument("name")
@click.argument("version", required=False)
def remove(name: str, version: str | None) -> None:
    """删除库或库的某个版本"""
    _svc().library.remove(name, version)


@click.command(name="list")
@click.argument("name_filter", required=False, default="")
def list_libs(name_filter: str) -> None:
    """列出已安装的库，当前版本用 [] 标出"""
    libs = _svc().library.list_libraries(name_filter)
    if not libs:
        click.echo("没有已安装的库。")
        return
    for lib in libs:
        versions = [
            f"[{v}]" if v == lib.current_version else v
            for v in lib.installed_versions
        ]
        if lib.is_dev:
            versions.append(f"[dev:{lib.dev_override_path}]")
        click.echo(f"{lib.name}: {' '.join(versions)}")


@click.command(name="set")
@click.argument("name")
@click.argument("version")
def set_version(name: str, version: str) -> None:
    """切换库的当前版本"""
    _svc().library.set_version(name, version)


@click.command()
@click.argument("name")
@click.argument("path", required=False)
def dev(name: str, path: str | None) -> None:
    """设置库的开发目录；不指定 PATH 时取消"""
    _svc().library.dev(name, path)
