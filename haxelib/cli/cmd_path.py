"""CLI — 编译器集成命令（path、libpath、run）"""

from __future__ import annotations

import click

from haxelib.cli import _svc
from haxelib.services.library_service import parse_lib_arg


def register(group: click.Group) -> None:
    group.add_command(path)
    group.add_command(libpath)
    group.add_command(run)


@click.command()
@click.argument("libs", nargs=-1, required=True)
def path(libs: tuple[str, ...]) -> None:
    """输出库（含依赖）的编译参数，LIBS 格式: name 或 name:version"""
    for line in _svc().library.path([parse_lib_arg(arg) for arg in libs]):
        click.echo(line)


@click.command()
@click.argument("libs", nargs=-1, required=True)
def libpath(libs: tuple[str, ...]) -> None:
    """输出库的安装目录"""
    for arg in libs:
        name, _ = parse_lib_arg(arg)
        click.echo(_svc().library.libpath(name))


@click.command(context_settings={"ignore_unknown_options": True, "allow_interspersed_args": False})
@click.argument("name")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def run(ctx: click.Context, name: str, args: tuple[str, ...]) -> None:
    """运行库自带的脚本，其余参数原样传递"""
    svc = _svc()
    code = svc.library.run(name, list(args), cwd=svc.cwd)
    ctx.exit(code)
