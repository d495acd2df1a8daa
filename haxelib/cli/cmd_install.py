"""CLI — 安装与更新命令"""

from __future__ import annotations

from pathlib import Path

import click

from haxelib.cli import _svc
from haxelib.core.models import MANIFEST_FILE, VcsKind


def register(group: click.Group) -> None:
    group.add_command(install)
    group.add_command(git)
    group.add_command(hg)
    group.add_command(update)
    group.add_command(upgrade)


@click.command()
@click.argument("target", required=False)
@click.argument("version", required=False)
@click.option("--skip-dependencies", is_flag=True, help="不安装依赖")
def install(target: str | None, version: str | None, skip_dependencies: bool) -> None:
    """安装库

    \b
    TARGET 可以是:
      库名 [版本]        从远程目录安装
      xxx.zip           安装本地压缩包
      xxx.hxml          安装 hxml 中 -lib 引用的库
      haxelib.json      安装清单声明的依赖（省略 TARGET 时使用当前目录的清单）
    """
    svc = _svc()
    if target is None:
        target = str(svc.cwd / MANIFEST_FILE)

    if target.endswith(".zip") and Path(target).is_file():
        svc.library.install_file(target, skip_dependencies=skip_dependencies)
    elif target.endswith(".hxml"):
        installed = svc.library.install_hxml(target)
        if not installed:
            click.echo("所有库均已安装。")
    elif Path(target).name == MANIFEST_FILE:
        manifest = svc.library.install_manifest(target)
        click.echo(f"已安装 {len(manifest.dependencies)} 个依赖")
    else:
        svc.library.install(target, version, skip_dependencies=skip_dependencies)


def _vcs_command(kind: VcsKind) -> click.Command:
    @click.command(name=kind.value)
    @click.argument("name")
    @click.argument("url")
    @click.argument("branch", required=False, default="")
    @click.argument("subdir", required=False, default="")
    @click.argument("version", required=False, default="")
    @click.option("--skip-dependencies", is_flag=True, help="不安装依赖")
    def command(
        name: str, url: str, branch: str, subdir: str,
        version: str, skip_dependencies: bool,
    ) -> None:
        _svc().library.install_vcs(
            name, kind, url,
            branch=branch or None, subdir=subdir, version=version or None,
            skip_dependencies=skip_dependencies,
        )

    command.help = f"从 {kind.value} 仓库安装库（可指定分支、子目录和版本）"
    return command


git = _vcs_command(VcsKind.GIT)
hg = _vcs_command(VcsKind.HG)


@click.command()
@click.argument("name", required=False)
def update(name: str | None) -> None:
    """更新单个库；不指定库名时更新全部库"""
    if name:
        if not _svc().library.update(name):
            click.echo(f"{name} 已是最新")
        return
    _update_all()


@click.command()
def upgrade() -> None:
    """更新全部库"""
    _update_all()


def _update_all() -> None:
    results = _svc().library.update_all()
    if not results:
        click.echo("没有已安装的库。")
        return
    for name, status in sorted(results.items()):
        click.echo(f"  {name:30s} {status}")
    if any(status.startswith("[FAILED]") for status in results.values()):
        raise click.ClickException("部分库更新失败")
