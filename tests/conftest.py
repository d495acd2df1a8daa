"""公共测试夹具: 临时仓库、zip 构造、已安装库构造、fake 协作者"""

from __future__ import annotations

import io
import json
import zipfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest

from haxelib.core.models import CURRENT_FILE, DEV_FILE, MANIFEST_FILE
from haxelib.core.store import PackageStore
from haxelib.utils.shell import CommandResult


def build_zip(files: dict[str, str | bytes]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return buf.getvalue()


def manifest_json(name: str, version: str, **extra: Any) -> str:
    data = {"name": name, "version": version, **extra}
    return json.dumps(data)


# =========================================================================
# fake 协作者
# =========================================================================


class FakeCatalog:
    """内存中的远程目录"""

    def __init__(self, latest: dict[str, str] | None = None) -> None:
        self.latest = latest or {}
        self.fail: set[str] = set()

    def latest_version(self, name: str) -> str:
        from haxelib.core.exceptions import DownloadError
        if name in self.fail:
            raise DownloadError(f"查询失败: {name}")
        if name not in self.latest:
            from haxelib.core.exceptions import ValidationError
            raise ValidationError(f"远程目录中不存在: {name}")
        return self.latest[name]

    def archive_url(self, name: str, version: str) -> str:
        return f"https://lib.example.org/files/{name}-{version}.zip"


class FakeFetcher:
    """按 URL 返回预置 zip 内容"""

    def __init__(self) -> None:
        self.archives: dict[str, bytes] = {}
        self.downloads: list[str] = []

    def add(self, name: str, version: str, files: dict[str, str | bytes] | None = None,
            **manifest: Any) -> None:
        contents: dict[str, str | bytes] = {MANIFEST_FILE: manifest_json(name, version, **manifest)}
        contents.update(files or {})
        url = f"https://lib.example.org/files/{name}-{version}.zip"
        self.archives[url] = build_zip(contents)

    def download(self, url: str, dest: Path) -> Path:
        self.downloads.append(url)
        dest.write_bytes(self.archives[url])
        return dest


class FakeReporter:
    def __init__(self, answer: bool = True) -> None:
        self.answer = answer
        self.messages: list[str] = []
        self.warnings: list[str] = []
        self.questions: list[str] = []

    def info(self, message: str) -> None:
        self.messages.append(message)

    def warn(self, message: str) -> None:
        self.warnings.append(message)

    def confirm(self, question: str) -> bool:
        self.questions.append(question)
        return self.answer


class FakeExecutor:
    """记录命令的 fake 执行器

    responses 的键为去掉可执行文件后的参数串（如 "rev-parse HEAD"）或子命令名。
    clone 成功时创建目标目录和 .git / .hg 标记，manifests 中有该 url 时写入清单。
    """

    def __init__(self, responses: dict[str, CommandResult] | None = None,
                 available: bool = True) -> None:
        self.responses = responses or {}
        self.available = available
        self.calls: list[list[str]] = []
        self.envs: list[dict[str, str] | None] = []
        self.manifests: dict[str, str] = {}

    def args_of(self, sub: str) -> list[list[str]]:
        return [c[1:] for c in self.calls if c[1:2] == [sub]]

    def execute(self, cmd: list[str], *, cwd: str = ".",
                env: dict[str, str] | None = None, capture: bool = True) -> CommandResult:
        self.calls.append(cmd)
        self.envs.append(env)
        args = cmd[1:]
        if args == ["--version"]:
            return CommandResult(0 if self.available else 127, "", "")
        r = self.responses.get(" ".join(args)) or self.responses.get(args[0] if args else "")
        if r is not None:
            return r
        if args and args[0] == "clone":
            dest = Path(args[2])
            marker = ".hg" if dest.name == "hg" else ".git"
            (dest / marker).mkdir(parents=True)
            if args[1] in self.manifests:
                (dest / MANIFEST_FILE).write_text(self.manifests[args[1]], encoding="utf-8")
        return CommandResult(0, "", "")


# =========================================================================
# fixtures
# =========================================================================


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    root.mkdir()
    return root


@pytest.fixture
def store(repo: Path) -> PackageStore:
    return PackageStore(repo, environ={})


@pytest.fixture
def add_lib(store: PackageStore) -> Callable[..., Path]:
    """直接在仓库中构造一个已安装版本，返回版本目录"""

    def _add(name: str, version: str, *, current: bool = True,
             dependencies: dict[str, str] | None = None, **manifest: Any) -> Path:
        path = store.version_path(name, version)
        path.mkdir(parents=True)
        (path / MANIFEST_FILE).write_text(
            manifest_json(name, version, dependencies=dependencies or {}, **manifest),
            encoding="utf-8",
        )
        if current:
            (store.lib_path(name) / CURRENT_FILE).write_text(version, encoding="utf-8")
        return path

    return _add


@pytest.fixture
def set_dev(store: PackageStore) -> Callable[[str, Path | str], None]:
    def _set(name: str, path: Path | str) -> None:
        lib = store.lib_path(name)
        lib.mkdir(parents=True, exist_ok=True)
        (lib / DEV_FILE).write_text(str(path), encoding="utf-8")

    return _set
