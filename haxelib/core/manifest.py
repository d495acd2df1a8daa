"""haxelib.json 清单解析

两种校验强度:
  - parse_manifest(): 安装时使用，只做语法校验（JSON 非法才失败），
    缺失的可选字段由 _apply_defaults() 统一补默认值，兼容旧包
  - validate_manifest(): 提交时使用，做完整的语义校验
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

from haxelib.core.exceptions import ManifestError, ValidationError
from haxelib.core.models import MANIFEST_FILE, DependencySpec, Manifest, VcsKind
from haxelib.core.version import SemVer

logger = logging.getLogger(__name__)

_NAME_RE = re.compile(r"^[A-Za-z0-9_.\-]+$")

# 不能作为库名使用
RESERVED_NAMES = frozenset(("haxe", "all"))

REQUIRED_FIELDS = ("name", "license", "version", "releasenote", "contributors")

# 可选字段默认值（集中定义，仅此一处）
_DEFAULTS: dict[str, Any] = {
    "license": "",
    "releasenote": "",
    "contributors": [],
    "url": "",
    "description": "",
    "classPath": "",
    "tags": [],
    "dependencies": {},
    "main": "",
}

_VCS_PREFIXES = {f"{kind.value}:": kind for kind in VcsKind}


def check_name(name: str) -> str:
    """校验库名只包含 [A-Za-z0-9_.-]，返回原值"""
    if not name or not _NAME_RE.match(name):
        raise ValidationError(f"非法库名: {name!r}（仅允许字母、数字、_ . -）")
    if name.startswith("."):
        raise ValidationError(f"库名不能以 . 开头: {name!r}")
    if name.lower() in RESERVED_NAMES:
        raise ValidationError(f"库名 {name!r} 为保留名")
    return name


def parse_dependency(name: str, value: str) -> DependencySpec:
    """解析单条依赖

    value 取值:
      - "" : 任意版本
      - "1.2.3" : 精确版本
      - "git:<url>[#branch[#subdir]]" / "hg:<url>[#branch[#subdir]]"
    """
    value = (value or "").strip()
    for prefix, kind in _VCS_PREFIXES.items():
        if value.startswith(prefix):
            url, _, rest = value[len(prefix):].partition("#")
            branch, _, subdir = rest.partition("#")
            if not url:
                raise ManifestError(f"依赖 {name} 缺少 {kind.value} 地址")
            return DependencySpec(
                name=name, version_constraint=kind.value,
                vcs_url=url, vcs_branch=branch, vcs_subdir=subdir,
            )
    return DependencySpec(name=name, version_constraint=value)


def _apply_defaults(data: dict[str, Any]) -> dict[str, Any]:
    merged = dict(_DEFAULTS)
    merged.update({k: v for k, v in data.items() if v is not None})
    return merged


def parse_manifest(text: str | bytes, *, source: str = MANIFEST_FILE) -> Manifest:
    """宽松解析清单内容，只校验 JSON 语法"""
    if isinstance(text, bytes):
        try:
            text = text.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise ManifestError(f"{source} 不是合法的 UTF-8: {e}") from e
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as e:
        raise ManifestError(f"{source} 不是合法的 JSON: {e}") from e
    if not isinstance(raw, dict):
        raise ManifestError(f"{source} 顶层必须是对象")

    data = _apply_defaults(raw)
    deps_raw = data["dependencies"]
    if not isinstance(deps_raw, dict):
        raise ManifestError(f"{source} 的 dependencies 必须是对象")

    contributors = data["contributors"]
    tags = data["tags"]
    return Manifest(
        name=str(data.get("name", "")),
        version=str(data.get("version", "")),
        license=str(data["license"]),
        releasenote=str(data["releasenote"]),
        contributors=[str(c) for c in contributors] if isinstance(contributors, list) else [],
        url=str(data["url"]),
        description=str(data["description"]),
        class_path=str(data["classPath"]),
        tags=[str(t) for t in tags] if isinstance(tags, list) else [],
        dependencies=[
            parse_dependency(str(n), str(v or "")) for n, v in deps_raw.items()
        ],
        main=str(data["main"]),
    )


def read_manifest(lib_dir: Path) -> Manifest | None:
    """读取目录下的 haxelib.json，不存在返回 None"""
    path = lib_dir / MANIFEST_FILE
    if not path.is_file():
        return None
    return parse_manifest(path.read_bytes(), source=str(path))


def validate_manifest(text: str | bytes) -> Manifest:
    """提交时的完整校验，所有问题汇总到 ValidationError.details"""
    manifest = parse_manifest(text)
    raw = json.loads(text if isinstance(text, str) else text.decode("utf-8-sig"))
    problems: list[str] = []

    for key in REQUIRED_FIELDS:
        if key not in raw:
            problems.append(f"缺少必填字段 {key}")
    if "contributors" in raw and not manifest.contributors:
        problems.append("contributors 不能为空")
    try:
        check_name(manifest.name)
    except ValidationError as e:
        problems.append(str(e))
    if len(manifest.name) < 3:
        problems.append("库名至少 3 个字符")
    if not SemVer.is_valid(manifest.version):
        problems.append(f"version 不是合法的语义化版本: {manifest.version!r}")
    for dep in manifest.dependencies:
        if dep.version and not SemVer.is_valid(dep.version):
            problems.append(f"依赖 {dep.name} 的版本非法: {dep.version!r}")

    if problems:
        raise ValidationError(f"清单校验失败 ({len(problems)} 项)", details=problems)
    return manifest
