"""语义化版本模型

版本格式: N.N.N[-tag]

排序规则:
  - major / minor / patch 按数值比较
  - 数字部分相同时，无预发布标签的版本大于带标签的版本
  - 两个预发布标签按字典序比较

目录名中的版本号通过 escape_version / unescape_version 做可逆替换（. <-> ,）。
"""

from __future__ import annotations

import functools
import re
from dataclasses import dataclass

from haxelib.core.exceptions import VersionError

_SEMVER_RE = re.compile(
    r"^(0|[1-9][0-9]*)\.(0|[1-9][0-9]*)\.(0|[1-9][0-9]*)(?:-([A-Za-z0-9.]+))?$"
)


class _Unset:
    """显式的"未设置"哨兵，区别于任何可解析的版本"""

    _instance: _Unset | None = None

    def __new__(cls) -> _Unset:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNSET"

    def __bool__(self) -> bool:
        return False


UNSET = _Unset()


@functools.total_ordering
@dataclass(frozen=True)
class SemVer:
    """语义化版本 (major, minor, patch, pre_release)"""

    major: int
    minor: int
    patch: int
    pre_release: str | None = None

    @classmethod
    def parse(cls, s: str) -> SemVer:
        """解析版本字符串，格式不符时抛 VersionError"""
        m = _SEMVER_RE.match(s.strip()) if isinstance(s, str) else None
        if m is None:
            raise VersionError(f"非法版本号: {s!r}（期望 N.N.N[-tag]）")
        return cls(int(m.group(1)), int(m.group(2)), int(m.group(3)), m.group(4))

    @classmethod
    def is_valid(cls, s: str) -> bool:
        return isinstance(s, str) and _SEMVER_RE.match(s.strip()) is not None

    @property
    def is_pre_release(self) -> bool:
        return self.pre_release is not None

    def _key(self) -> tuple:
        # 无标签排在同号预发布之后
        if self.pre_release is None:
            return (self.major, self.minor, self.patch, 1, "")
        return (self.major, self.minor, self.patch, 0, self.pre_release)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SemVer):
            return NotImplemented
        return self._key() < other._key()

    def __str__(self) -> str:
        base = f"{self.major}.{self.minor}.{self.patch}"
        return f"{base}-{self.pre_release}" if self.pre_release else base


def parse_optional(s: str | None) -> SemVer | _Unset:
    """空字符串 / None / "unset" 返回 UNSET，其余按 SemVer.parse 处理"""
    if s is None or s.strip() in ("", "unset"):
        return UNSET
    return SemVer.parse(s)


def compare(a: SemVer | str, b: SemVer | str) -> int:
    """全序比较，返回 -1 / 0 / 1"""
    va = a if isinstance(a, SemVer) else SemVer.parse(a)
    vb = b if isinstance(b, SemVer) else SemVer.parse(b)
    if va < vb:
        return -1
    if vb < va:
        return 1
    return 0


def latest(versions: list[str], *, include_pre_release: bool = False) -> str | None:
    """从版本字符串列表中选出最新版本，非语义化版本被忽略"""
    candidates = []
    for v in versions:
        if not SemVer.is_valid(v):
            continue
        sv = SemVer.parse(v)
        if sv.is_pre_release and not include_pre_release:
            continue
        candidates.append(sv)
    if not candidates:
        return None
    return str(max(candidates))


def escape_version(version: str) -> str:
    """版本号转为安全目录名"""
    return version.replace(".", ",")


def unescape_version(dirname: str) -> str:
    """目录名还原为版本号"""
    return dirname.replace(",", ".")
