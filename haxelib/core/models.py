"""核心数据模型

所有核心数据类集中定义，其他模块统一从此处导入
Manifest / DependencySpec / InstalledLibrary / ResolutionNode 等实体。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

# 清单文件名
MANIFEST_FILE = "haxelib.json"

# 仓库内的指针文件
CURRENT_FILE = ".current"
DEV_FILE = ".dev"

# 本地仓库标记目录
LOCAL_REPO_MARKER = ".haxelib"

# 当前版本指向开发目录时 get_current 的返回值
DEV_VERSION = "dev"


# =========================================================================
# 依赖 / 清单
# =========================================================================


class VcsKind(str, Enum):
    """支持的版本控制系统（封闭集合）"""
    GIT = "git"
    HG = "hg"


@dataclass(frozen=True)
class DependencySpec:
    """清单中声明的一条依赖

    version_constraint:
      - 精确版本号，如 "1.2.0"
      - "" 表示任意版本（安装时取最新）
      - "git" / "hg" 表示 VCS 依赖，此时 vcs_url 必填，约束仅用于展示
    """

    name: str
    version_constraint: str = ""
    vcs_url: str = ""
    vcs_branch: str = ""
    vcs_subdir: str = ""

    @property
    def vcs(self) -> VcsKind | None:
        if not self.vcs_url:
            return None
        return VcsKind(self.version_constraint)

    @property
    def version(self) -> str | None:
        """用于安装的精确版本，任意版本 / VCS 依赖返回 None"""
        if self.vcs_url or not self.version_constraint:
            return None
        return self.version_constraint

    def __str__(self) -> str:
        if self.vcs_url:
            branch = f"#{self.vcs_branch}" if self.vcs_branch else ""
            return f"{self.name}:{self.version_constraint}:{self.vcs_url}{branch}"
        if self.version_constraint:
            return f"{self.name}:{self.version_constraint}"
        return self.name


@dataclass
class Manifest:
    """haxelib.json 的类型化表示"""

    name: str
    version: str
    license: str = ""
    releasenote: str = ""
    contributors: list[str] = field(default_factory=list)
    url: str = ""
    description: str = ""
    class_path: str = ""
    tags: list[str] = field(default_factory=list)
    dependencies: list[DependencySpec] = field(default_factory=list)
    main: str = ""


# =========================================================================
# 仓库
# =========================================================================


class LocationKind(str, Enum):
    """仓库路径的来源"""
    ENVIRONMENT_OVERRIDE = "environment"
    LOCAL_MARKER_FOUND = "local"
    GLOBAL_CONFIG = "config"
    PLATFORM_DEFAULT = "default"


@dataclass(frozen=True)
class RepositoryLocation:
    """一次命令调用中确定的仓库目录"""

    path: Path
    kind: LocationKind

    @property
    def is_local(self) -> bool:
        return self.kind == LocationKind.LOCAL_MARKER_FOUND


@dataclass
class InstalledLibrary:
    """仓库中一个已安装库的状态快照"""

    name: str
    installed_versions: list[str] = field(default_factory=list)
    current_version: str | None = None
    dev_override_path: str | None = None

    @property
    def is_dev(self) -> bool:
        return self.dev_override_path is not None


# =========================================================================
# 解析
# =========================================================================


@dataclass
class ResolutionNode:
    """依赖树遍历中解析出的一个节点"""

    project: str
    resolved_version: str
    installed_path: Path
    manifest: Manifest | None = None
