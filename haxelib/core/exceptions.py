"""统一异常体系

所有业务异常继承 HaxelibError，替代散落的 ValueError / RuntimeError。
CLI 层据此输出友好提示并以非零状态退出。
"""

from __future__ import annotations


class HaxelibError(Exception):
    """库管理器基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ValidationError(HaxelibError):
    """输入数据校验失败（库名、参数等）"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


# =========================================================================
# 仓库目录
# =========================================================================


class RepositoryError(HaxelibError):
    """仓库目录相关错误"""

    code = "REPOSITORY_ERROR"


class RepositoryNotConfiguredError(RepositoryError):
    """未配置全局仓库"""

    code = "REPOSITORY_NOT_CONFIGURED"


class InvalidRepositoryPathError(RepositoryError):
    """仓库路径不存在或不是目录"""

    code = "REPOSITORY_INVALID_PATH"

    def __init__(self, message: str, path: str = "") -> None:
        super().__init__(message)
        self.path = path


class RepositoryDeletedError(RepositoryError):
    """仓库目录在操作过程中被外部删除"""

    code = "REPOSITORY_DELETED"


class ReservedPathError(RepositoryError):
    """仓库路径与保留路径（配置文件自身）冲突"""

    code = "REPOSITORY_RESERVED_PATH"


# =========================================================================
# 版本 / 清单
# =========================================================================


class VersionError(HaxelibError):
    """版本号格式非法"""

    code = "VERSION_ERROR"


class ManifestError(HaxelibError):
    """haxelib.json 解析失败或内容无效"""

    code = "MANIFEST_ERROR"


class ManifestNotFoundError(ManifestError):
    """压缩包中找不到 haxelib.json"""

    code = "MANIFEST_NOT_FOUND"


class UnsafePathError(HaxelibError):
    """压缩包条目试图写出目标目录（路径穿越）"""

    code = "UNSAFE_PATH"

    def __init__(self, message: str, path: str = "") -> None:
        super().__init__(message)
        self.path = path


# =========================================================================
# VCS
# =========================================================================


class VcsError(HaxelibError):
    """版本控制操作失败，stderr 保存命令的错误输出"""

    code = "VCS_ERROR"

    def __init__(self, message: str, stderr: str = "") -> None:
        super().__init__(message)
        self.stderr = stderr


class VcsUnavailableError(VcsError):
    """找不到 VCS 可执行文件"""

    code = "VCS_UNAVAILABLE"


class CantCloneRepoError(VcsError):
    """clone 失败（网络、认证或远端错误）"""

    code = "VCS_CANT_CLONE"


class CantCheckoutBranchError(VcsError):
    """检出分支 / tag 失败"""

    code = "VCS_CANT_CHECKOUT_BRANCH"


class CantCheckoutVersionError(VcsError):
    """检出指定修订失败"""

    code = "VCS_CANT_CHECKOUT_VERSION"


# =========================================================================
# 解析 / 安装
# =========================================================================


class NotInstalledError(HaxelibError):
    """库或指定版本未安装"""

    code = "NOT_INSTALLED"

    def __init__(self, name: str, version: str | None = None) -> None:
        if version:
            message = f"库 {name} 未安装版本 {version}"
        else:
            message = f"库 {name} 未安装"
        super().__init__(message)
        self.name = name
        self.version = version


class VersionConflictError(HaxelibError):
    """同一次解析中同一个库出现了不同版本"""

    code = "VERSION_CONFLICT"

    def __init__(self, name: str, existing: str, requested: str) -> None:
        super().__init__(
            f"库 {name} 版本冲突: 已解析 {existing}，又要求 {requested}"
        )
        self.name = name
        self.existing = existing
        self.requested = requested


class ProtectedVersionError(HaxelibError):
    """试图删除当前版本或开发目录指向的版本"""

    code = "PROTECTED_VERSION"


class DownloadError(HaxelibError):
    """下载失败（重试耗尽或 HTTP 错误）"""

    code = "DOWNLOAD_ERROR"


class ExecutionError(HaxelibError):
    """外部命令执行失败"""

    code = "EXECUTION_ERROR"
