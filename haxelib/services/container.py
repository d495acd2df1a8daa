"""服务容器 — 统一组装仓库、远程目录、下载器与库管理服务

CLI 通过 get_container() 获取服务，而非直接 import 构造。
仓库位置在首次访问 store 时计算（本地 .haxelib 优先，--global 时跳过），
同一容器内的实例共享。

用法:
    container = ServiceContainer(cwd=".", force_global=False)
    container.library.install("foo")

    # 测试中注入 fake
    container = ServiceContainer(config=cfg, catalog=FakeCatalog(), fetcher=FakeFetcher())
"""

from __future__ import annotations

import logging
import os
import threading
from collections.abc import MutableMapping
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from haxelib.core.config import Config
    from haxelib.core.locator import RepositoryLocator
    from haxelib.core.models import RepositoryLocation
    from haxelib.core.protocols import ArchiveFetcher, CatalogClient, Reporter
    from haxelib.core.store import PackageStore
    from haxelib.services.library_service import LibraryService
    from haxelib.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)


class LoggingReporter:
    """非交互的 Reporter: 提示写日志，确认一律返回 answer"""

    def __init__(self, answer: bool = False) -> None:
        self.answer = answer

    def info(self, message: str) -> None:
        logger.info(message)

    def warn(self, message: str) -> None:
        logger.warning(message)

    def confirm(self, question: str) -> bool:
        logger.info("%s -> %s", question, "yes" if self.answer else "no")
        return self.answer


class ServiceContainer:
    """懒加载服务容器"""

    def __init__(
        self,
        config: Config | None = None,
        *,
        cwd: str | Path = ".",
        force_global: bool = False,
        reporter: Reporter | None = None,
        catalog: CatalogClient | None = None,
        fetcher: ArchiveFetcher | None = None,
        executor: CommandExecutor | None = None,
        environ: MutableMapping[str, str] | None = None,
    ) -> None:
        if config is None:
            from haxelib.core.config import get_config
            config = get_config()
        self._config = config
        self._instances: dict[str, object] = {}
        self.cwd = Path(cwd)
        self.force_global = force_global
        self.environ = os.environ if environ is None else environ
        self.reporter: Reporter = reporter or LoggingReporter()
        self.executor = executor
        if catalog is not None:
            self._instances["catalog"] = catalog
        if fetcher is not None:
            self._instances["fetcher"] = fetcher

    @property
    def config(self) -> Config:
        return self._config

    # ---- 仓库 ----

    @property
    def locator(self) -> RepositoryLocator:
        if "locator" not in self._instances:
            from haxelib.core.locator import RepositoryLocator
            self._instances["locator"] = RepositoryLocator(self._config, self.environ)
        return self._instances["locator"]  # type: ignore[return-value]

    @property
    def location(self) -> RepositoryLocation:
        if "location" not in self._instances:
            loc = self.locator.find_effective(self.cwd, force_global=self.force_global)
            logger.debug("使用仓库: %s (%s)", loc.path, loc.kind.value)
            self._instances["location"] = loc
        return self._instances["location"]  # type: ignore[return-value]

    @property
    def store(self) -> PackageStore:
        if "store" not in self._instances:
            from haxelib.core.store import PackageStore
            self._instances["store"] = PackageStore(self.location.path, self.environ)
        return self._instances["store"]  # type: ignore[return-value]

    # ---- 网络 ----

    @property
    def catalog(self) -> CatalogClient:
        if "catalog" not in self._instances:
            from haxelib.core.catalog import HttpCatalog
            self._instances["catalog"] = HttpCatalog(self._config)
        return self._instances["catalog"]  # type: ignore[return-value]

    @property
    def fetcher(self) -> ArchiveFetcher:
        if "fetcher" not in self._instances:
            from haxelib.core.downloader import Downloader
            self._instances["fetcher"] = Downloader(self._config)
        return self._instances["fetcher"]  # type: ignore[return-value]

    # ---- 服务层 ----

    @property
    def library(self) -> LibraryService:
        if "library" not in self._instances:
            from haxelib.services.library_service import LibraryService
            self._instances["library"] = LibraryService(
                self.store, self.catalog, self.fetcher, self.reporter,
                executor=self.executor, environ=self.environ,
            )
        return self._instances["library"]  # type: ignore[return-value]


# ---- 全局单例 ----

_global: ServiceContainer | None = None
_global_lock = threading.Lock()


def get_container() -> ServiceContainer:
    """获取全局 ServiceContainer 单例（线程安全）"""
    global _global  # noqa: PLW0603
    if _global is not None:
        return _global
    with _global_lock:
        if _global is None:
            _global = ServiceContainer()
        return _global


def set_container(container: ServiceContainer) -> None:
    """替换全局容器（CLI 入口按命令行选项构造）"""
    global _global  # noqa: PLW0603
    with _global_lock:
        _global = container


def reset_container() -> None:
    """重置全局容器（仅用于测试）"""
    global _global  # noqa: PLW0603
    with _global_lock:
        _global = None
