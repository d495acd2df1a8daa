"""仓库目录布局 PackageStore 单元测试"""

from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from haxelib.core.exceptions import (
    NotInstalledError,
    ProtectedVersionError,
    RepositoryDeletedError,
)
from haxelib.core.store import PackageStore


class TestPaths:
    def test_escaped_names(self, store: PackageStore, repo: Path) -> None:
        assert store.lib_path("foo.bar") == repo / "foo,bar"
        assert store.version_path("foo", "1.2.3") == repo / "foo" / "1,2,3"


class TestQueries:
    def test_list_versions_order(self, store: PackageStore, add_lib) -> None:
        for v in ["1.10.0", "1.2.0", "1.0.0-alpha"]:
            add_lib("foo", v, current=False)
        store.version_path("foo", "git").mkdir()
        assert store.list_versions("foo") == ["1.0.0-alpha", "1.2.0", "1.10.0", "git"]

    def test_list_versions_missing_lib(self, store: PackageStore) -> None:
        assert store.list_versions("nope") == []

    def test_get_latest(self, store: PackageStore, add_lib) -> None:
        add_lib("foo", "1.0.0")
        add_lib("foo", "2.0.0-rc", current=False)
        assert store.get_latest("foo") == "1.0.0"
        assert store.get_latest("foo", include_pre_release=True) == "2.0.0-rc"

    def test_list_libraries_only_valid(self, store: PackageStore, repo: Path, add_lib) -> None:
        add_lib("foo.bar", "1.0.0")
        add_lib("abc", "1.0.0")
        (repo / "leftover").mkdir()
        (repo / ".hidden").mkdir()
        (repo / "afile").write_text("x", encoding="utf-8")
        assert store.list_libraries() == ["abc", "foo.bar"]

    def test_list_libraries_includes_dev_only(self, store: PackageStore, set_dev, tmp_path: Path) -> None:
        set_dev("devlib", tmp_path)
        assert store.list_libraries() == ["devlib"]
        assert store.is_installed("devlib")

    def test_current(self, store: PackageStore, add_lib) -> None:
        add_lib("foo", "1.0.0")
        assert store.current_version("foo") == "1.0.0"
        assert store.get_current("foo") == "1.0.0"

    def test_current_is_dev(self, store: PackageStore, add_lib, set_dev, tmp_path: Path) -> None:
        add_lib("foo", "1.0.0")
        set_dev("foo", tmp_path)
        assert store.get_current("foo") == "dev"
        assert store.current_version("foo") == "1.0.0"

    def test_current_missing(self, store: PackageStore, add_lib) -> None:
        with pytest.raises(NotInstalledError):
            store.get_current("nope")
        add_lib("foo", "1.0.0", current=False)
        with pytest.raises(NotInstalledError):
            store.get_current("foo")

    def test_info(self, store: PackageStore, add_lib) -> None:
        add_lib("foo", "1.0.0", current=False)
        add_lib("foo", "1.1.0")
        info = store.info("foo")
        assert info.installed_versions == ["1.0.0", "1.1.0"]
        assert info.current_version == "1.1.0"
        assert not info.is_dev


class TestDevPath:
    def test_interpolated_on_read(self, repo: Path) -> None:
        env = {"MYROOT": "/work"}
        store = PackageStore(repo, environ=env)
        store.set_dev("foo", "%MYROOT%/foo/src")
        assert store.get_dev("foo") == "/work/foo/src"
        env["MYROOT"] = "/other"
        assert store.get_dev("foo") == "/other/foo/src"

    def test_unset_variable_expands_empty(self, store: PackageStore) -> None:
        store.set_dev("foo", "%NOPE%/src")
        assert store.get_dev("foo") == "/src"

    def test_stored_verbatim(self, store: PackageStore) -> None:
        store.set_dev("foo", "  %X%/a  ")
        assert (store.lib_path("foo") / ".dev").read_text(encoding="utf-8") == "%X%/a"

    def test_clear(self, store: PackageStore, tmp_path: Path) -> None:
        store.set_dev("foo", str(tmp_path))
        assert store.clear_dev("foo") is True
        assert store.get_dev("foo") is None
        assert store.clear_dev("foo") is False

    def test_filter(self, repo: Path) -> None:
        store = PackageStore(repo, environ={"HAXELIB_DEV_FILTER": "/allowed; C:\\Work\\"})
        assert not store.is_dev_path_excluded("/Allowed/lib")
        assert not store.is_dev_path_excluded("c:/work/lib")
        assert store.is_dev_path_excluded("/elsewhere/lib")

    def test_no_filter_excludes_nothing(self, store: PackageStore) -> None:
        assert not store.is_dev_path_excluded("/anything")


class TestMutations:
    def test_set_current(self, store: PackageStore, add_lib) -> None:
        add_lib("foo", "1.0.0")
        add_lib("foo", "2.0.0", current=False)
        store.set_current("foo", "2.0.0")
        assert store.current_version("foo") == "2.0.0"
        store.set_current("foo", "2.0.0")
        assert store.current_version("foo") == "2.0.0"

    def test_set_current_requires_version_dir(self, store: PackageStore, add_lib) -> None:
        add_lib("foo", "1.0.0")
        with pytest.raises(NotInstalledError, match="3.0.0"):
            store.set_current("foo", "3.0.0")

    def test_repository_deleted(self, store: PackageStore, repo: Path, add_lib) -> None:
        add_lib("foo", "1.0.0")
        shutil.rmtree(repo)
        with pytest.raises(RepositoryDeletedError):
            store.set_current("foo", "1.0.0")
        with pytest.raises(RepositoryDeletedError):
            store.set_dev("foo", "/x")

    def test_remove_version(self, store: PackageStore, add_lib) -> None:
        add_lib("foo", "1.0.0")
        old = add_lib("foo", "0.9.0", current=False)
        store.remove_version("foo", "0.9.0")
        assert not old.exists()
        assert store.list_versions("foo") == ["1.0.0"]

    def test_remove_current_protected(self, store: PackageStore, add_lib) -> None:
        path = add_lib("foo", "1.0.0")
        with pytest.raises(ProtectedVersionError):
            store.remove_version("foo", "1.0.0")
        assert path.is_dir()

    def test_remove_dev_target_protected(self, store: PackageStore, add_lib) -> None:
        add_lib("foo", "1.0.0")
        other = add_lib("foo", "2.0.0", current=False)
        (other / "src").mkdir()
        store.set_dev("foo", str(other / "src"))
        with pytest.raises(ProtectedVersionError, match="开发目录"):
            store.remove_version("foo", "2.0.0")

    def test_remove_missing_version(self, store: PackageStore, add_lib) -> None:
        add_lib("foo", "1.0.0")
        with pytest.raises(NotInstalledError):
            store.remove_version("foo", "9.9.9")

    def test_remove_library(self, store: PackageStore, add_lib) -> None:
        add_lib("foo", "1.0.0")
        store.remove_library("foo")
        assert not store.lib_path("foo").exists()
        with pytest.raises(NotInstalledError):
            store.remove_library("foo")
