"""haxelib.json 清单解析单元测试"""

from __future__ import annotations

import json

import pytest

from haxelib.core.exceptions import ManifestError, ValidationError
from haxelib.core.manifest import check_name, parse_dependency, parse_manifest, validate_manifest
from haxelib.core.models import VcsKind


class TestCheckName:
    @pytest.mark.parametrize("name", ["foo", "foo-bar", "foo_bar", "Foo.Bar", "x1"])
    def test_valid(self, name: str) -> None:
        assert check_name(name) == name

    @pytest.mark.parametrize("name", ["", "foo bar", "foo/bar", "中文", "a:b"])
    def test_invalid_chars(self, name: str) -> None:
        with pytest.raises(ValidationError, match="非法库名"):
            check_name(name)

    def test_leading_dot(self) -> None:
        with pytest.raises(ValidationError, match="不能以 . 开头"):
            check_name(".hidden")

    @pytest.mark.parametrize("name", ["haxe", "ALL", "Haxe"])
    def test_reserved(self, name: str) -> None:
        with pytest.raises(ValidationError, match="保留名"):
            check_name(name)


class TestParseDependency:
    def test_any_version(self) -> None:
        dep = parse_dependency("foo", "")
        assert dep.version is None
        assert dep.vcs is None

    def test_exact_version(self) -> None:
        dep = parse_dependency("foo", "1.2.3")
        assert dep.version == "1.2.3"
        assert str(dep) == "foo:1.2.3"

    def test_git_full(self) -> None:
        dep = parse_dependency("foo", "git:https://example.com/foo.git#dev#src/lib")
        assert dep.vcs == VcsKind.GIT
        assert dep.vcs_url == "https://example.com/foo.git"
        assert dep.vcs_branch == "dev"
        assert dep.vcs_subdir == "src/lib"
        assert dep.version is None

    def test_hg_without_branch(self) -> None:
        dep = parse_dependency("foo", "hg:https://example.com/foo")
        assert dep.vcs == VcsKind.HG
        assert dep.vcs_branch == ""
        assert dep.vcs_subdir == ""

    def test_vcs_missing_url(self) -> None:
        with pytest.raises(ManifestError, match="缺少 git 地址"):
            parse_dependency("foo", "git:")


class TestParseManifest:
    def test_defaults_applied(self) -> None:
        m = parse_manifest('{"name": "foo", "version": "1.0.0"}')
        assert m.name == "foo"
        assert m.class_path == ""
        assert m.dependencies == []
        assert m.contributors == []
        assert m.main == ""

    def test_full(self) -> None:
        raw = json.dumps({
            "name": "foo", "version": "1.0.0", "classPath": "src",
            "dependencies": {"bar": "2.0.0", "baz": ""}, "main": "Run",
            "tags": ["a"], "contributors": ["me"],
        })
        m = parse_manifest(raw)
        assert m.class_path == "src"
        assert [d.name for d in m.dependencies] == ["bar", "baz"]
        assert m.dependencies[0].version == "2.0.0"
        assert m.main == "Run"

    def test_bytes_with_bom(self) -> None:
        m = parse_manifest(b"\xef\xbb\xbf" + b'{"name": "foo", "version": "1.0.0"}')
        assert m.name == "foo"

    def test_invalid_utf8(self) -> None:
        with pytest.raises(ManifestError, match="UTF-8"):
            parse_manifest(b'{"name": "\xff"}')

    def test_null_values_get_defaults(self) -> None:
        m = parse_manifest('{"name": "foo", "version": "1.0.0", "dependencies": null}')
        assert m.dependencies == []

    def test_invalid_json(self) -> None:
        with pytest.raises(ManifestError, match="不是合法的 JSON"):
            parse_manifest("{not json")

    def test_top_level_must_be_object(self) -> None:
        with pytest.raises(ManifestError, match="顶层必须是对象"):
            parse_manifest("[1, 2]")

    def test_dependencies_must_be_object(self) -> None:
        with pytest.raises(ManifestError, match="dependencies"):
            parse_manifest('{"name": "foo", "version": "1.0.0", "dependencies": ["bar"]}')


class TestValidateManifest:
    def _complete(self, **overrides: object) -> str:
        data = {
            "name": "foolib", "license": "MIT", "version": "1.0.0",
            "releasenote": "first", "contributors": ["me"],
        }
        data.update(overrides)
        return json.dumps(data)

    def test_valid(self) -> None:
        assert validate_manifest(self._complete()).name == "foolib"

    def test_collects_all_problems(self) -> None:
        with pytest.raises(ValidationError) as exc:
            validate_manifest('{"name": "ab", "version": "1.0"}')
        details = exc.value.details
        assert any("license" in d for d in details)
        assert any("contributors" in d for d in details)
        assert any("至少 3 个字符" in d for d in details)
        assert any("语义化版本" in d for d in details)

    def test_empty_contributors(self) -> None:
        with pytest.raises(ValidationError) as exc:
            validate_manifest(self._complete(contributors=[]))
        assert "contributors 不能为空" in exc.value.details

    def test_bad_dependency_version(self) -> None:
        with pytest.raises(ValidationError) as exc:
            validate_manifest(self._complete(dependencies={"bar": "latest"}))
        assert any("bar" in d for d in exc.value.details)

    def test_vcs_dependency_accepted(self) -> None:
        validate_manifest(self._complete(dependencies={"bar": "git:https://x/bar.git"}))
