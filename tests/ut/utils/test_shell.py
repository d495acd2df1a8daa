"""LocalExecutor 单元测试"""

from __future__ import annotations

import os
import sys

from haxelib.utils.shell import CommandResult, LocalExecutor, get_executor, set_executor


class TestLocalExecutor:
    def test_success(self, tmp_path) -> None:
        r = LocalExecutor().execute([sys.executable, "-c", "print('hello')"], cwd=str(tmp_path))
        assert r.success
        assert "hello" in r.stdout

    def test_failure_returncode(self, tmp_path) -> None:
        r = LocalExecutor().execute([sys.executable, "-c", "import sys; sys.exit(3)"], cwd=str(tmp_path))
        assert r.returncode == 3
        assert not r.success

    def test_missing_executable(self, tmp_path) -> None:
        r = LocalExecutor().execute(["definitely-not-a-real-binary-xyz"], cwd=str(tmp_path))
        assert r.returncode == 127
        assert r.stderr

    def test_env_passed(self, tmp_path) -> None:
        env = {**os.environ, "MY_TEST_VAR": "42"}
        r = LocalExecutor().execute(
            [sys.executable, "-c", "import os; print(os.environ['MY_TEST_VAR'])"],
            cwd=str(tmp_path), env=env,
        )
        assert r.stdout.strip() == "42"


class TestDefaultExecutor:
    def test_replaceable(self) -> None:
        class Fake:
            def execute(self, cmd, *, cwd=".", env=None, capture=True):
                return CommandResult(0, "fake", "")

        original = get_executor()
        try:
            set_executor(Fake())
            assert get_executor().execute(["x"]).stdout == "fake"
        finally:
            set_executor(original)
