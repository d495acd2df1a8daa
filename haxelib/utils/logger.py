"""haxelib 日志配置

CLI 入口调用 setup_logging: --debug 时为 DEBUG，否则取 HAXELIB_LOG_LEVEL（默认 WARNING），
HAXELIB_LOG_JSON=1 时输出 JSON 行。
日志一律写 stderr，stdout 只留给 path / libpath / config 等命令的输出，编译器直接读取。
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone

HUMAN_FORMAT = "%(asctime)s [%(levelname)-7s] %(name)s: %(message)s"


class JSONFormatter(logging.Formatter):
    """每条日志一行 JSON

    字段: timestamp (UTC, ISO 8601) / level / logger / message / module / line，
    logger.exception 记录的失败（例如批量更新中单个库失败）额外带 exception。
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """为根日志器安装唯一的 stderr handler

    无法识别的级别名按 INFO 处理。run 脚本里再次调用 haxelib 时会重新配置，
    旧 handler 先被清掉，不会重复输出。
    """
    reset_logging()
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter() if json_output else logging.Formatter(HUMAN_FORMAT))
    root.addHandler(handler)


def reset_logging() -> None:
    root = logging.getLogger()
    for handler in root.handlers[:]:
        root.removeHandler(handler)
        handler.close()
