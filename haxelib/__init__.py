"""haxelib - Haxe 库管理器"""

__version__ = "0.1.0"
