"""子命令实现

格式注册表在进程内只构建一次，由各子命令共享。
"""

from functools import lru_cache

from ...build.registry import FormatRegistry, create_default_registry


@lru_cache(maxsize=None)
def get_registry() -> FormatRegistry:
    """获取命令行共享的格式注册表"""
    return create_default_registry()
