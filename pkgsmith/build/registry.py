"""
格式注册表

格式名 -> 打包器的映射，在进程启动时构建一次，之后以引用方式注入构建器与命令行。
注册在锁内完成；构建期间只读。
"""

import threading
from typing import TYPE_CHECKING, Dict, List, Optional

from .errors import NoPackagerError

if TYPE_CHECKING:
    from ..formats.base import Packager


class FormatRegistry:
    """格式注册表"""

    def __init__(self):
        self._lock = threading.Lock()
        self._packagers: Dict[str, 'Packager'] = {}
        self._aliases: Dict[str, str] = {}

    def register(self, name: str, packager: 'Packager', aliases: Optional[List[str]] = None) -> None:
        """注册打包器

        Args:
            name: 格式名
            packager: 打包器实例
            aliases: 额外的查找名
        """
        with self._lock:
            self._packagers[name] = packager
            for alias in aliases or ():
                self._aliases[alias] = name

    def get(self, name: str) -> 'Packager':
        """查找打包器

        Raises:
            NoPackagerError: 未注册的格式
        """
        key = self._aliases.get(name, name)
        packager = self._packagers.get(key)
        if packager is None:
            raise NoPackagerError(name)
        return packager

    def canonical_name(self, name: str) -> str:
        """把别名转换为注册名"""
        self.get(name)
        return self._aliases.get(name, name)

    def __contains__(self, name: str) -> bool:
        key = self._aliases.get(name, name)
        return key in self._packagers

    def names(self) -> List[str]:
        """已注册的格式名（按名称排序）"""
        return sorted(self._packagers)

    def items(self):
        return sorted(self._packagers.items())


def create_default_registry() -> FormatRegistry:
    """构建包含全部内置格式的注册表"""
    from ..formats import APKPackager, ArchLinuxPackager, DebPackager, RPMPackager

    registry = FormatRegistry()
    for packager in (ArchLinuxPackager(), DebPackager(), APKPackager(), RPMPackager()):
        registry.register(packager.name, packager, list(packager.aliases))
    return registry
