"""打包格式模块

每种目标格式一个打包器，统一实现 Packager 接口。
"""

from .apk import APKPackager
from .arch import ArchLinuxPackager
from .base import Packager
from .deb import DebPackager
from .rpm import RPMPackager

__all__ = [
    "Packager",
    "APKPackager",
    "ArchLinuxPackager",
    "DebPackager",
    "RPMPackager",
]
