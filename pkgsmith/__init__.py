"""
pkgsmith - Linux 软件包构建工具

Builds Arch Linux, Debian, Alpine (apk) and RPM packages from one YAML description.
"""

__version__ = "0.1.0"
__license__ = "MIT"

from .config.schema import PackageConfig
from .build.builder import Builder

__all__ = ["PackageConfig", "Builder", "__version__"]
