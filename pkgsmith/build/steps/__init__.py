"""构建步骤模块"""

from .build_step import BuildStep
from .packaging_step import PackagingStep
from .resolve_step import InfoResolutionStep

__all__ = [
    "BuildStep",
    "InfoResolutionStep",
    "PackagingStep",
]
