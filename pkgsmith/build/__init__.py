"""构建服务模块

提供软件包构建的核心功能：内容解析、归档编码、压缩、摘要与构建管道。
"""

from .builder import Builder, BuildResult
from .build_context import BuildContext, BuildError
from .collector import ContentEntry, ContentResolver, resolve_contents
from .compressor import (
    CompressionAlgorithm,
    Compressor,
    CompressorFactory,
    parse_compression,
)
from .digest import HashCalculator
from .registry import FormatRegistry, create_default_registry

__all__ = [
    # 主构建器
    "Builder",
    "BuildResult",
    "BuildContext",
    "BuildError",

    # 内容解析
    "ContentEntry",
    "ContentResolver",
    "resolve_contents",

    # 压缩相关
    "CompressionAlgorithm",
    "Compressor",
    "CompressorFactory",
    "parse_compression",

    # 摘要
    "HashCalculator",

    # 格式注册
    "FormatRegistry",
    "create_default_registry",
]
