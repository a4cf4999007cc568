"""
构建上下文模块

定义构建过程中的共享数据结构和异常类。
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from ..config.schema import Info, PackageConfig
from .registry import FormatRegistry

if TYPE_CHECKING:
    from ..formats.base import Packager

# 进度回调类型 (阶段, 当前, 总数, 消息)
ProgressCallback = Callable[[str, int, int, str], None]


@dataclass
class BuildContext:
    """构建上下文，包含一次构建（单一格式）的共享数据"""
    config: PackageConfig
    format_name: str
    registry: FormatRegistry
    target: Optional[Path] = None
    progress_callback: Optional[ProgressCallback] = None

    # 构建过程中生成的数据
    info: Optional[Info] = None
    packager: Optional['Packager'] = None
    output_path: Optional[Path] = None

    # 统计信息
    build_stats: Dict[str, Any] = field(default_factory=lambda: {
        'start_time': 0.0,
        'end_time': 0.0,
        'output_size': 0,
    })

    def report(self, stage: str, current: int, message: str) -> None:
        """回调进度（百分比）"""
        if self.progress_callback:
            self.progress_callback(stage, current, 100, message)


class BuildError(Exception):
    """构建错误：包装导致构建失败的原始异常"""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause

    @property
    def error_type(self) -> str:
        return type(self.cause).__name__ if self.cause is not None else type(self).__name__
