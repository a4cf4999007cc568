"""
构建器主类

负责整个构建流程的协调，使用管道模式组织构建步骤。
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

from ..config.schema import PackageConfig
from .build_context import BuildError, ProgressCallback
from .build_pipeline import BuildPipeline
from .registry import FormatRegistry, create_default_registry


@dataclass
class BuildResult:
    """构建结果"""
    success: bool
    format_name: str = ""
    output_path: Optional[Path] = None
    output_size: Optional[int] = None
    build_time: Optional[float] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    exception: Optional[BaseException] = None


class Builder:
    """软件包构建器

    使用管道模式协调构建步骤，提供统一的构建接口。多个 Builder.build 调用可以并发执行，
    它们只共享只读的格式注册表。
    """

    def __init__(self, registry: Optional[FormatRegistry] = None):
        """初始化构建器

        Args:
            registry: 格式注册表，默认包含全部内置格式
        """
        self.registry = registry if registry is not None else create_default_registry()
        self.pipeline = BuildPipeline(self.registry)

    def build(
        self,
        config: PackageConfig,
        format_name: str,
        target: Optional[Union[str, Path]] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> BuildResult:
        """构建一个格式的软件包

        Args:
            config: 配置对象
            format_name: 目标格式
            target: 输出文件或目录
            progress_callback: 进度回调函数

        Returns:
            BuildResult: 构建结果，失败时 error / error_type 描述原因
        """
        try:
            context = self.pipeline.execute(
                config,
                format_name,
                Path(target) if target is not None else None,
                progress_callback,
            )
        except BuildError as e:
            return BuildResult(
                success=False,
                format_name=format_name,
                error=str(e),
                error_type=e.error_type,
                exception=e.cause,
            )

        return BuildResult(
            success=True,
            format_name=format_name,
            output_path=context.output_path,
            output_size=context.build_stats['output_size'],
            build_time=context.build_stats['end_time'] - context.build_stats['start_time'],
        )

    def validate_build_pipeline(self) -> List[str]:
        """验证构建管道的完整性"""
        return self.pipeline.validate_pipeline()
