"""
构建管道模块

使用管道模式协调构建步骤的执行。一次执行只构建一个格式；失败不重试。
"""

import time
from pathlib import Path
from typing import List, Optional

from ..config.schema import PackageConfig
from ..utils.logging import LogStage, debug, error, info, success
from .build_context import BuildContext, BuildError, ProgressCallback
from .registry import FormatRegistry
from .steps.build_step import BuildStep
from .steps.packaging_step import PackagingStep
from .steps.resolve_step import InfoResolutionStep


class BuildPipeline:
    """构建管道，负责协调构建步骤的执行"""

    def __init__(self, registry: FormatRegistry):
        """初始化构建管道

        Args:
            registry: 格式注册表
        """
        self.registry = registry
        self._steps: List[BuildStep] = []
        self._init_default_steps()

    def _init_default_steps(self):
        """初始化默认的构建步骤"""
        self._steps = [
            InfoResolutionStep(),
            PackagingStep(),
        ]

    def add_step(self, step: BuildStep, position: Optional[int] = None):
        """添加构建步骤"""
        if position is None:
            self._steps.append(step)
        else:
            self._steps.insert(position, step)

    def remove_step(self, step_name: str):
        """移除构建步骤"""
        self._steps = [step for step in self._steps if step.name != step_name]

    def get_steps(self) -> List[BuildStep]:
        """获取所有构建步骤"""
        return self._steps.copy()

    def execute(
        self,
        config: PackageConfig,
        format_name: str,
        target: Optional[Path] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> BuildContext:
        """执行构建管道

        Args:
            config: 配置对象
            format_name: 目标格式
            target: 输出文件或目录，None 表示当前目录
            progress_callback: 进度回调函数

        Returns:
            BuildContext: 构建上下文，包含所有构建结果

        Raises:
            BuildError: 构建失败（cause 为原始异常）
        """
        context = BuildContext(
            config=config,
            format_name=format_name,
            registry=self.registry,
            target=Path(target) if target is not None else None,
            progress_callback=progress_callback,
        )
        context.build_stats['start_time'] = time.time()

        try:
            info(f"开始构建 {format_name} 软件包: {config.name}", stage=LogStage.INIT)
            for step in self._steps:
                debug(f"执行步骤: {step.description}", stage=LogStage.INIT)
                step.execute(context)
        except Exception as e:
            context.build_stats['end_time'] = time.time()
            error(f"构建失败: {e}", stage=LogStage.ERROR)
            raise BuildError(str(e), e) from e

        context.build_stats['end_time'] = time.time()
        build_time = context.build_stats['end_time'] - context.build_stats['start_time']
        success(f"构建完成，用时 {build_time:.2f} 秒", stage=LogStage.DONE)
        return context

    def validate_pipeline(self) -> List[str]:
        """验证构建管道的完整性

        Returns:
            List[str]: 验证错误列表，空列表表示验证通过
        """
        errors = []

        if not self._steps:
            errors.append("构建管道中没有步骤")
            return errors

        prev_end = 0
        for step in self._steps:
            start, end = step.get_progress_range()
            if start != prev_end:
                errors.append(f"步骤 '{step.name}' 的进度范围不连续: 期望起始 {prev_end}%, 实际 {start}%")
            if start >= end:
                errors.append(f"步骤 '{step.name}' 的进度范围无效: {start}% - {end}%")
            prev_end = end

        if prev_end != 100:
            errors.append(f"构建管道的总进度范围不是100%: {prev_end}%")

        return errors
