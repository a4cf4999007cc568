"""
描述信息解析步骤

注册表查找 -> 合并格式覆盖 -> 应用默认值 -> 校验，全部在写出任何字节之前完成。
"""

from pathlib import Path

from ...utils.logging import LogStage, debug, info
from ..build_context import BuildContext
from ..info import with_defaults
from .build_step import BuildStep


class InfoResolutionStep(BuildStep):
    """描述信息解析步骤"""

    def __init__(self):
        super().__init__("resolve", "解析软件包描述信息")

    def get_progress_range(self) -> tuple[int, int]:
        return (0, 20)

    def execute(self, context: BuildContext) -> None:
        start, end = self.get_progress_range()
        context.report("解析描述信息", start, f"目标格式 {context.format_name}")

        packager = context.registry.get(context.format_name)
        resolved = context.config.get(self._override_key(context))
        resolved = with_defaults(resolved)
        packager.validate(resolved)

        context.packager = packager
        context.info = resolved
        context.output_path = self._output_path(context)

        debug(
            f"name={resolved.name} version={resolved.version} release={resolved.release} "
            f"prerelease={resolved.prerelease} arch={packager.resolve_arch(resolved)}",
            LogStage.RESOLVE,
        )
        info(f"输出文件: {context.output_path}", LogStage.RESOLVE)
        context.report("解析描述信息", end, "完成")

    @staticmethod
    def _override_key(context: BuildContext) -> str:
        """覆盖块可以用注册名或别名作为键"""
        canonical = context.registry.canonical_name(context.format_name)
        for key in context.config.overrides:
            if key in context.registry and context.registry.canonical_name(key) == canonical:
                return key
        return canonical

    @staticmethod
    def _output_path(context: BuildContext) -> Path:
        """目标为空或为目录时使用约定文件名"""
        file_name = context.packager.conventional_file_name(context.info)
        if context.target is None:
            return Path.cwd() / file_name
        if context.target.is_dir():
            return context.target / file_name
        return context.target
