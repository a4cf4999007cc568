"""
打包步骤

把打包器输出写入同目录的临时文件，成功后原子替换为目标文件；失败时删除临时文件。
"""

import os
import tempfile
from pathlib import Path

from ...utils.logging import LogStage, get_stage_logger
from ...utils.paths import ensure_directory, format_size
from ..build_context import BuildContext, BuildError
from .build_step import BuildStep

logger = get_stage_logger(LogStage.WRITE)


class PackagingStep(BuildStep):
    """打包步骤"""

    def __init__(self):
        super().__init__("package", "生成软件包")

    def get_progress_range(self) -> tuple[int, int]:
        return (20, 100)

    def execute(self, context: BuildContext) -> None:
        if context.packager is None or context.info is None or context.output_path is None:
            raise BuildError("缺少解析后的描述信息")

        start, end = self.get_progress_range()
        output_path = context.output_path
        context.report("生成软件包", start, output_path.name)
        ensure_directory(output_path.parent)

        fd, temp_name = tempfile.mkstemp(prefix=f".{output_path.name}.", suffix=".tmp", dir=output_path.parent)
        temp_path = Path(temp_name)
        logger.debug(f"写入临时文件 {temp_path}")
        try:
            with os.fdopen(fd, 'wb') as f:
                context.packager.package(context.info, f)
            os.replace(temp_path, output_path)
        except BaseException:
            temp_path.unlink(missing_ok=True)
            raise

        size = output_path.stat().st_size
        context.build_stats['output_size'] = size
        context.report("生成软件包", end, f"完成，大小 {format_size(size)}")
        logger.success(f"软件包已生成: {output_path} ({format_size(size)})")
