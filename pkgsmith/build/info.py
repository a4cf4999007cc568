"""
Info 默认值与校验

默认值只在构建开始前应用一次；打包器在写出任何字节之前调用 validate_info。
"""

import os
import time
from typing import Dict, Optional

from ..config.schema import Info
from .errors import FieldEmptyError, UnsupportedPlatformError
from .version import normalize_version

DEFAULT_PLATFORM = "linux"
DEFAULT_DESCRIPTION = "no description given"


def with_defaults(info: Info) -> Info:
    """返回应用了默认值并规范化版本号的 Info 副本"""
    updates: Dict[str, object] = {}
    if not info.platform:
        updates['platform'] = DEFAULT_PLATFORM
    if not info.description:
        updates['description'] = DEFAULT_DESCRIPTION

    parts = normalize_version(info.version, info.release, info.prerelease)
    updates['version'] = parts.version
    updates['release'] = parts.release
    updates['prerelease'] = parts.prerelease

    resolved = info.model_copy(update=updates, deep=True)
    if parts.metadata and not resolved.deb.metadata:
        resolved.deb = resolved.deb.model_copy(update={'metadata': parts.metadata})
    return resolved


def validate_info(info: Info) -> None:
    """校验必填字段

    Raises:
        FieldEmptyError: name / arch / version 为空
    """
    if not info.name:
        raise FieldEmptyError("name")
    if not info.arch:
        raise FieldEmptyError("arch")
    if not info.version:
        raise FieldEmptyError("version")


def ensure_platform(info: Info, format_name: str, supported: tuple = (DEFAULT_PLATFORM,)) -> None:
    """校验平台是否被目标格式支持"""
    platform = info.platform or DEFAULT_PLATFORM
    if platform not in supported:
        raise UnsupportedPlatformError(platform, format_name)


def translate_arch(info: Info, table: Dict[str, str], override: Optional[str] = None) -> str:
    """通过别名表翻译架构名称，格式块中的显式覆盖无条件优先"""
    if override:
        return override
    return table.get(info.arch, info.arch)


def build_time(info: Info) -> int:
    """生成条目使用的时间戳：Info.mtime > SOURCE_DATE_EPOCH > 当前时间"""
    if info.mtime is not None:
        return int(info.mtime)
    source_date_epoch = os.environ.get("SOURCE_DATE_EPOCH", "").strip()
    if source_date_epoch.isdigit():
        return int(source_date_epoch)
    return int(time.time())
