"""
覆盖合并

base + override -> resolved：逐字段合并，覆盖块中显式设置的字段优先。
嵌套的格式扩展块（rpm / deb / archlinux / apk / scripts）递归合并，列表与映射整体替换。
"""

import copy
from typing import Optional, TypeVar

from pydantic import BaseModel

from .schema import Info, Overridables

ModelT = TypeVar("ModelT", bound=BaseModel)


def merge_model(base: ModelT, override: BaseModel) -> ModelT:
    """把 override 中显式设置的字段合并到 base 的副本上

    Args:
        base: 基础模型
        override: 覆盖模型（只有 model_fields_set 中的字段参与合并）

    Returns:
        合并后的新模型，base 与 override 均不被修改
    """
    updates = {}
    for name in override.model_fields_set:
        if name not in type(base).model_fields:
            continue
        value = getattr(override, name)
        current = getattr(base, name)
        if isinstance(value, BaseModel) and isinstance(current, BaseModel):
            updates[name] = merge_model(current, value)
        else:
            updates[name] = copy.deepcopy(value)
    return base.model_copy(update=updates, deep=True)


def resolve_info(base: Info, override: Optional[Overridables] = None) -> Info:
    """生成某个目标格式的完整 Info

    Args:
        base: 基础描述信息（可以是 PackageConfig）
        override: 该格式的覆盖块，None 表示没有覆盖

    Returns:
        Info: 独立的新实例
    """
    data = base.model_dump(include=set(Info.model_fields))
    info = Info.model_validate(data)
    if override is None:
        return info
    return merge_model(info, override)
