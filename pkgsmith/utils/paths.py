"""
路径工具

提供路径处理相关的工具函数。
"""

import os
from pathlib import Path
from typing import Union


def expand_path(path: Union[str, Path], base_dir: Union[str, Path, None] = None) -> Path:
    """扩展路径（处理环境变量和用户目录），相对路径基于 base_dir 解析

    Args:
        path: 原始路径
        base_dir: 相对路径的基准目录

    Returns:
        Path: 扩展后的路径
    """
    if isinstance(path, str):
        path = os.path.expandvars(path)
        path = os.path.expanduser(path)

    result = Path(path)
    if base_dir is not None and not result.is_absolute():
        result = Path(base_dir) / result
    return result


def ensure_directory(path: Union[str, Path]) -> Path:
    """确保目录存在

    Args:
        path: 目录路径

    Returns:
        Path: 目录路径
    """
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


def format_size(size_bytes: int) -> str:
    """格式化文件大小

    Args:
        size_bytes: 字节数

    Returns:
        str: 格式化的大小字符串
    """
    if size_bytes == 0:
        return "0 B"

    units = ["B", "KB", "MB", "GB", "TB"]
    unit_index = 0
    size = float(size_bytes)

    while size >= 1024.0 and unit_index < len(units) - 1:
        size /= 1024.0
        unit_index += 1

    if unit_index == 0:
        return f"{int(size)} {units[unit_index]}"
    return f"{size:.1f} {units[unit_index]}"
