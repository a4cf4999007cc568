"""配置和 Schema 模块

提供 YAML 配置文件的加载、验证和保存功能，以及按格式合并覆盖字段。
"""

from .schema import ContentType, Info, Overridables, PackageConfig
from .merge import merge_model, resolve_info
from .loader import (
    ConfigLoader,
    ConfigValidationError,
    ConfigError,
    ValidationResult,
    load_config,
    validate_config,
    validate_config_with_result,
    save_config,
    config_loader,
)

__all__ = [
    # 主要类
    "PackageConfig",
    "Info",
    "Overridables",
    "ContentType",
    "ConfigLoader",
    "ValidationResult",

    # 异常类
    "ConfigError",
    "ConfigValidationError",

    # 便捷函数
    "load_config",
    "validate_config",
    "validate_config_with_result",
    "save_config",
    "merge_model",
    "resolve_info",

    # 单例
    "config_loader",
]
