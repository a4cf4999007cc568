"""
配置加载器

负责从 YAML 文件加载配置并进行验证：展开版本字段中的环境变量，
把相对源路径解析为相对于配置文件所在目录的绝对路径。
"""

import copy
import json
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

from pydantic import ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.constructor import SafeConstructor
from ruamel.yaml.error import YAMLError

from .schema import PackageConfig

if TYPE_CHECKING:
    from ..build.registry import FormatRegistry

DEFAULT_CONFIG_FILE = "pkgsmith.yaml"

# 支持环境变量展开的字段
EXPANDABLE_FIELDS = ("version", "release", "epoch", "prerelease")

# YAML 1.1 风格的八进制整数（0644），不含 0o 前缀
_LEGACY_OCTAL = re.compile(r"^[-+]?0_*[0-7][0-7_]*$")


class ConfigConstructor(SafeConstructor):
    """配置文件构造器

    YAML 1.2 把 0644 读作十进制 644；这里按 YAML 1.1 规则读作八进制，
    与 mode: 0644 的常见写法一致。
    """

    def construct_yaml_int(self, node):
        text = self.construct_scalar(node)
        if _LEGACY_OCTAL.match(text):
            sign = -1 if text.startswith("-") else 1
            return sign * int(text.lstrip("+-").replace("_", ""), 8)
        return super().construct_yaml_int(node)


ConfigConstructor.add_constructor("tag:yaml.org,2002:int", ConfigConstructor.construct_yaml_int)


class ConfigError(Exception):
    """配置错误基类"""
    pass


class ConfigValidationError(ConfigError):
    """配置验证错误"""

    def __init__(self, message: str, errors: List[Dict[str, Any]]):
        super().__init__(message)
        self.errors = errors

    def format_errors(self) -> str:
        """格式化错误信息为人类可读的格式"""
        formatted = []
        for error in self.errors:
            loc = " -> ".join(str(item) for item in error.get('loc', []))
            msg = error.get('msg', '未知错误')
            input_val = error.get('input', '')

            if loc:
                formatted.append(f"字段 '{loc}': {msg}")
                if input_val not in ('', None) and not isinstance(input_val, dict):
                    formatted.append(f"  输入值: {input_val}")
            else:
                formatted.append(f"根级别: {msg}")

        return "\n".join(formatted)

    def format_errors_json(self, source: Optional[Union[str, Path]] = None) -> str:
        """格式化错误信息为 JSON 格式

        Args:
            source: 出错的配置文件，给出时写入 "file" 字段
        """
        document: Dict[str, Any] = {}
        if source is not None:
            document["file"] = str(source)
        document["errors"] = self.errors
        document["error_count"] = len(self.errors)
        return json.dumps(document, ensure_ascii=False, indent=2, default=str)


@dataclass
class ValidationResult:
    """配置验证结果"""
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    config: Optional[PackageConfig] = None


class ConfigLoader:
    """配置加载器"""

    def __init__(self, registry: Optional['FormatRegistry'] = None):
        """初始化配置加载器

        Args:
            registry: 格式注册表；给出时校验 overrides 中的格式名
        """
        self.registry = registry
        self.yaml = YAML(typ="safe")
        self.yaml.Constructor = ConfigConstructor
        self.yaml.default_flow_style = False
        self.yaml.width = 4096  # 避免长行自动换行

    def load_from_file(self, config_path: Union[str, Path]) -> PackageConfig:
        """从文件加载配置

        Args:
            config_path: 配置文件路径

        Returns:
            PackageConfig: 验证后的配置实例

        Raises:
            ConfigError: 配置加载错误
            ConfigValidationError: 配置验证错误
            NoPackagerError: overrides 中出现未注册的格式
        """
        config_path = Path(config_path)

        if not config_path.exists():
            raise ConfigError(f"配置文件不存在: {config_path}")
        if not config_path.is_file():
            raise ConfigError(f"配置路径不是文件: {config_path}")
        if config_path.suffix.lower() not in ('.yaml', '.yml'):
            raise ConfigError(f"配置文件必须是 .yaml 或 .yml 格式: {config_path}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                raw_data = self.yaml.load(f)
        except YAMLError as e:
            raise ConfigError(f"YAML 解析错误: {e}") from e
        except OSError as e:
            raise ConfigError(f"文件读取错误: {e}") from e

        if raw_data is None:
            raise ConfigError("配置文件为空")
        if not isinstance(raw_data, dict):
            raise ConfigError("配置文件根级别必须是对象/字典格式")

        return self.load_from_dict(raw_data, config_path.parent.resolve())

    def load_from_dict(self, data: Dict[str, Any], base_path: Optional[Path] = None) -> PackageConfig:
        """从字典加载配置

        Args:
            data: 配置数据字典（不会被修改）
            base_path: 相对路径的基准路径

        Returns:
            PackageConfig: 验证后的配置实例

        Raises:
            ConfigValidationError: 配置验证错误
        """
        data = copy.deepcopy(data)
        self._expand_env(data)
        if base_path is not None:
            self._resolve_relative_paths(data, Path(base_path))
            if isinstance(data.get('overrides'), dict):
                for override in data['overrides'].values():
                    if isinstance(override, dict):
                        self._resolve_relative_paths(override, Path(base_path))
            if isinstance(data.get('changelog'), str) and data['changelog']:
                data['changelog'] = self._resolve(data['changelog'], Path(base_path))

        try:
            config = PackageConfig.from_dict(data)
        except ValidationError as e:
            raise ConfigValidationError("配置验证失败", e.errors()) from e

        if self.registry is not None:
            for format_name in config.overrides:
                self.registry.get(format_name)

        return config

    def save_to_file(self, config: PackageConfig, output_path: Union[str, Path]) -> None:
        """保存配置到文件

        Raises:
            ConfigError: 保存错误
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        try:
            with open(output_path, 'w', encoding='utf-8') as f:
                self.yaml.dump(config.to_dict(), f)
        except OSError as e:
            raise ConfigError(f"保存配置文件失败: {e}") from e

    def validate_file(self, config_path: Union[str, Path]) -> List[Dict[str, Any]]:
        """验证配置文件并返回错误列表，空列表表示验证通过"""
        try:
            self.load_from_file(config_path)
            return []
        except ConfigValidationError as e:
            return e.errors
        except ConfigError as e:
            return [{'loc': [], 'msg': str(e), 'type': 'config_error'}]

    @staticmethod
    def _expand_env(data: Dict[str, Any]) -> None:
        """展开 $VAR / ${VAR}"""
        for key in EXPANDABLE_FIELDS:
            value = data.get(key)
            if isinstance(value, str):
                data[key] = os.path.expandvars(value)

    @staticmethod
    def _resolve(path_value: str, base_path: Path) -> str:
        expanded = os.path.expanduser(path_value)
        if os.path.isabs(expanded):
            return expanded
        # glob 模式不能 resolve，只做拼接
        return os.path.normpath(str(base_path / expanded))

    def _resolve_relative_paths(self, data: Dict[str, Any], base_path: Path) -> None:
        """解析一个 Overridables 块中的相对源路径

        符号链接的键是包内链接目标，不做解析。
        """
        for key in ('files', 'config_files'):
            mapping = data.get(key)
            if isinstance(mapping, dict):
                data[key] = {self._resolve(src, base_path): dst for src, dst in mapping.items()}

        rpm = data.get('rpm')
        if isinstance(rpm, dict) and isinstance(rpm.get('config_noreplace_files'), dict):
            rpm['config_noreplace_files'] = {
                self._resolve(src, base_path): dst for src, dst in rpm['config_noreplace_files'].items()
            }

        contents = data.get('contents')
        if isinstance(contents, list):
            for item in contents:
                if not isinstance(item, dict) or not isinstance(item.get('src'), str):
                    continue
                if item.get('type') in ('symlink', 'dir'):
                    continue
                item['src'] = self._resolve(item['src'], base_path)

        script_blocks = [data.get('scripts')]
        for block in ('archlinux', 'apk', 'deb'):
            if isinstance(data.get(block), dict):
                script_blocks.append(data[block].get('scripts'))
        for scripts in script_blocks:
            if not isinstance(scripts, dict):
                continue
            for hook, path_value in scripts.items():
                if isinstance(path_value, str) and path_value:
                    scripts[hook] = self._resolve(path_value, base_path)


# 全局加载器实例（不校验格式名）
config_loader = ConfigLoader()


def load_config(config_path: Union[str, Path], registry: Optional['FormatRegistry'] = None) -> PackageConfig:
    """便捷函数：加载配置文件"""
    if registry is None:
        return config_loader.load_from_file(config_path)
    return ConfigLoader(registry).load_from_file(config_path)


def validate_config(config_path: Union[str, Path]) -> List[Dict[str, Any]]:
    """便捷函数：验证配置文件"""
    return config_loader.validate_file(config_path)


def validate_config_with_result(config_path: Union[str, Path],
                                registry: Optional['FormatRegistry'] = None) -> ValidationResult:
    """验证配置并返回详细结果"""
    from ..build.errors import NoPackagerError

    try:
        config = load_config(config_path, registry)
    except ConfigValidationError as e:
        return ValidationResult(is_valid=False, errors=e.format_errors().splitlines())
    except (ConfigError, NoPackagerError) as e:
        return ValidationResult(is_valid=False, errors=[str(e)])
    return ValidationResult(is_valid=True, config=config)


def save_config(config: PackageConfig, output_path: Union[str, Path]) -> None:
    """便捷函数：保存配置文件"""
    config_loader.save_to_file(config, output_path)
