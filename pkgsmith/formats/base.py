"""
打包器抽象接口

每种目标格式实现 package() 与 conventional_file_name()；
描述信息在一次构建期间只读，打包器在写出任何字节之前完成校验。
"""

import re
from abc import ABC, abstractmethod
from typing import BinaryIO, Dict, Optional, Pattern, Tuple

from ..build.errors import InvalidPackageNameError
from ..build.info import ensure_platform, translate_arch, validate_info
from ..config.schema import Info


class Packager(ABC):
    """打包器抽象基类"""

    #: 注册名
    name: str = ""
    #: 别名（同样可以在注册表中查找）
    aliases: Tuple[str, ...] = ()
    #: 输出文件扩展名
    extension: str = ""
    #: 架构别名表
    arch_table: Dict[str, str] = {}
    #: 包名语法
    name_pattern: Pattern[str] = re.compile(r".+")
    #: 支持的平台
    supported_platforms: Tuple[str, ...] = ("linux",)

    @abstractmethod
    def package(self, info: Info, output: BinaryIO) -> None:
        """把软件包写入 output

        Args:
            info: 已合并并应用默认值的描述信息
            output: 二进制输出流

        Raises:
            PackageValidationError: 描述信息无效（未写出任何字节）
            UnsupportedError: 格式不支持的平台或压缩算法
            SourceFileError: 内容或脚本文件不可读
        """
        pass

    @abstractmethod
    def conventional_file_name(self, info: Info) -> str:
        """根据描述信息生成约定的输出文件名"""
        pass

    def arch_override(self, info: Info) -> Optional[str]:
        """格式扩展块中的显式架构覆盖"""
        return None

    def resolve_arch(self, info: Info) -> str:
        """翻译后的架构名称，显式覆盖无条件优先"""
        return translate_arch(info, self.arch_table, self.arch_override(info))

    def validate(self, info: Info) -> None:
        """写出任何字节之前的统一校验

        Raises:
            FieldEmptyError: 必填字段为空
            InvalidPackageNameError: 包名不符合格式语法
            UnsupportedPlatformError: 不支持的平台
        """
        validate_info(info)
        if not self.name_pattern.match(info.name):
            raise InvalidPackageNameError(info.name, self.name)
        ensure_platform(info, self.name, self.supported_platforms)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
