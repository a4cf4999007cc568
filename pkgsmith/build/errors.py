"""
打包错误类型

定义打包流程中所有可预期的失败类型，按照校验 / 不支持的组合 / 源文件 I/O 三类划分。
编码层（tarfile / gzip / lzma / zstandard）抛出的异常不在此包装，原样向上传播。
"""

from typing import Optional


class PackagingError(Exception):
    """打包错误基类"""
    pass


class PackageValidationError(PackagingError):
    """描述信息校验失败（在写出任何字节之前抛出）"""
    pass


class FieldEmptyError(PackageValidationError):
    """必填字段为空"""

    def __init__(self, field: str):
        super().__init__(f"软件包字段 {field} 不能为空")
        self.field = field


class InvalidPackageNameError(PackageValidationError):
    """包名不符合目标格式的命名规则"""

    def __init__(self, name: str, format_name: Optional[str] = None):
        target = f" ({format_name})" if format_name else ""
        super().__init__(f"无效的包名{target}: {name!r}")
        self.name = name
        self.format_name = format_name


class NoPackagerError(PackageValidationError):
    """未注册的打包格式"""

    def __init__(self, format_name: str):
        super().__init__(f"未注册的打包格式: {format_name}")
        self.format_name = format_name


class ContentCollisionError(PackageValidationError):
    """多个内容条目指向同一目标路径"""

    def __init__(self, destination: str):
        super().__init__(f"内容路径冲突: {destination} 被声明了多次")
        self.destination = destination


class InvalidContentError(PackageValidationError):
    """内容条目定义无效"""
    pass


class UnsupportedError(PackagingError):
    """目标格式不支持的组合"""
    pass


class UnsupportedPlatformError(UnsupportedError):
    """目标格式不支持该平台"""

    def __init__(self, platform: str, format_name: str):
        super().__init__(f"{format_name} 不支持的平台: {platform}")
        self.platform = platform
        self.format_name = format_name


class UnsupportedCompressionError(UnsupportedError):
    """不支持的压缩算法"""

    def __init__(self, algorithm: str):
        super().__init__(f"不支持的压缩算法: {algorithm}")
        self.algorithm = algorithm


class SourceFileError(PackagingError):
    """源文件（内容或脚本）缺失或不可读"""

    def __init__(self, path: str, reason: str):
        super().__init__(f"读取文件失败 {path}: {reason}")
        self.path = path
        self.reason = reason


class GlobNoMatchError(SourceFileError):
    """glob 模式没有匹配到任何文件"""

    def __init__(self, pattern: str):
        super().__init__(pattern, "glob 没有匹配到任何文件")
        self.pattern = pattern
