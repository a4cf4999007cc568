"""
压缩层

提供统一的流式压缩接口：gzip、xz、lzma、zstd 与不压缩。
压缩器只负责字节流变换，不了解软件包语义；写入器关闭时不会关闭下游流。
"""

import gzip
import io
import lzma
from abc import ABC, abstractmethod
from enum import Enum
from typing import BinaryIO, Dict, List, Optional, Tuple

import zstandard as zstd

from .errors import UnsupportedCompressionError


class CompressionAlgorithm(str, Enum):
    """压缩算法枚举"""
    GZIP = "gzip"
    XZ = "xz"
    LZMA = "lzma"
    ZSTD = "zstd"
    NONE = "none"


class _PassthroughWriter(io.RawIOBase):
    """不压缩的写入器，关闭时保留下游流"""

    def __init__(self, sink: BinaryIO):
        self._sink = sink

    def writable(self) -> bool:
        return True

    def write(self, data) -> int:
        self._sink.write(data)
        return len(data)

    def flush(self) -> None:
        self._sink.flush()


class Compressor(ABC):
    """压缩器抽象基类"""

    default_level: int = 0
    #: 允许的级别范围（闭区间）
    level_range: Tuple[int, int] = (0, 0)

    def __init__(self, level: Optional[int] = None):
        self.level = self.default_level if level is None else level

    @abstractmethod
    def get_algorithm(self) -> CompressionAlgorithm:
        """获取压缩算法"""
        pass

    @abstractmethod
    def open_writer(self, sink: BinaryIO) -> BinaryIO:
        """返回包装 sink 的压缩写入流

        调用方负责关闭返回的写入流；关闭写入流会刷出压缩尾部，但不会关闭 sink。
        """
        pass

    @property
    def extension(self) -> str:
        """压缩文件扩展名"""
        return ""

    def compress(self, data: bytes) -> bytes:
        """压缩一段完整数据"""
        buffer = io.BytesIO()
        writer = self.open_writer(buffer)
        try:
            writer.write(data)
        finally:
            writer.close()
        return buffer.getvalue()


class GzipCompressor(Compressor):
    """Gzip 压缩器（mtime 固定为 0，保证输出可复现）"""

    default_level = 6
    level_range = (0, 9)

    def get_algorithm(self) -> CompressionAlgorithm:
        return CompressionAlgorithm.GZIP

    @property
    def extension(self) -> str:
        return ".gz"

    def open_writer(self, sink: BinaryIO) -> BinaryIO:
        return gzip.GzipFile(filename="", mode="wb", fileobj=sink, compresslevel=self.level, mtime=0)


class XzCompressor(Compressor):
    """XZ 压缩器"""

    default_level = 6
    level_range = (0, 9)

    def get_algorithm(self) -> CompressionAlgorithm:
        return CompressionAlgorithm.XZ

    @property
    def extension(self) -> str:
        return ".xz"

    def open_writer(self, sink: BinaryIO) -> BinaryIO:
        return lzma.LZMAFile(sink, mode="wb", format=lzma.FORMAT_XZ, preset=self.level)


class LzmaCompressor(Compressor):
    """LZMA（alone 格式）压缩器"""

    default_level = 6
    level_range = (0, 9)

    def get_algorithm(self) -> CompressionAlgorithm:
        return CompressionAlgorithm.LZMA

    @property
    def extension(self) -> str:
        return ".lzma"

    def open_writer(self, sink: BinaryIO) -> BinaryIO:
        return lzma.LZMAFile(sink, mode="wb", format=lzma.FORMAT_ALONE, preset=self.level)


class ZstdCompressor(Compressor):
    """Zstd 压缩器"""

    default_level = 3
    level_range = (1, zstd.MAX_COMPRESSION_LEVEL)

    def __init__(self, level: Optional[int] = None):
        super().__init__(level)
        self._cctx = zstd.ZstdCompressor(level=self.level)

    def get_algorithm(self) -> CompressionAlgorithm:
        return CompressionAlgorithm.ZSTD

    @property
    def extension(self) -> str:
        return ".zst"

    def open_writer(self, sink: BinaryIO) -> BinaryIO:
        return self._cctx.stream_writer(sink, closefd=False)


class NoneCompressor(Compressor):
    """不压缩"""

    def get_algorithm(self) -> CompressionAlgorithm:
        return CompressionAlgorithm.NONE

    def open_writer(self, sink: BinaryIO) -> BinaryIO:
        return _PassthroughWriter(sink)


_COMPRESSORS: Dict[CompressionAlgorithm, type] = {
    CompressionAlgorithm.GZIP: GzipCompressor,
    CompressionAlgorithm.XZ: XzCompressor,
    CompressionAlgorithm.LZMA: LzmaCompressor,
    CompressionAlgorithm.ZSTD: ZstdCompressor,
    CompressionAlgorithm.NONE: NoneCompressor,
}


def parse_compression(spec: Optional[str], default: CompressionAlgorithm = CompressionAlgorithm.GZIP
                      ) -> Tuple[CompressionAlgorithm, Optional[int]]:
    """解析 "算法[:级别]" 形式的压缩配置

    Args:
        spec: 配置字符串，空值表示使用默认算法
        default: 默认算法

    Returns:
        Tuple[CompressionAlgorithm, Optional[int]]: 算法与级别（未指定时为 None）

    Raises:
        UnsupportedCompressionError: 未知算法，或级别不是整数、超出该算法的范围
    """
    if not spec:
        return default, None

    name, _, level_text = spec.strip().lower().partition(":")
    try:
        algorithm = CompressionAlgorithm(name or default.value)
    except ValueError:
        raise UnsupportedCompressionError(spec) from None

    if not level_text:
        return algorithm, None
    try:
        level = int(level_text)
    except ValueError:
        raise UnsupportedCompressionError(spec) from None

    low, high = _COMPRESSORS[algorithm].level_range
    if not low <= level <= high:
        raise UnsupportedCompressionError(spec)
    return algorithm, level


class CompressorFactory:
    """压缩器工厂"""

    @staticmethod
    def create_compressor(algorithm: CompressionAlgorithm, level: Optional[int] = None) -> Compressor:
        """创建压缩器

        Args:
            algorithm: 压缩算法
            level: 压缩级别，None 使用算法默认值

        Returns:
            Compressor: 压缩器实例

        Raises:
            UnsupportedCompressionError: 不支持的算法或级别
        """
        algorithm = CompressionAlgorithm(algorithm)
        compressor_cls = _COMPRESSORS.get(algorithm)
        if compressor_cls is None:
            raise UnsupportedCompressionError(algorithm.value)
        if level is not None:
            low, high = compressor_cls.level_range
            if not low <= level <= high:
                raise UnsupportedCompressionError(f"{algorithm.value}:{level}")
        return compressor_cls(level)

    @staticmethod
    def from_spec(spec: Optional[str], default: CompressionAlgorithm = CompressionAlgorithm.GZIP) -> Compressor:
        """从 "算法[:级别]" 配置字符串创建压缩器"""
        algorithm, level = parse_compression(spec, default)
        return CompressorFactory.create_compressor(algorithm, level)

    @staticmethod
    def get_available_algorithms() -> List[CompressionAlgorithm]:
        """获取可用的压缩算法列表"""
        return list(_COMPRESSORS)
