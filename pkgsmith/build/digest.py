"""
哈希计算工具

在流式写入归档的同时计算 MD5 / SHA-256（按需加 SHA-1），保证每个源文件只读取一次。
"""

import hashlib
from typing import BinaryIO, Dict, Iterable, Union

DEFAULT_ALGORITHMS = ("md5", "sha256")


class HashCalculator:
    """多算法哈希计算器"""

    def __init__(self, algorithms: Iterable[str] = DEFAULT_ALGORITHMS):
        """初始化哈希计算器

        Args:
            algorithms: 哈希算法名称列表
        """
        self._hashers: Dict[str, "hashlib._Hash"] = {}
        for algorithm in algorithms:
            name = algorithm.lower()
            if name not in hashlib.algorithms_available:
                raise ValueError(f"不支持的哈希算法: {algorithm}")
            self._hashers[name] = hashlib.new(name)
        self.size = 0

    def update(self, data: Union[bytes, str]) -> None:
        """更新哈希数据"""
        if isinstance(data, str):
            data = data.encode('utf-8')
        for hasher in self._hashers.values():
            hasher.update(data)
        self.size += len(data)

    def hexdigest(self, algorithm: str) -> str:
        """获取指定算法的十六进制哈希值"""
        return self._hashers[algorithm].hexdigest()

    def digest(self, algorithm: str) -> bytes:
        """获取指定算法的二进制哈希值"""
        return self._hashers[algorithm].digest()

    @property
    def md5(self) -> str:
        return self.hexdigest("md5")

    @property
    def sha256(self) -> str:
        return self.hexdigest("sha256")

    @classmethod
    def hash_data(cls, data: Union[bytes, str], algorithms: Iterable[str] = DEFAULT_ALGORITHMS) -> 'HashCalculator':
        """便捷方法：计算一段数据的哈希"""
        calculator = cls(algorithms)
        calculator.update(data)
        return calculator


class DigestingReader:
    """读取时同步更新哈希的包装器

    tarfile.addfile 从 fileobj 拉取数据，因此写穿透装饰在读取一侧实现：
    每次 read 返回的字节同时进入哈希器。
    """

    def __init__(self, source: BinaryIO, calculator: HashCalculator):
        self._source = source
        self.calculator = calculator

    def read(self, size: int = -1) -> bytes:
        chunk = self._source.read(size)
        if chunk:
            self.calculator.update(chunk)
        return chunk


class DigestingWriter:
    """写入时同步更新哈希并转发到下游流的包装器"""

    def __init__(self, sink: BinaryIO, calculator: HashCalculator):
        self._sink = sink
        self.calculator = calculator

    def write(self, data: bytes) -> int:
        self.calculator.update(data)
        return self._sink.write(data)

    def flush(self) -> None:
        if hasattr(self._sink, 'flush'):
            self._sink.flush()

    def tell(self) -> int:
        return self.calculator.size
