"""
归档写入器

- TarWriter：按解析顺序写入内容条目，写入时同步计算摘要并生成清单记录
- tar_entry_bytes：生成不带结束块的单个 tar 条目（拼接式 tar）
- ArWriter：deb 使用的 ar 容器
- CpioWriter：RPM 载荷使用的 newc cpio
"""

import io
import os
import shutil
import tarfile
import tempfile
from typing import BinaryIO, Iterable, List, Optional, Set, Union

from ..utils.logging import LogStage, debug
from .collector import ContentEntry
from .digest import DEFAULT_ALGORITHMS, DigestingReader, HashCalculator
from .mtree import ManifestEntry, ManifestType

BLOCK_SIZE = tarfile.BLOCKSIZE
SPOOL_MAX_SIZE = 16 * 1024 * 1024
COPY_BUFSIZE = 64 * 1024

APK_CHECKSUM_HEADER = "APK-TOOLS.checksum.SHA1"


def _padding(size: int, alignment: int) -> bytes:
    remainder = size % alignment
    return b"\0" * (alignment - remainder) if remainder else b""


def make_tarinfo(
    name: str,
    entry_type: bytes = tarfile.REGTYPE,
    mode: int = 0o644,
    mtime: int = 0,
    size: int = 0,
    linkname: str = "",
    owner: str = "root",
    group: str = "root",
) -> tarfile.TarInfo:
    """创建 tar 条目头（属主统一为 uid/gid 0，以名称区分）"""
    info = tarfile.TarInfo(name)
    info.type = entry_type
    info.mode = mode
    info.mtime = mtime
    info.size = size
    info.linkname = linkname
    info.uid = 0
    info.gid = 0
    info.uname = owner
    info.gname = group
    return info


def tar_entry_bytes(info: tarfile.TarInfo, data: bytes = b"", tar_format: int = tarfile.PAX_FORMAT) -> bytes:
    """生成单个 tar 条目的原始字节（头 + 数据 + 块填充），不含结束块"""
    info.size = len(data)
    header = info.tobuf(tar_format, "utf-8", "surrogateescape")
    return header + data + _padding(len(data), BLOCK_SIZE)


class TarWriter:
    """tar 写入器

    负责把内容条目写入 tar，并为每个条目返回清单记录。
    """

    def __init__(
        self,
        fileobj: BinaryIO,
        tar_format: int = tarfile.PAX_FORMAT,
        prefix: str = "",
        create_parents: bool = False,
        default_mtime: int = 0,
        algorithms: Iterable[str] = DEFAULT_ALGORITHMS,
        checksum_header: Optional[str] = None,
    ):
        """初始化 tar 写入器

        Args:
            fileobj: 输出流（未压缩的 tar 字节写入此处）
            tar_format: tar 格式
            prefix: 归档内路径前缀（deb 为 "./"，Arch / APK 为空）
            create_parents: 是否自动创建中间目录条目
            default_mtime: 未声明修改时间的条目使用的时间戳
            algorithms: 文件摘要算法
            checksum_header: 非空时为每个普通文件写入该 PAX 头（值为 SHA-1）
        """
        self._tar = tarfile.open(fileobj=fileobj, mode="w", format=tar_format)
        self.prefix = prefix
        self.create_parents = create_parents
        self.default_mtime = default_mtime
        self.algorithms = tuple(algorithms)
        if checksum_header and "sha1" not in self.algorithms:
            self.algorithms += ("sha1",)
        self.checksum_header = checksum_header
        self.records: List[ManifestEntry] = []
        self._directories: Set[str] = set()
        self.total_size = 0

    def __enter__(self) -> 'TarWriter':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        self._tar.close()

    def archive_name(self, destination: str) -> str:
        """把 ./ 规范化的目标路径转换为归档内名称"""
        return self.prefix + destination[2:]

    def add_data(self, name: str, data: bytes, mode: int = 0o644, mtime: Optional[int] = None) -> None:
        """写入生成的数据文件（控制文件、脚本等）"""
        info = make_tarinfo(name, tarfile.REGTYPE, mode, self._mtime(mtime), len(data))
        self._ensure_parents(name)
        self._tar.addfile(info, io.BytesIO(data))

    def add_entry(self, entry: ContentEntry) -> ManifestEntry:
        """写入一个内容条目

        文件内容只读取一次：读取时同时写入归档并更新摘要。

        Returns:
            ManifestEntry: 该条目的清单记录

        Raises:
            SourceFileError: 源文件不可读
        """
        name = self.archive_name(entry.destination)
        mtime = self._mtime(entry.mtime)
        mode = entry.permissions()
        self._ensure_parents(name)

        if entry.is_dir:
            if name not in self._directories:
                self._tar.addfile(make_tarinfo(name, tarfile.DIRTYPE, mode, mtime,
                                               owner=entry.owner, group=entry.group))
                self._directories.add(name)
            record = ManifestEntry(entry.destination, mtime, mode, ManifestType.DIR)
        elif entry.is_symlink:
            self._tar.addfile(make_tarinfo(name, tarfile.SYMTYPE, mode, mtime, linkname=entry.source,
                                           owner=entry.owner, group=entry.group))
            record = ManifestEntry(entry.destination, mtime, mode, ManifestType.LINK, link=entry.source)
        else:
            record = self._add_file(entry, name, mode, mtime)

        debug(f"归档 {name}", LogStage.ARCHIVE)
        self.records.append(record)
        return record

    def _add_file(self, entry: ContentEntry, name: str, mode: int, mtime: int) -> ManifestEntry:
        calculator = HashCalculator(self.algorithms)
        info = make_tarinfo(name, tarfile.REGTYPE, mode, mtime, owner=entry.owner, group=entry.group)

        with entry.open() as source:
            if self.checksum_header:
                # 校验头必须写在内容之前，先经由临时文件完成摘要
                with tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_SIZE) as spool:
                    shutil.copyfileobj(DigestingReader(source, calculator), spool, COPY_BUFSIZE)
                    spool.seek(0)
                    info.size = calculator.size
                    info.pax_headers = {self.checksum_header: calculator.hexdigest("sha1")}
                    self._tar.addfile(info, spool)
            else:
                info.size = _file_size(source)
                self._tar.addfile(info, DigestingReader(source, calculator))

        self.total_size += calculator.size
        return ManifestEntry(
            destination=entry.destination,
            time=mtime,
            mode=mode,
            type=ManifestType.FILE,
            size=calculator.size,
            md5=calculator.hexdigest("md5") if "md5" in self.algorithms else "",
            sha256=calculator.hexdigest("sha256") if "sha256" in self.algorithms else "",
            sha1=calculator.hexdigest("sha1") if "sha1" in self.algorithms else "",
        )

    def _ensure_parents(self, name: str) -> None:
        if not self.create_parents:
            return
        parts = name[len(self.prefix):].split("/")[:-1]
        current = self.prefix
        for part in parts:
            current = f"{current}{part}"
            if current not in self._directories:
                self._tar.addfile(make_tarinfo(current, tarfile.DIRTYPE, 0o755, self.default_mtime))
                self._directories.add(current)
            current += "/"

    def _mtime(self, mtime: Optional[int]) -> int:
        return self.default_mtime if mtime is None else mtime


def _file_size(source: BinaryIO) -> int:
    return os.fstat(source.fileno()).st_size


class ArWriter:
    """ar 归档写入器（deb 容器）"""

    MAGIC = b"!<arch>\n"

    def __init__(self, fileobj: BinaryIO, mtime: int = 0):
        self._fileobj = fileobj
        self.mtime = mtime
        self._fileobj.write(self.MAGIC)

    def add_member(self, name: str, data: Union[bytes, BinaryIO], size: Optional[int] = None,
                   mode: int = 0o100644) -> None:
        """写入一个成员

        Args:
            name: 成员名（最长 16 个字符）
            data: 成员内容，字节或可读流
            size: data 为流时必须给出长度
            mode: 成员权限
        """
        if len(name) > 16:
            raise ValueError(f"ar 成员名过长（最多 16 个字符）: {name}")
        if isinstance(data, bytes):
            size = len(data)
        elif size is None:
            raise ValueError("流式写入 ar 成员时必须提供 size")

        header = (
            name.ljust(16)
            + str(self.mtime).ljust(12)
            + "0".ljust(6)
            + "0".ljust(6)
            + format(mode, "o").ljust(8)
            + str(size).ljust(10)
            + "`\n"
        ).encode("ascii")
        if len(header) != 60:
            raise ValueError(f"ar 成员头长度错误: {len(header)}")

        self._fileobj.write(header)
        if isinstance(data, bytes):
            self._fileobj.write(data)
        else:
            shutil.copyfileobj(data, self._fileobj, COPY_BUFSIZE)
        if size % 2 == 1:
            self._fileobj.write(b"\n")


class CpioWriter:
    """newc（SVR4，无 CRC）cpio 写入器"""

    MAGIC = "070701"
    TRAILER = "TRAILER!!!"

    def __init__(self, fileobj: BinaryIO):
        self._fileobj = fileobj
        self._offset = 0

    def tell(self) -> int:
        """已写出的未压缩字节数"""
        return self._offset

    def _write(self, data: bytes) -> None:
        self._fileobj.write(data)
        self._offset += len(data)

    def _write_header(self, name: str, mode: int, size: int, mtime: int, ino: int, nlink: int) -> None:
        encoded = name.encode("utf-8") + b"\0"
        fields = [ino, mode, 0, 0, nlink, mtime, size, 0, 0, 0, 0, len(encoded), 0]
        header = self.MAGIC.encode("ascii") + b"".join(b"%08x" % value for value in fields)
        self._write(header + encoded)
        self._write(_padding(self._offset, 4))

    def add(self, name: str, mode: int, mtime: int, ino: int, data: Union[bytes, BinaryIO] = b"",
            size: Optional[int] = None) -> None:
        """写入一个条目

        Args:
            name: 条目名（如 ./usr/bin/foo）
            mode: 包含文件类型位的完整 mode
            mtime: 修改时间
            ino: inode 编号
            data: 内容；符号链接时为链接目标
            size: data 为流时必须给出长度
        """
        if isinstance(data, bytes):
            size = len(data)
        elif size is None:
            raise ValueError("流式写入 cpio 条目时必须提供 size")

        self._write_header(name, mode, size, mtime, ino, 2 if mode & 0o170000 == 0o040000 else 1)
        if isinstance(data, bytes):
            self._write(data)
        else:
            while True:
                chunk = data.read(COPY_BUFSIZE)
                if not chunk:
                    break
                self._write(chunk)
        self._write(_padding(self._offset, 4))

    def close(self) -> None:
        """写入 TRAILER!!! 结束条目"""
        self._write_header(self.TRAILER, 0, 0, 0, 0, 1)

