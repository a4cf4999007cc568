"""
完整性清单（BSD mtree）

每个已归档条目对应一行；文本以 "#mtree" 开头，随后整体 gzip 压缩为 .MTREE。
"""

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional

from .compressor import GzipCompressor
from .digest import HashCalculator

MTREE_HEADER = "#mtree\n"


class ManifestType(str, Enum):
    """清单条目类型"""
    DIR = "dir"
    FILE = "file"
    LINK = "link"


@dataclass
class ManifestEntry:
    """单个已归档条目的清单记录"""
    destination: str  # ./ 前缀
    time: int
    mode: int
    type: ManifestType
    size: int = 0
    md5: str = ""
    sha256: str = ""
    sha1: str = ""
    link: str = ""

    @classmethod
    def for_data(cls, destination: str, data: bytes, mode: int, time: int) -> 'ManifestEntry':
        """为生成的元数据文件（如 .PKGINFO）创建记录"""
        digests = HashCalculator.hash_data(data, ("md5", "sha256", "sha1"))
        return cls(
            destination=destination,
            time=time,
            mode=mode,
            type=ManifestType.FILE,
            size=len(data),
            md5=digests.md5,
            sha256=digests.sha256,
            sha1=digests.hexdigest("sha1"),
        )

    def render(self) -> str:
        """渲染为一行 mtree 文本（不含换行）"""
        fields = [self.destination, f"time={self.time}.0", f"mode={self.mode:o}"]
        if self.type == ManifestType.FILE:
            fields.append(f"size={self.size}")
        fields.append(f"type={self.type.value}")
        if self.type == ManifestType.FILE:
            fields.append(f"md5digest={self.md5}")
            fields.append(f"sha256digest={self.sha256}")
        if self.type == ManifestType.LINK:
            fields.append(f"link={self.link}")
        return " ".join(fields)


def render_mtree(entries: Iterable[ManifestEntry]) -> str:
    """渲染完整 mtree 文本"""
    lines: List[str] = [MTREE_HEADER]
    for entry in entries:
        lines.append(entry.render() + "\n")
    return "".join(lines)


def build_mtree(entries: Iterable[ManifestEntry], level: Optional[int] = None) -> bytes:
    """渲染并 gzip 压缩 mtree 清单（.MTREE 文件内容）"""
    return GzipCompressor(level).compress(render_mtree(entries).encode("utf-8"))
