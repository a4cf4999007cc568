"""
内容解析器

把 files / config_files / symlinks / empty_folders / contents 展开为有序的内容条目列表。
源路径支持 glob；展开结果按目标路径排序，保证重复构建的输出一致。
"""

import glob
import os
import stat
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

from ..config.schema import ContentFileInfo, ContentModel, ContentType, Info
from ..utils.logging import LogStage, debug
from ..utils.paths import expand_path
from .errors import ContentCollisionError, GlobNoMatchError, InvalidContentError, SourceFileError

DEFAULT_DIR_MODE = 0o755
DEFAULT_SYMLINK_MODE = 0o777
_GLOB_CHARS = set('*?[')


def normalize_destination(path: str) -> str:
    """把包内路径规范化为 ./ 前缀、无结尾斜杠的形式"""
    clean = path.replace('\\', '/').strip()
    parts = [p for p in clean.split('/') if p not in ('', '.')]
    if '..' in parts:
        raise InvalidContentError(f"目标路径不能包含 ..: {path}")
    if not parts:
        raise InvalidContentError(f"无效的目标路径: {path!r}")
    return './' + '/'.join(parts)


@dataclass
class ContentEntry:
    """单个打包路径"""
    source: str  # 文件为绝对源路径，符号链接为链接目标，目录为空
    destination: str  # ./ 前缀
    type: ContentType
    mode: Optional[int] = None
    owner: str = "root"
    group: str = "root"
    mtime: Optional[int] = None
    size: int = 0

    @property
    def relative(self) -> str:
        """不带前缀的包内路径（Arch / APK 归档内使用）"""
        return self.destination[2:]

    @property
    def absolute(self) -> str:
        """安装后的绝对路径"""
        return '/' + self.relative

    @property
    def is_dir(self) -> bool:
        return self.type == ContentType.DIR

    @property
    def is_symlink(self) -> bool:
        return self.type == ContentType.SYMLINK

    @property
    def is_config(self) -> bool:
        return self.type in (ContentType.CONFIG, ContentType.CONFIG_NOREPLACE)

    @property
    def is_noreplace(self) -> bool:
        return self.type == ContentType.CONFIG_NOREPLACE

    @property
    def has_content(self) -> bool:
        """是否携带文件内容（普通文件与配置文件）"""
        return not (self.is_dir or self.is_symlink)

    def permissions(self) -> int:
        """条目权限位，未显式声明时按类型取默认值"""
        if self.mode is not None:
            return self.mode
        if self.is_dir:
            return DEFAULT_DIR_MODE
        if self.is_symlink:
            return DEFAULT_SYMLINK_MODE
        return 0o644

    def open(self):
        """以二进制方式打开源文件

        Raises:
            SourceFileError: 源文件缺失或不可读
        """
        try:
            return open(self.source, 'rb')
        except OSError as e:
            raise SourceFileError(self.source, e.strerror or str(e)) from e


def _has_glob(pattern: str) -> bool:
    return any(ch in _GLOB_CHARS for ch in pattern)


def _walk_files(directory: Path) -> Iterator[Path]:
    """递归遍历目录下的文件（目录本身不产出）"""
    for root, dirs, files in os.walk(directory):
        dirs.sort()
        for name in sorted(files):
            yield Path(root) / name


def expand_glob(pattern: str, destination: str) -> List[Tuple[str, str]]:
    """展开源路径

    - 字面文件：精确映射到 destination
    - 字面目录：递归收集，保持相对子树结构
    - glob：匹配结果相对于最长公共前缀所在目录放到 destination 之下

    Args:
        pattern: 源路径或 glob 模式
        destination: 目标根路径

    Returns:
        List[Tuple[str, str]]: (源绝对路径, 目标路径) 列表，按源路径排序

    Raises:
        GlobNoMatchError: 没有匹配到任何文件
    """
    dst_root = destination.rstrip('/') or '/'
    literal = Path(pattern)

    if not _has_glob(pattern):
        if literal.is_file():
            return [(str(literal.resolve()), destination)]
        if literal.is_dir():
            return [
                (str(f.resolve()), f"{dst_root}/{f.relative_to(literal).as_posix()}")
                for f in _walk_files(literal)
            ]
        raise GlobNoMatchError(pattern)

    matches = sorted(glob.glob(pattern, recursive=True))
    if not matches:
        raise GlobNoMatchError(pattern)

    prefix = os.path.dirname(os.path.commonprefix(matches))
    results: List[Tuple[str, str]] = []
    for match in matches:
        match_path = Path(match)
        if match_path.is_dir():
            continue
        rel = os.path.relpath(match, prefix) if prefix else match
        results.append((str(match_path.resolve()), f"{dst_root}/{Path(rel).as_posix()}"))

    if not results:
        raise GlobNoMatchError(pattern)
    return results


class ContentResolver:
    """内容解析器

    负责扫描源路径并生成内容条目，检测目标路径冲突。
    """

    def __init__(self, base_dir: Optional[Path] = None):
        """初始化内容解析器

        Args:
            base_dir: 相对源路径的解析基准目录，默认当前目录
        """
        self.base_dir = Path(base_dir) if base_dir else None
        self.entries: List[ContentEntry] = []
        self.total_size: int = 0

    def resolve(self, info: Info) -> List[ContentEntry]:
        """解析 Info 中声明的全部内容

        Returns:
            List[ContentEntry]: 按目标路径排序的内容条目

        Raises:
            GlobNoMatchError: 源模式没有匹配
            SourceFileError: 源文件不可读
            ContentCollisionError: 目标路径重复
        """
        self.entries = []
        self.total_size = 0
        seen: Dict[str, ContentEntry] = {}

        def add(entry: ContentEntry) -> None:
            if entry.destination in seen:
                raise ContentCollisionError(entry.destination)
            seen[entry.destination] = entry
            self.entries.append(entry)
            self.total_size += entry.size

        for src, dst in info.files.items():
            for entry in self._expand_files(src, dst, ContentType.FILE, ContentFileInfo()):
                add(entry)
        for src, dst in info.config_files.items():
            for entry in self._expand_files(src, dst, ContentType.CONFIG, ContentFileInfo()):
                add(entry)
        for src, dst in info.rpm.config_noreplace_files.items():
            for entry in self._expand_files(src, dst, ContentType.CONFIG_NOREPLACE, ContentFileInfo()):
                add(entry)
        for target, link in info.symlinks.items():
            add(self._symlink(target, link, ContentFileInfo()))
        for folder in info.empty_folders:
            add(self._directory(folder, ContentFileInfo()))
        for content in info.contents:
            for entry in self._expand_content(content):
                add(entry)

        self.entries.sort(key=lambda e: e.destination)
        debug(f"解析得到 {len(self.entries)} 个内容条目", LogStage.RESOLVE)
        return self.entries

    def get_statistics(self) -> Dict[str, int]:
        """获取解析统计信息"""
        return {
            'total_files': sum(1 for e in self.entries if e.has_content),
            'total_directories': sum(1 for e in self.entries if e.is_dir),
            'total_symlinks': sum(1 for e in self.entries if e.is_symlink),
            'total_size': self.total_size,
        }

    def _source_path(self, src: str) -> str:
        return str(expand_path(src, self.base_dir))

    def _expand_content(self, content: ContentModel) -> List[ContentEntry]:
        if content.type == ContentType.DIR:
            return [self._directory(content.dst, content.file_info)]
        if not content.src:
            raise InvalidContentError(f"内容条目 {content.dst} 缺少 src")
        if content.type == ContentType.SYMLINK:
            return [self._symlink(content.src, content.dst, content.file_info)]
        return self._expand_files(content.src, content.dst, content.type, content.file_info)

    def _expand_files(
        self,
        src: str,
        dst: str,
        content_type: ContentType,
        file_info: ContentFileInfo,
    ) -> List[ContentEntry]:
        entries = []
        for source, destination in expand_glob(self._source_path(src), dst):
            try:
                st = os.stat(source)
            except OSError as e:
                raise SourceFileError(source, e.strerror or str(e)) from e
            entries.append(ContentEntry(
                source=source,
                destination=normalize_destination(destination),
                type=content_type,
                mode=file_info.mode if file_info.mode is not None else stat.S_IMODE(st.st_mode),
                owner=file_info.owner,
                group=file_info.group,
                mtime=file_info.mtime if file_info.mtime is not None else int(st.st_mtime),
                size=st.st_size,
            ))
        return entries

    def _symlink(self, target: str, link: str, file_info: ContentFileInfo) -> ContentEntry:
        return ContentEntry(
            source=target,
            destination=normalize_destination(link),
            type=ContentType.SYMLINK,
            mode=file_info.mode,
            owner=file_info.owner,
            group=file_info.group,
            mtime=file_info.mtime,
        )

    def _directory(self, path: str, file_info: ContentFileInfo) -> ContentEntry:
        return ContentEntry(
            source="",
            destination=normalize_destination(path),
            type=ContentType.DIR,
            mode=file_info.mode,
            owner=file_info.owner,
            group=file_info.group,
            mtime=file_info.mtime,
        )


def resolve_contents(info: Info, base_dir: Optional[Path] = None) -> List[ContentEntry]:
    """便捷函数：解析内容条目"""
    return ContentResolver(base_dir).resolve(info)
