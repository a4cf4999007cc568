"""
RPM 打包器（.rpm）

布局：lead、签名头、主头、压缩的 newc cpio 载荷。
载荷先写入临时文件（同时计算文件摘要与载荷摘要），主头与签名随后生成。
"""

import hashlib
import os
import re
import shutil
import socket
import tempfile
from dataclasses import dataclass
from typing import BinaryIO, Dict, List, Optional, Tuple

from ..build.archive import COPY_BUFSIZE, SPOOL_MAX_SIZE, CpioWriter
from ..build.collector import ContentEntry, ContentResolver
from ..build.compressor import CompressionAlgorithm, Compressor, CompressorFactory
from ..build.digest import DigestingReader, DigestingWriter, HashCalculator
from ..build.errors import PackageValidationError, UnsupportedCompressionError
from ..build.info import build_time
from ..build.scripts import POSTINSTALL, POSTREMOVE, PREINSTALL, PREREMOVE, collect_scripts
from ..build.version import is_int, render_rpm_evr, render_rpm_version, split_version_release
from ..config.schema import Info
from ..utils.logging import LogStage, debug, info as log_info
from . import rpm_header as rh
from .base import Packager

RPM_VERSION = "4.16.0"
DEFAULT_RELEASE = "1"
DIR_SIZE = 4096

S_IFDIR = 0o040000
S_IFREG = 0o100000
S_IFLNK = 0o120000

ARCH_TABLE = {
    "all": "noarch",
    "amd64": "x86_64",
    "386": "i386",
    "arm64": "aarch64",
    "arm7": "armv7hl",
    "arm6": "armv6hl",
    "arm5": "armv5tel",
    "mipsle": "mipsel",
    "ppc64le": "ppc64le",
    "s390x": "s390x",
}

# 载荷压缩算法 -> PAYLOADCOMPRESSOR 取值
PAYLOAD_COMPRESSORS = {
    CompressionAlgorithm.GZIP: "gzip",
    CompressionAlgorithm.XZ: "xz",
    CompressionAlgorithm.LZMA: "lzma",
    CompressionAlgorithm.ZSTD: "zstd",
    CompressionAlgorithm.NONE: "ufdio",
}

# 通用钩子 -> (脚本标签, 解释器标签)
SCRIPT_TAGS = (
    (PREINSTALL, rh.RPMTAG_PREIN, rh.RPMTAG_PREINPROG),
    (POSTINSTALL, rh.RPMTAG_POSTIN, rh.RPMTAG_POSTINPROG),
    (PREREMOVE, rh.RPMTAG_PREUN, rh.RPMTAG_PREUNPROG),
    (POSTREMOVE, rh.RPMTAG_POSTUN, rh.RPMTAG_POSTUNPROG),
)

RPMLIB_FEATURES = (
    ("rpmlib(CompressedFileNames)", "3.0.4-1"),
    ("rpmlib(PayloadFilesHavePrefix)", "4.0-1"),
    ("rpmlib(FileDigests)", "4.6.0-1"),
)
RPMLIB_PAYLOAD_FEATURES = {
    CompressionAlgorithm.XZ: ("rpmlib(PayloadIsXz)", "5.2-1"),
    CompressionAlgorithm.LZMA: ("rpmlib(PayloadIsLzma)", "4.4.6-1"),
    CompressionAlgorithm.ZSTD: ("rpmlib(PayloadIsZstd)", "5.4.18-1"),
}

SENSE_FLAGS = {
    "<": rh.RPMSENSE_LESS,
    "<=": rh.RPMSENSE_LESS | rh.RPMSENSE_EQUAL,
    "=": rh.RPMSENSE_EQUAL,
    ">=": rh.RPMSENSE_GREATER | rh.RPMSENSE_EQUAL,
    ">": rh.RPMSENSE_GREATER,
}

_DEPENDENCY_PATTERN = re.compile(
    r"^(?P<name>[^\s<>=()]+)\s*(?:\(?\s*(?P<op><=|>=|=|<|>)\s*(?P<version>[^\s()]+)\s*\)?)?$"
)


@dataclass(frozen=True)
class Dependency:
    """单个依赖关系"""
    name: str
    flags: int = rh.RPMSENSE_ANY
    version: str = ""


def parse_dependency(value: str) -> Dependency:
    """解析 "name"、"name OP ver" 或 "name (OP ver)" 形式的依赖

    无法识别的写法（如富依赖）整体作为名称。
    """
    text = value.strip()
    match = _DEPENDENCY_PATTERN.match(text)
    if not match:
        return Dependency(text)
    op = match.group("op")
    if not op:
        return Dependency(match.group("name"))
    return Dependency(match.group("name"), SENSE_FLAGS[op], match.group("version"))


@dataclass
class _PayloadFile:
    """已写入载荷的文件记录（用于生成文件标签）"""
    entry: ContentEntry
    mode: int
    size: int
    mtime: int
    digest: str
    link: str
    flags: int


class RPMPackager(Packager):
    """RPM 打包器"""

    name = "rpm"
    extension = ".rpm"
    arch_table = ARCH_TABLE
    name_pattern = re.compile(r"^[a-zA-Z0-9_+][a-zA-Z0-9._+-]*$")

    def arch_override(self, info: Info) -> Optional[str]:
        return info.rpm.arch

    def validate(self, info: Info) -> None:
        super().validate(info)
        if info.epoch and not is_int(info.epoch):
            raise PackageValidationError(f"rpm epoch 必须是整数: {info.epoch!r}")

    def version_release(self, info: Info) -> Tuple[str, str]:
        """Version / Release 标签值：合并写法按第一个连字符拆分，release 默认 1"""
        version, release = split_version_release(info.version, info.release)
        return render_rpm_version(version, info.prerelease), release or DEFAULT_RELEASE

    def conventional_file_name(self, info: Info) -> str:
        version, release = self.version_release(info)
        return f"{info.name}-{version}-{release}.{self.resolve_arch(info)}{self.extension}"

    def package(self, info: Info, output: BinaryIO) -> None:
        self.validate(info)

        algorithm_spec = info.rpm.compression
        compressor = CompressorFactory.from_spec(algorithm_spec, CompressionAlgorithm.GZIP)
        if compressor.get_algorithm() not in PAYLOAD_COMPRESSORS:
            raise UnsupportedCompressionError(algorithm_spec or "")

        mtime = build_time(info)
        entries = ContentResolver().resolve(info)
        scripts = collect_scripts(info)
        log_info(f"构建 rpm 软件包: {info.name} ({len(entries)} 个条目, "
                 f"载荷压缩 {compressor.get_algorithm().value})", LogStage.ARCHIVE)

        with tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_SIZE) as payload:
            payload_digest = HashCalculator(("sha256",))
            stream = compressor.open_writer(DigestingWriter(payload, payload_digest))
            try:
                cpio = CpioWriter(stream)
                files = [self._write_payload_entry(cpio, entry, index + 1, mtime)
                         for index, entry in enumerate(entries)]
                cpio.close()
            finally:
                stream.close()
            payload_size = payload_digest.size
            debug(f"载荷 {cpio.tell()} 字节，压缩后 {payload_size} 字节", LogStage.COMPRESS)

            header = self.build_header(info, files, scripts, mtime, compressor, payload_digest.sha256)
            header_bytes = header.to_bytes()

            md5 = hashlib.md5(header_bytes)
            payload.seek(0)
            for chunk in iter(lambda: payload.read(COPY_BUFSIZE), b""):
                md5.update(chunk)

            signature = rh.build_signature(
                header_bytes,
                payload_size,
                md5.digest(),
                hashlib.sha1(header_bytes).hexdigest(),
                hashlib.sha256(header_bytes).hexdigest(),
                cpio.tell(),
            )

            version, release = self.version_release(info)
            output.write(rh.build_lead(f"{info.name}-{version}-{release}"))
            output.write(signature)
            output.write(header_bytes)
            payload.seek(0)
            shutil.copyfileobj(payload, output, COPY_BUFSIZE)
            debug(f"主头 {len(header)} 个标签", LogStage.HEADER)

    def _write_payload_entry(self, cpio: CpioWriter, entry: ContentEntry, ino: int,
                             default_mtime: int) -> _PayloadFile:
        name = "./" + entry.relative
        mtime = default_mtime if entry.mtime is None else entry.mtime
        permissions = entry.permissions() & 0o7777
        flags = rh.RPMFILE_NONE
        if entry.is_config:
            flags |= rh.RPMFILE_CONFIG
        if entry.is_noreplace:
            flags |= rh.RPMFILE_NOREPLACE

        if entry.is_dir:
            mode = S_IFDIR | permissions
            cpio.add(name, mode, mtime, ino)
            return _PayloadFile(entry, mode, DIR_SIZE, mtime, "", "", flags)

        if entry.is_symlink:
            mode = S_IFLNK | permissions
            target = entry.source.encode("utf-8")
            cpio.add(name, mode, mtime, ino, target)
            return _PayloadFile(entry, mode, len(target), mtime, "", entry.source, flags)

        mode = S_IFREG | permissions
        calculator = HashCalculator(("sha256",))
        with entry.open() as source:
            size = os.fstat(source.fileno()).st_size
            cpio.add(name, mode, mtime, ino, DigestingReader(source, calculator), size)
        debug(f"归档 {name}", LogStage.ARCHIVE)
        return _PayloadFile(entry, mode, calculator.size, mtime, calculator.sha256, "", flags)

    def build_header(
        self,
        info: Info,
        files: List[_PayloadFile],
        scripts: Dict[str, str],
        mtime: int,
        compressor: Compressor,
        payload_sha256: str,
    ) -> rh.RpmHeader:
        """生成主头"""
        version, release = self.version_release(info)
        header = rh.RpmHeader(rh.HEADER_IMMUTABLE)

        header.add_string_array(rh.HEADER_I18NTABLE, ["C"])
        header.add_string(rh.RPMTAG_NAME, info.name)
        header.add_string(rh.RPMTAG_VERSION, version)
        header.add_string(rh.RPMTAG_RELEASE, release)
        if info.epoch:
            header.add_int32(rh.RPMTAG_EPOCH, int(info.epoch))

        description = info.description.strip()
        summary = info.rpm.summary or (description.splitlines() or [""])[0]
        header.add_i18n_string(rh.RPMTAG_SUMMARY, summary)
        header.add_i18n_string(rh.RPMTAG_DESCRIPTION, description)
        header.add_int32(rh.RPMTAG_BUILDTIME, mtime)
        header.add_string(rh.RPMTAG_BUILDHOST, socket.gethostname())
        header.add_int32(rh.RPMTAG_SIZE, sum(f.size for f in files if f.entry.has_content))
        for tag, value in (
            (rh.RPMTAG_VENDOR, info.vendor),
            (rh.RPMTAG_LICENSE, info.license),
            (rh.RPMTAG_PACKAGER, info.maintainer),
            (rh.RPMTAG_URL, info.homepage),
        ):
            if value:
                header.add_string(tag, value)
        if info.rpm.group:
            header.add_i18n_string(rh.RPMTAG_GROUP, info.rpm.group)
        header.add_string(rh.RPMTAG_OS, info.platform or "linux")
        header.add_string(rh.RPMTAG_ARCH, self.resolve_arch(info))
        header.add_string(rh.RPMTAG_SOURCERPM, f"{info.name}-{version}-{release}.src.rpm")
        header.add_string(rh.RPMTAG_RPMVERSION, RPM_VERSION)

        for hook, script_tag, prog_tag in SCRIPT_TAGS:
            if hook in scripts:
                header.add_string(script_tag, scripts[hook])
                header.add_string(prog_tag, "/bin/sh")

        if files:
            self._add_file_tags(header, files)

        evr = render_rpm_evr(version, info.epoch, release)
        provides = [Dependency(info.name, rh.RPMSENSE_EQUAL, evr)]
        provides += [parse_dependency(value) for value in info.provides]
        self._add_dependencies(header, provides, rh.RPMTAG_PROVIDENAME, rh.RPMTAG_PROVIDEFLAGS,
                               rh.RPMTAG_PROVIDEVERSION)

        algorithm = compressor.get_algorithm()
        requires = [parse_dependency(value) for value in info.depends]
        features = list(RPMLIB_FEATURES)
        if algorithm in RPMLIB_PAYLOAD_FEATURES:
            features.append(RPMLIB_PAYLOAD_FEATURES[algorithm])
        requires += [Dependency(name, rh.RPMSENSE_RPMLIB | rh.RPMSENSE_LESS | rh.RPMSENSE_EQUAL, ver)
                     for name, ver in features]
        self._add_dependencies(header, requires, rh.RPMTAG_REQUIRENAME, rh.RPMTAG_REQUIREFLAGS,
                               rh.RPMTAG_REQUIREVERSION)

        for values, tags in (
            (info.conflicts, (rh.RPMTAG_CONFLICTNAME, rh.RPMTAG_CONFLICTFLAGS, rh.RPMTAG_CONFLICTVERSION)),
            (info.replaces, (rh.RPMTAG_OBSOLETENAME, rh.RPMTAG_OBSOLETEFLAGS, rh.RPMTAG_OBSOLETEVERSION)),
            (info.recommends, (rh.RPMTAG_RECOMMENDNAME, rh.RPMTAG_RECOMMENDFLAGS, rh.RPMTAG_RECOMMENDVERSION)),
            (info.suggests, (rh.RPMTAG_SUGGESTNAME, rh.RPMTAG_SUGGESTFLAGS, rh.RPMTAG_SUGGESTVERSION)),
        ):
            if values:
                self._add_dependencies(header, [parse_dependency(v) for v in values], *tags)

        header.add_string(rh.RPMTAG_PAYLOADFORMAT, "cpio")
        header.add_string(rh.RPMTAG_PAYLOADCOMPRESSOR, PAYLOAD_COMPRESSORS[algorithm])
        header.add_string(rh.RPMTAG_PAYLOADFLAGS, str(compressor.level))
        header.add_string_array(rh.RPMTAG_PAYLOADDIGEST, [payload_sha256])
        header.add_int32(rh.RPMTAG_PAYLOADDIGESTALGO, rh.PGPHASHALGO_SHA256)
        return header

    @staticmethod
    def _add_file_tags(header: rh.RpmHeader, files: List[_PayloadFile]) -> None:
        dirnames: List[str] = []
        dirindexes: List[int] = []
        basenames: List[str] = []
        for f in files:
            dirname, basename = os.path.split(f.entry.absolute)
            dirname = dirname.rstrip("/") + "/"
            if dirname not in dirnames:
                dirnames.append(dirname)
            dirindexes.append(dirnames.index(dirname))
            basenames.append(basename)

        count = len(files)
        header.add_int32(rh.RPMTAG_FILESIZES, [f.size for f in files])
        header.add_int16(rh.RPMTAG_FILEMODES, [f.mode for f in files])
        header.add_int16(rh.RPMTAG_FILERDEVS, [0] * count)
        header.add_int32(rh.RPMTAG_FILEMTIMES, [f.mtime for f in files])
        header.add_string_array(rh.RPMTAG_FILEDIGESTS, [f.digest for f in files])
        header.add_string_array(rh.RPMTAG_FILELINKTOS, [f.link for f in files])
        header.add_int32(rh.RPMTAG_FILEFLAGS, [f.flags for f in files])
        header.add_string_array(rh.RPMTAG_FILEUSERNAME, [f.entry.owner for f in files])
        header.add_string_array(rh.RPMTAG_FILEGROUPNAME, [f.entry.group for f in files])
        header.add_int32(rh.RPMTAG_FILEVERIFYFLAGS, [-1] * count)
        header.add_int32(rh.RPMTAG_FILEDEVICES, [1] * count)
        header.add_int32(rh.RPMTAG_FILEINODES, list(range(1, count + 1)))
        header.add_string_array(rh.RPMTAG_FILELANGS, [""] * count)
        header.add_int32(rh.RPMTAG_DIRINDEXES, dirindexes)
        header.add_string_array(rh.RPMTAG_BASENAMES, basenames)
        header.add_string_array(rh.RPMTAG_DIRNAMES, dirnames)
        header.add_int32(rh.RPMTAG_FILEDIGESTALGO, rh.PGPHASHALGO_SHA256)

    @staticmethod
    def _add_dependencies(header: rh.RpmHeader, dependencies: List[Dependency],
                          name_tag: int, flags_tag: int, version_tag: int) -> None:
        header.add_string_array(name_tag, [d.name for d in dependencies])
        header.add_int32(flags_tag, [d.flags for d in dependencies])
        header.add_string_array(version_tag, [d.version for d in dependencies])
