"""
Arch Linux 打包器（.pkg.tar.zst）

zstd 压缩的 tar，条目顺序：.PKGINFO、.MTREE、.INSTALL（有脚本时）、内容条目。
内容只读取一次：先写入临时内层 tar 并计算摘要，元数据生成后再整体拼接到外层。
"""

import re
import shutil
import tarfile
import tempfile
from typing import BinaryIO, List, Optional

from ..build.archive import SPOOL_MAX_SIZE, TarWriter, make_tarinfo, tar_entry_bytes
from ..build.collector import ContentEntry, ContentResolver
from ..build.compressor import ZstdCompressor
from ..build.info import build_time
from ..build.mtree import ManifestEntry, build_mtree
from ..build.scripts import collect_scripts, render_arch_install
from ..build.version import arch_pkgrel, arch_prerelease, render_arch_version
from ..config.schema import Info
from ..utils.logging import LogStage, debug, info as log_info
from .base import Packager

GENERATOR_COMMENT = "# Generated by pkgsmith\n"
DEFAULT_PACKAGER = "Unknown Packager"

ARCH_TABLE = {
    "all": "any",
    "amd64": "x86_64",
    "386": "i686",
    "arm64": "aarch64",
    "arm7": "armv7h",
    "arm6": "armv6h",
    "arm5": "arm",
}


class ArchLinuxPackager(Packager):
    """Arch Linux 打包器"""

    name = "archlinux"
    aliases = ("arch",)
    extension = ".pkg.tar.zst"
    arch_table = ARCH_TABLE
    # 不能以 - 或 . 开头
    name_pattern = re.compile(r"^[a-zA-Z0-9@_+][a-zA-Z0-9@._+-]*$")

    def arch_override(self, info: Info) -> Optional[str]:
        return info.archlinux.arch

    def conventional_file_name(self, info: Info) -> str:
        pkgver = f"{info.version}{arch_prerelease(info.prerelease)}"
        return f"{info.name}-{pkgver}-{arch_pkgrel(info.release)}-{self.resolve_arch(info)}{self.extension}"

    def package(self, info: Info, output: BinaryIO) -> None:
        self.validate(info)

        mtime = build_time(info)
        entries = ContentResolver().resolve(info)
        scripts = collect_scripts(info, "archlinux")
        log_info(f"构建 Arch Linux 软件包: {info.name} ({len(entries)} 个条目)", LogStage.ARCHIVE)

        with tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_SIZE) as content:
            with TarWriter(content, tarfile.PAX_FORMAT, default_mtime=mtime) as writer:
                for entry in entries:
                    writer.add_entry(entry)

            pkginfo = self.render_pkginfo(info, writer.total_size, mtime, entries).encode("utf-8")
            manifest = [ManifestEntry.for_data("./.PKGINFO", pkginfo, 0o644, mtime)] + writer.records
            mtree = build_mtree(manifest)
            debug(f".MTREE 共 {len(manifest)} 行", LogStage.HASH)

            stream = ZstdCompressor().open_writer(output)
            try:
                stream.write(tar_entry_bytes(make_tarinfo(".PKGINFO", mtime=mtime), pkginfo))
                stream.write(tar_entry_bytes(make_tarinfo(".MTREE", mtime=mtime), mtree))
                if scripts:
                    install = render_arch_install(scripts).encode("utf-8")
                    stream.write(tar_entry_bytes(make_tarinfo(".INSTALL", mtime=mtime), install))
                    debug(f".INSTALL 包含 {len(scripts)} 个钩子", LogStage.SCRIPT)
                content.seek(0)
                shutil.copyfileobj(content, stream)
            finally:
                stream.close()

    def render_pkginfo(self, info: Info, installed_size: int, builddate: int,
                       entries: List[ContentEntry]) -> str:
        """渲染 .PKGINFO 文本"""
        fields = [
            ("pkgname", info.name),
            ("pkgbase", info.archlinux.pkgbase or info.name),
            ("pkgver", render_arch_version(info.version, info.epoch, info.release, info.prerelease)),
            ("pkgdesc", " ".join(info.description.split())),
            ("url", info.homepage),
            ("builddate", str(builddate)),
            ("packager", info.archlinux.packager or DEFAULT_PACKAGER),
            ("size", str(installed_size)),
            ("arch", self.resolve_arch(info)),
            ("license", info.license),
        ]
        fields += [("replaces", value) for value in info.replaces]
        fields += [("conflict", value) for value in info.conflicts]
        fields += [("provides", value) for value in info.provides]
        fields += [("depend", value) for value in info.depends]
        fields += [("backup", entry.relative) for entry in entries if entry.is_config]

        lines = [GENERATOR_COMMENT]
        lines += [f"{key} = {value}\n" for key, value in fields if value]
        return "".join(lines)
