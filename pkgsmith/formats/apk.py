"""
Alpine 打包器（.apk）

两个 gzip 流直接拼接：控制段（不带结束块的 tar）在前，数据段（完整 tar）在后。
.PKGINFO 中的 datahash 为压缩后数据段的 SHA-256，因此数据段先写入临时文件。
"""

import re
import shutil
import tarfile
import tempfile
from typing import BinaryIO, Dict, Optional

from ..build.archive import APK_CHECKSUM_HEADER, SPOOL_MAX_SIZE, TarWriter, make_tarinfo, tar_entry_bytes
from ..build.collector import ContentResolver
from ..build.compressor import GzipCompressor
from ..build.digest import DigestingWriter, HashCalculator
from ..build.info import build_time
from ..build.scripts import (
    POSTINSTALL,
    POSTREMOVE,
    POSTUPGRADE,
    PREINSTALL,
    PREREMOVE,
    PREUPGRADE,
    collect_scripts,
)
from ..build.version import render_apk_version
from ..config.schema import Info
from ..utils.logging import LogStage, debug, info as log_info
from .base import Packager

GENERATOR_COMMENT = "# Generated by pkgsmith\n"

ARCH_TABLE = {
    "all": "noarch",
    "amd64": "x86_64",
    "386": "x86",
    "arm64": "aarch64",
    "arm6": "armhf",
    "arm7": "armv7",
    "ppc64le": "ppc64le",
    "s390x": "s390x",
}

# 通用钩子 -> 控制段文件名
APK_SCRIPTS = (
    (PREINSTALL, ".pre-install"),
    (POSTINSTALL, ".post-install"),
    (PREREMOVE, ".pre-deinstall"),
    (POSTREMOVE, ".post-deinstall"),
    (PREUPGRADE, ".pre-upgrade"),
    (POSTUPGRADE, ".post-upgrade"),
)


class APKPackager(Packager):
    """Alpine APK 打包器"""

    name = "apk"
    extension = ".apk"
    arch_table = ARCH_TABLE
    name_pattern = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9._+-]*$")

    def arch_override(self, info: Info) -> Optional[str]:
        return info.apk.arch

    def conventional_file_name(self, info: Info) -> str:
        version = render_apk_version(info.version, "", info.release, info.prerelease)
        return f"{info.name}_{version}_{self.resolve_arch(info)}{self.extension}"

    def package(self, info: Info, output: BinaryIO) -> None:
        self.validate(info)

        mtime = build_time(info)
        entries = ContentResolver().resolve(info)
        scripts = collect_scripts(info, "apk")
        log_info(f"构建 apk 软件包: {info.name} ({len(entries)} 个条目)", LogStage.ARCHIVE)

        with tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_SIZE) as data:
            datahash = HashCalculator(("sha256",))
            gz = GzipCompressor().open_writer(DigestingWriter(data, datahash))
            try:
                with TarWriter(gz, tarfile.PAX_FORMAT, create_parents=True, default_mtime=mtime,
                               checksum_header=APK_CHECKSUM_HEADER) as writer:
                    for entry in entries:
                        writer.add_entry(entry)
            finally:
                gz.close()
            debug(f"数据段 datahash={datahash.sha256}", LogStage.HASH)

            pkginfo = self.render_pkginfo(info, writer.total_size, mtime, datahash.sha256)
            output.write(self.build_control(pkginfo.encode("utf-8"), scripts, mtime))
            data.seek(0)
            shutil.copyfileobj(data, output)

    @staticmethod
    def build_control(pkginfo: bytes, scripts: Dict[str, str], mtime: int) -> bytes:
        """生成 gzip 压缩的控制段（tar 不带结束块）"""
        members = [tar_entry_bytes(make_tarinfo(".PKGINFO", mtime=mtime), pkginfo, tarfile.USTAR_FORMAT)]
        for hook, filename in APK_SCRIPTS:
            if hook in scripts:
                members.append(tar_entry_bytes(
                    make_tarinfo(filename, mode=0o755, mtime=mtime),
                    scripts[hook].encode("utf-8"),
                    tarfile.USTAR_FORMAT,
                ))
        return GzipCompressor().compress(b"".join(members))

    def render_pkginfo(self, info: Info, installed_size: int, builddate: int, datahash: str) -> str:
        """渲染 .PKGINFO 文本"""
        fields = [
            ("pkgname", info.name),
            ("pkgver", render_apk_version(info.version, info.epoch, info.release, info.prerelease)),
            ("arch", self.resolve_arch(info)),
            ("size", str(installed_size)),
            ("pkgdesc", " ".join(info.description.split())),
            ("url", info.homepage),
            ("builddate", str(builddate)),
            ("packager", info.maintainer),
            ("license", info.license),
        ]
        fields += [("replaces", value) for value in info.replaces]
        fields += [("provides", value) for value in info.provides]
        fields += [("depend", value) for value in info.depends]
        fields.append(("datahash", datahash))

        lines = [GENERATOR_COMMENT]
        lines += [f"{key} = {value}\n" for key, value in fields if value]
        return "".join(lines)
