"""
Debian 打包器（.deb）

ar 容器：debian-binary、control.tar.gz、data.tar.gz。
data.tar 使用 ./ 前缀路径并自动创建中间目录；control.tar 在数据写完后根据摘要生成。
"""

import math
import re
import tarfile
import tempfile
from typing import BinaryIO, Dict, List, Optional

from ..build.archive import SPOOL_MAX_SIZE, ArWriter, TarWriter
from ..build.collector import ContentEntry, ContentResolver
from ..build.compressor import GzipCompressor
from ..build.info import build_time
from ..build.mtree import ManifestEntry
from ..build.scripts import (
    POSTINSTALL,
    POSTREMOVE,
    PREINSTALL,
    PREREMOVE,
    collect_scripts,
    read_script,
    render_deb_triggers,
)
from ..build.version import render_deb_version
from ..config.schema import Info
from ..utils.logging import LogStage, debug, info as log_info
from .base import Packager

DEBIAN_BINARY = b"2.0\n"

ARCH_TABLE = {
    "386": "i386",
    "arm5": "armel",
    "arm6": "armhf",
    "arm7": "armhf",
    "mipsle": "mipsel",
    "mips64le": "mips64el",
    "ppc64le": "ppc64el",
}

# 通用钩子 -> 控制文件名
MAINTAINER_SCRIPTS = (
    (PREINSTALL, "preinst"),
    (POSTINSTALL, "postinst"),
    (PREREMOVE, "prerm"),
    (POSTREMOVE, "postrm"),
)


def format_description(description: str) -> str:
    """多行描述：首行跟在字段名后，其余行以空格缩进，空行写作 " ." """
    lines = description.strip().splitlines() or [""]
    rendered = [lines[0].strip()]
    for line in lines[1:]:
        rendered.append(f" {line.rstrip()}" if line.strip() else " .")
    return "\n".join(rendered)


class DebPackager(Packager):
    """Debian 打包器"""

    name = "deb"
    extension = ".deb"
    arch_table = ARCH_TABLE
    name_pattern = re.compile(r"^[a-z0-9][a-z0-9+.-]+$")
    supported_platforms = ("linux", "kfreebsd", "hurd")

    def arch_override(self, info: Info) -> Optional[str]:
        return info.deb.arch

    def resolve_arch(self, info: Info) -> str:
        arch = super().resolve_arch(info)
        if info.platform and info.platform != "linux" and not info.deb.arch:
            return f"{info.platform}-{arch}"
        return arch

    def version_string(self, info: Info, with_epoch: bool = True) -> str:
        return render_deb_version(
            info.version,
            info.epoch if with_epoch else "",
            info.release,
            info.prerelease,
            info.deb.metadata or "",
        )

    def conventional_file_name(self, info: Info) -> str:
        return f"{info.name}_{self.version_string(info, with_epoch=False)}_{self.resolve_arch(info)}{self.extension}"

    def package(self, info: Info, output: BinaryIO) -> None:
        self.validate(info)

        mtime = build_time(info)
        entries = ContentResolver().resolve(info)
        scripts = collect_scripts(info)
        rules = read_script(info.deb.scripts.rules)
        log_info(f"构建 deb 软件包: {info.name} ({len(entries)} 个条目)", LogStage.ARCHIVE)

        with tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_SIZE) as data:
            gz = GzipCompressor().open_writer(data)
            try:
                with TarWriter(gz, tarfile.GNU_FORMAT, prefix="./", create_parents=True,
                               default_mtime=mtime) as writer:
                    for entry in entries:
                        writer.add_entry(entry)
            finally:
                gz.close()
            data_size = data.tell()

            control_tar = self.build_control_tar(info, entries, writer.records, writer.total_size,
                                                 scripts, rules, mtime)

            ar = ArWriter(output, mtime)
            ar.add_member("debian-binary", DEBIAN_BINARY)
            ar.add_member("control.tar.gz", control_tar)
            data.seek(0)
            ar.add_member("data.tar.gz", data, size=data_size)
        debug(f"data.tar.gz {data_size} 字节", LogStage.COMPRESS)

    def build_control_tar(
        self,
        info: Info,
        entries: List[ContentEntry],
        records: List[ManifestEntry],
        installed_size: int,
        scripts: Dict[str, str],
        rules: Optional[str],
        mtime: int,
    ) -> bytes:
        """生成 control.tar.gz 的内容"""
        with tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_SIZE) as buffer:
            gz = GzipCompressor().open_writer(buffer)
            try:
                with TarWriter(gz, tarfile.GNU_FORMAT, default_mtime=mtime) as tar:
                    tar.add_data("./control", self.render_control(info, installed_size).encode("utf-8"))
                    tar.add_data("./md5sums", self.render_md5sums(records).encode("utf-8"))

                    conffiles = self.render_conffiles(entries)
                    if conffiles:
                        tar.add_data("./conffiles", conffiles.encode("utf-8"))

                    for hook, filename in MAINTAINER_SCRIPTS:
                        if hook in scripts:
                            tar.add_data(f"./{filename}", scripts[hook].encode("utf-8"), mode=0o755)
                    if rules is not None:
                        tar.add_data("./rules", rules.encode("utf-8"), mode=0o755)

                    triggers = render_deb_triggers(info.deb.triggers)
                    if triggers:
                        tar.add_data("./triggers", triggers.encode("utf-8"))
            finally:
                gz.close()
            buffer.seek(0)
            return buffer.read()

    def render_control(self, info: Info, installed_size: int) -> str:
        """渲染 control 文件，空字段不输出"""
        fields = [
            ("Package", info.name),
            ("Version", self.version_string(info)),
            ("Section", info.section),
            ("Priority", info.priority),
            ("Architecture", self.resolve_arch(info)),
            ("Maintainer", info.maintainer),
            ("Installed-Size", str(math.ceil(installed_size / 1024))),
            ("Replaces", ", ".join(info.replaces)),
            ("Provides", ", ".join(info.provides)),
            ("Depends", ", ".join(info.depends)),
            ("Recommends", ", ".join(info.recommends)),
            ("Suggests", ", ".join(info.suggests)),
            ("Conflicts", ", ".join(info.conflicts)),
            ("Breaks", ", ".join(info.deb.breaks)),
            ("Homepage", info.homepage),
            ("Description", format_description(info.description)),
        ]
        return "".join(f"{key}: {value}\n" for key, value in fields if value)

    @staticmethod
    def render_md5sums(records: List[ManifestEntry]) -> str:
        """md5sums：每个文件一行 "摘要  路径"（路径不带 ./ 前缀）"""
        return "".join(f"{r.md5}  {r.destination[2:]}\n" for r in records if r.md5)

    @staticmethod
    def render_conffiles(entries: List[ContentEntry]) -> str:
        """conffiles：配置文件的绝对路径，每行一个"""
        return "".join(f"{entry.absolute}\n" for entry in entries if entry.is_config)
