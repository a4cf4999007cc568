"""
Arch Linux 打包器单元测试

生成的 .pkg.tar.zst 用 zstandard + tarfile 重新打开，检查条目顺序、.PKGINFO 与 .MTREE。
"""

import gzip
import hashlib
import io
import tarfile

import pytest
import zstandard as zstd

from pkgsmith.build.collector import resolve_contents
from pkgsmith.build.errors import (
    FieldEmptyError,
    GlobNoMatchError,
    InvalidPackageNameError,
    UnsupportedPlatformError,
)
from pkgsmith.config.schema import Info
from pkgsmith.formats.arch import ArchLinuxPackager

MTIME = 1600000000


def build(info: Info) -> tarfile.TarFile:
    output = io.BytesIO()
    ArchLinuxPackager().package(info, output)
    raw = zstd.ZstdDecompressor().decompressobj().decompress(output.getvalue())
    return tarfile.open(fileobj=io.BytesIO(raw))


def read_member(tar: tarfile.TarFile, name: str) -> bytes:
    return tar.extractfile(tar.getmember(name)).read()


def file_line(path: str, data: bytes, mode: str) -> str:
    return (
        f"{path} time={MTIME}.0 mode={mode} size={len(data)} type=file "
        f"md5digest={hashlib.md5(data).hexdigest()} sha256digest={hashlib.sha256(data).hexdigest()}\n"
    )


class TestArchMetadata:
    """元数据与命名测试"""

    def test_pkgver_with_epoch_and_prerelease(self, make_info):
        info = make_info(version="0.0.1", epoch="2", release="1", prerelease="beta-1")
        pkginfo = ArchLinuxPackager().render_pkginfo(info, 0, MTIME, [])
        assert "pkgver = 2:0.0.1beta_1-1\n" in pkginfo

    def test_pkgver_release(self, make_info):
        info = make_info(version="0.0.1", release="4")
        pkginfo = ArchLinuxPackager().render_pkginfo(info, 0, MTIME, [])
        assert "pkgver = 0.0.1-4\n" in pkginfo

    def test_pkginfo_text(self, make_info):
        info = make_info()
        entries = resolve_contents(info)
        pkginfo = ArchLinuxPackager().render_pkginfo(info, 29, MTIME, entries)
        assert pkginfo == (
            "# Generated by pkgsmith\n"
            "pkgname = foo\n"
            "pkgbase = foo\n"
            "pkgver = 1.0.0-1\n"
            "pkgdesc = Foo does things. It does them well.\n"
            "url = https://example.com\n"
            f"builddate = {MTIME}\n"
            "packager = Unknown Packager\n"
            "size = 29\n"
            "arch = x86_64\n"
            "license = MIT\n"
            "depend = bash\n"
            "backup = etc/foo.conf\n"
        )

    def test_pkginfo_repeated_relations(self, make_info):
        info = make_info(
            replaces=["old"],
            conflicts=["c1", "c2"],
            provides=["virt"],
            archlinux={"pkgbase": "foo-base", "packager": "Jane <jane@example.com>"},
        )
        pkginfo = ArchLinuxPackager().render_pkginfo(info, 0, MTIME, [])
        assert "pkgbase = foo-base\n" in pkginfo
        assert "packager = Jane <jane@example.com>\n" in pkginfo
        assert "replaces = old\nconflict = c1\nconflict = c2\nprovides = virt\ndepend = bash\n" in pkginfo

    def test_file_name(self, make_info):
        packager = ArchLinuxPackager()
        assert packager.conventional_file_name(make_info()) == "foo-1.0.0-1-x86_64.pkg.tar.zst"
        info = make_info(prerelease="rc-1", release="2", epoch="3")
        assert packager.conventional_file_name(info) == "foo-1.0.0rc_1-2-x86_64.pkg.tar.zst"

    def test_arch_translation_and_override(self, make_info):
        packager = ArchLinuxPackager()
        assert packager.resolve_arch(make_info(arch="arm7")) == "armv7h"
        assert packager.resolve_arch(make_info(arch="all")) == "any"
        assert packager.resolve_arch(make_info(arch="riscv64")) == "riscv64"
        assert packager.resolve_arch(make_info(archlinux={"arch": "pentium4"})) == "pentium4"


class TestArchValidation:
    """校验测试（失败时不写出任何字节）"""

    @pytest.mark.parametrize("name", ["#", "-foo", ".foo", "foo bar"])
    def test_invalid_name(self, make_info, name):
        output = io.BytesIO()
        with pytest.raises(InvalidPackageNameError):
            ArchLinuxPackager().package(make_info(name=name), output)
        assert output.getvalue() == b""

    def test_unsupported_platform(self, make_info):
        output = io.BytesIO()
        with pytest.raises(UnsupportedPlatformError):
            ArchLinuxPackager().package(make_info(platform="darwin"), output)
        assert output.getvalue() == b""

    @pytest.mark.parametrize("field", ["name", "arch", "version"])
    def test_empty_field(self, make_info, field):
        with pytest.raises(FieldEmptyError):
            ArchLinuxPackager().validate(make_info(**{field: ""}))

    def test_missing_source(self, make_info, tmp_path):
        with pytest.raises(GlobNoMatchError):
            ArchLinuxPackager().package(make_info(files={str(tmp_path / "nope"): "/x"}), io.BytesIO())


class TestArchPackage:
    """完整构建测试"""

    def test_entry_order_and_content(self, make_info, source_tree, script_paths):
        info = make_info(scripts=script_paths)
        with build(info) as tar:
            assert tar.getnames() == [
                ".PKGINFO",
                ".MTREE",
                ".INSTALL",
                "etc/foo.conf",
                "usr/bin/foo",
                "usr/local/bin/foo",
                "var/log/foo",
            ]
            assert read_member(tar, "usr/bin/foo") == (source_tree / "bin" / "foo").read_bytes()
            assert tar.getmember("usr/bin/foo").mode == 0o755
            assert tar.getmember("usr/local/bin/foo").linkname == "/usr/bin/foo"
            assert tar.getmember("var/log/foo").isdir()
            install = read_member(tar, ".INSTALL").decode("utf-8")

        assert install == (
            "function pre_install() {\necho preinstall\n}\n\n"
            "function post_install() {\necho postinstall\n}\n\n"
            "function pre_remove() {\necho preremove\n}\n\n"
            "function post_remove() {\necho postremove\n}\n\n"
        )

    def test_mtree(self, make_info):
        with build(make_info()) as tar:
            pkginfo = read_member(tar, ".PKGINFO")
            mtree = gzip.decompress(read_member(tar, ".MTREE")).decode("utf-8")

        assert "size = 29\n" in pkginfo.decode("utf-8")
        assert mtree == (
            "#mtree\n"
            + file_line("./.PKGINFO", pkginfo, "644")
            + file_line("./etc/foo.conf", b"key=value\n", "644")
            + file_line("./usr/bin/foo", b"#!/bin/sh\necho foo\n", "755")
            + f"./usr/local/bin/foo time={MTIME}.0 mode=777 type=link link=/usr/bin/foo\n"
            + f"./var/log/foo time={MTIME}.0 mode=755 type=dir\n"
        )

    def test_no_scripts_no_install(self, make_info):
        with build(make_info()) as tar:
            assert ".INSTALL" not in tar.getnames()

    def test_upgrade_hooks(self, make_info, source_tree):
        info = make_info(archlinux={"scripts": {"postupgrade": str(source_tree / "scripts" / "postupgrade.sh")}})
        with build(info) as tar:
            install = read_member(tar, ".INSTALL").decode("utf-8")
        assert install == "function post_upgrade() {\necho postupgrade\n}\n\n"

    def test_no_content(self):
        info = Info(name="foo", arch="amd64", version="1.0.0")
        with build(info) as tar:
            assert tar.getnames() == [".PKGINFO", ".MTREE"]
            pkginfo = read_member(tar, ".PKGINFO").decode("utf-8")
            mtree = gzip.decompress(read_member(tar, ".MTREE")).decode("utf-8")
        assert "size = 0\n" in pkginfo
        assert mtree.count("\n") == 2

    def test_reproducible(self, make_info):
        first = io.BytesIO()
        second = io.BytesIO()
        ArchLinuxPackager().package(make_info(), first)
        ArchLinuxPackager().package(make_info(), second)
        assert first.getvalue() == second.getvalue()
