"""
Debian 打包器单元测试

解析 ar 容器并用 tarfile 重新打开 control.tar.gz / data.tar.gz。
"""

import hashlib
import io
import tarfile
from typing import Dict

import pytest

from pkgsmith.build.errors import InvalidPackageNameError, UnsupportedPlatformError
from pkgsmith.config.schema import Info
from pkgsmith.formats.deb import DebPackager, format_description


def parse_ar(data: bytes) -> Dict[str, bytes]:
    assert data[:8] == b"!<arch>\n"
    members = {}
    pos = 8
    while pos < len(data):
        header = data[pos:pos + 60]
        name = header[:16].decode("ascii").strip()
        size = int(header[48:58].decode("ascii").strip())
        members[name] = data[pos + 60:pos + 60 + size]
        pos += 60 + size + size % 2
    return members


def build(info: Info) -> Dict[str, bytes]:
    output = io.BytesIO()
    DebPackager().package(info, output)
    return parse_ar(output.getvalue())


def open_tar(data: bytes) -> tarfile.TarFile:
    return tarfile.open(fileobj=io.BytesIO(data), mode="r:gz")


def read_member(tar: tarfile.TarFile, name: str) -> str:
    return tar.extractfile(tar.getmember(name)).read().decode("utf-8")


class TestDebMetadata:
    """control 与命名测试"""

    def test_control_text(self, make_info):
        control = DebPackager().render_control(make_info(), 29)
        assert control == (
            "Package: foo\n"
            "Version: 1.0.0\n"
            "Architecture: amd64\n"
            "Maintainer: Foo Bar <foo@example.com>\n"
            "Installed-Size: 1\n"
            "Depends: bash\n"
            "Homepage: https://example.com\n"
            "Description: Foo does things.\n"
            " It does them well.\n"
        )

    def test_control_relations(self, make_info):
        info = make_info(
            section="utils",
            priority="optional",
            depends=["bash (>= 4.0)", "curl"],
            replaces=["old"],
            provides=["virt"],
            recommends=["r"],
            suggests=["s"],
            conflicts=["c"],
            deb={"breaks": ["b1", "b2"]},
        )
        control = DebPackager().render_control(info, 2049)
        assert "Section: utils\nPriority: optional\n" in control
        assert "Installed-Size: 3\n" in control
        assert (
            "Replaces: old\nProvides: virt\nDepends: bash (>= 4.0), curl\n"
            "Recommends: r\nSuggests: s\nConflicts: c\nBreaks: b1, b2\n"
        ) in control

    def test_version_string(self, make_info):
        packager = DebPackager()
        info = make_info(epoch="1", release="2", prerelease="rc1", deb={"metadata": "git"})
        assert packager.version_string(info) == "1:1.0.0~rc1+git-2"
        assert packager.conventional_file_name(info) == "foo_1.0.0~rc1+git-2_amd64.deb"

    def test_architecture(self, make_info):
        packager = DebPackager()
        assert packager.resolve_arch(make_info(arch="arm7")) == "armhf"
        assert packager.resolve_arch(make_info(arch="arm64")) == "arm64"
        assert packager.resolve_arch(make_info(platform="kfreebsd")) == "kfreebsd-amd64"
        assert packager.resolve_arch(make_info(platform="kfreebsd", deb={"arch": "custom"})) == "custom"

    def test_format_description(self):
        assert format_description("one") == "one"
        assert format_description("one\ntwo\n\nthree") == "one\n two\n .\n three"

    @pytest.mark.parametrize("name", ["Foo", "f", "-foo", "foo_bar"])
    def test_invalid_name(self, make_info, name):
        with pytest.raises(InvalidPackageNameError):
            DebPackager().validate(make_info(name=name))

    def test_platforms(self, make_info):
        DebPackager().validate(make_info(platform="hurd"))
        with pytest.raises(UnsupportedPlatformError):
            DebPackager().validate(make_info(platform="windows"))


class TestDebPackage:
    """完整构建测试"""

    def test_members(self, make_info):
        members = build(make_info())
        assert list(members) == ["debian-binary", "control.tar.gz", "data.tar.gz"]
        assert members["debian-binary"] == b"2.0\n"

    def test_data_tar(self, make_info, source_tree):
        members = build(make_info())
        with open_tar(members["data.tar.gz"]) as tar:
            assert tar.getnames() == [
                "./etc",
                "./etc/foo.conf",
                "./usr",
                "./usr/bin",
                "./usr/bin/foo",
                "./usr/local",
                "./usr/local/bin",
                "./usr/local/bin/foo",
                "./var",
                "./var/log",
                "./var/log/foo",
            ]
            assert tar.getmember("./usr").mode == 0o755
            assert tar.getmember("./usr/bin/foo").mode == 0o755
            assert tar.extractfile("./usr/bin/foo").read() == (source_tree / "bin" / "foo").read_bytes()
            assert tar.getmember("./usr/local/bin/foo").issym()

    def test_control_tar(self, make_info, source_tree, script_paths):
        info = make_info(
            scripts=script_paths,
            deb={
                "scripts": {"rules": str(source_tree / "scripts" / "rules")},
                "triggers": {"interest": ["foo-trigger"]},
            },
        )
        members = build(info)
        with open_tar(members["control.tar.gz"]) as tar:
            assert tar.getnames() == [
                "./control",
                "./md5sums",
                "./conffiles",
                "./preinst",
                "./postinst",
                "./prerm",
                "./postrm",
                "./rules",
                "./triggers",
            ]
            assert tar.getmember("./postinst").mode == 0o755
            assert tar.getmember("./rules").mode == 0o755
            assert tar.getmember("./control").mode == 0o644
            md5sums = read_member(tar, "./md5sums")
            assert read_member(tar, "./conffiles") == "/etc/foo.conf\n"
            assert read_member(tar, "./triggers") == "interest foo-trigger\n"
            assert read_member(tar, "./postinst") == "echo postinstall"
            assert "Installed-Size: 1\n" in read_member(tar, "./control")

        assert md5sums == (
            f"{hashlib.md5(b'key=value' + bytes([10])).hexdigest()}  etc/foo.conf\n"
            f"{hashlib.md5((source_tree / 'bin' / 'foo').read_bytes()).hexdigest()}  usr/bin/foo\n"
        )

    def test_minimal_control(self):
        members = build(Info(name="foo", arch="amd64", version="1.0.0"))
        with open_tar(members["control.tar.gz"]) as tar:
            assert tar.getnames() == ["./control", "./md5sums"]
            assert read_member(tar, "./md5sums") == ""
        with open_tar(members["data.tar.gz"]) as tar:
            assert tar.getnames() == []
