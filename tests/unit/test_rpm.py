"""
RPM 打包器单元测试

用 rpm_header.parse_header 解析签名头与主头，解压并解析 cpio 载荷。
"""

import gzip
import hashlib
import io
import lzma
from typing import Dict, List, Tuple

import pytest

from pkgsmith.build.errors import (
    InvalidPackageNameError,
    PackageValidationError,
    UnsupportedCompressionError,
)
from pkgsmith.config.schema import Info
from pkgsmith.formats import rpm_header as rh
from pkgsmith.formats.rpm import Dependency, RPMPackager, parse_dependency

MTIME = 1600000000


class ParsedRPM:
    """解析后的 RPM 文件"""

    def __init__(self, data: bytes):
        assert data[:4] == rh.LEAD_MAGIC
        self.lead = data[:rh.LEAD_SIZE]
        self.signature, sig_end = rh.parse_header(data, rh.LEAD_SIZE)
        header_start = sig_end + (8 - sig_end % 8) % 8
        self.header, header_end = rh.parse_header(data, header_start)
        self.header_bytes = data[header_start:header_end]
        self.payload = data[header_end:]

    def value(self, tag: int, section: str = "header"):
        entries = self.signature if section == "signature" else self.header
        tag_type, count, raw = entries[tag]
        return rh.decode_value(tag_type, count, raw)


def build(info: Info) -> ParsedRPM:
    output = io.BytesIO()
    RPMPackager().package(info, output)
    return ParsedRPM(output.getvalue())


def parse_cpio(data: bytes) -> List[Tuple[str, int, bytes]]:
    """解析 newc cpio，返回 (名称, mode, 内容) 列表（不含 TRAILER）"""
    entries = []
    pos = 0
    while True:
        assert data[pos:pos + 6] == b"070701"
        fields = [int(data[pos + 6 + i * 8:pos + 14 + i * 8], 16) for i in range(13)]
        mode, filesize, namesize = fields[1], fields[6], fields[11]
        name_start = pos + 110
        name = data[name_start:name_start + namesize - 1].decode("utf-8")
        pos = name_start + namesize
        pos += (4 - pos % 4) % 4
        content = data[pos:pos + filesize]
        pos += filesize
        pos += (4 - pos % 4) % 4
        if name == "TRAILER!!!":
            return entries
        entries.append((name, mode, content))


class TestDependencies:
    """依赖解析测试"""

    @pytest.mark.parametrize("value, expected", [
        ("bash", Dependency("bash")),
        ("bash >= 4.0", Dependency("bash", rh.RPMSENSE_GREATER | rh.RPMSENSE_EQUAL, "4.0")),
        ("bash (< 5)", Dependency("bash", rh.RPMSENSE_LESS, "5")),
        ("libfoo.so.1()(64bit)", Dependency("libfoo.so.1()(64bit)")),
        ("python3 = 3.11-1", Dependency("python3", rh.RPMSENSE_EQUAL, "3.11-1")),
    ])
    def test_parse(self, value, expected):
        assert parse_dependency(value) == expected


class TestRPMMetadata:
    """命名与校验测试"""

    def test_file_name(self, make_info):
        packager = RPMPackager()
        assert packager.conventional_file_name(make_info()) == "foo-1.0.0-1.x86_64.rpm"
        assert packager.conventional_file_name(make_info(prerelease="rc-1", release="3")) == \
            "foo-1.0.0~rc_1-3.x86_64.rpm"
        assert packager.conventional_file_name(make_info(arch="all")) == "foo-1.0.0-1.noarch.rpm"

    def test_combined_version_release(self, make_info):
        assert RPMPackager().version_release(make_info(version="1.0-5")) == ("1.0", "5")

    def test_epoch_must_be_integer(self, make_info):
        with pytest.raises(PackageValidationError):
            RPMPackager().validate(make_info(epoch="abc"))

    def test_invalid_name(self, make_info):
        with pytest.raises(InvalidPackageNameError):
            RPMPackager().validate(make_info(name="-foo"))

    def test_unknown_compression(self, make_info):
        output = io.BytesIO()
        with pytest.raises(UnsupportedCompressionError):
            RPMPackager().package(make_info(rpm={"compression": "bzip2"}), output)
        assert output.getvalue() == b""

    def test_compression_level_out_of_range(self, make_info):
        output = io.BytesIO()
        with pytest.raises(UnsupportedCompressionError):
            RPMPackager().package(make_info(rpm={"compression": "gzip:12"}), output)
        assert output.getvalue() == b""


class TestRPMPackage:
    """完整构建测试"""

    def test_lead(self, make_info):
        rpm = build(make_info())
        assert rpm.lead[4:6] == b"\x03\x00"
        assert rpm.lead[10:10 + len(b"foo-1.0.0-1")] == b"foo-1.0.0-1"

    def test_signature(self, make_info):
        rpm = build(make_info())
        assert rpm.value(rh.RPMSIGTAG_SIZE, "signature") == [len(rpm.header_bytes) + len(rpm.payload)]
        assert rpm.value(rh.RPMSIGTAG_MD5, "signature") == hashlib.md5(rpm.header_bytes + rpm.payload).digest()
        assert rpm.value(rh.RPMSIGTAG_SHA1, "signature") == hashlib.sha1(rpm.header_bytes).hexdigest()
        assert rpm.value(rh.RPMSIGTAG_SHA256, "signature") == hashlib.sha256(rpm.header_bytes).hexdigest()
        assert rpm.value(rh.RPMSIGTAG_PAYLOADSIZE, "signature") == [len(gzip.decompress(rpm.payload))]

    def test_header_fields(self, make_info):
        rpm = build(make_info(rpm={"group": "Tools"}))
        assert rpm.value(rh.RPMTAG_NAME) == "foo"
        assert rpm.value(rh.RPMTAG_VERSION) == "1.0.0"
        assert rpm.value(rh.RPMTAG_RELEASE) == "1"
        assert rh.RPMTAG_EPOCH not in rpm.header
        assert rpm.value(rh.RPMTAG_SUMMARY) == ["Foo does things."]
        assert rpm.value(rh.RPMTAG_DESCRIPTION) == ["Foo does things.\nIt does them well."]
        assert rpm.value(rh.RPMTAG_GROUP) == ["Tools"]
        assert rpm.value(rh.RPMTAG_BUILDTIME) == [MTIME]
        assert rpm.value(rh.RPMTAG_SIZE) == [29]
        assert rpm.value(rh.RPMTAG_OS) == "linux"
        assert rpm.value(rh.RPMTAG_ARCH) == "x86_64"
        assert rpm.value(rh.RPMTAG_LICENSE) == "MIT"
        assert rpm.value(rh.RPMTAG_VENDOR) == "Example"
        assert rpm.value(rh.RPMTAG_PACKAGER) == "Foo Bar <foo@example.com>"
        assert rpm.value(rh.RPMTAG_URL) == "https://example.com"
        assert rpm.value(rh.RPMTAG_SOURCERPM) == "foo-1.0.0-1.src.rpm"
        assert rpm.value(rh.RPMTAG_PAYLOADFORMAT) == "cpio"
        assert rpm.value(rh.RPMTAG_PAYLOADCOMPRESSOR) == "gzip"
        assert rpm.value(rh.RPMTAG_PAYLOADDIGEST) == [hashlib.sha256(rpm.payload).hexdigest()]
        assert rpm.value(rh.RPMTAG_PAYLOADDIGESTALGO) == [rh.PGPHASHALGO_SHA256]

    def test_file_tags(self, make_info, source_tree):
        rpm = build(make_info(rpm={
            "config_noreplace_files": {str(source_tree / "etc" / "local.conf"): "/etc/local.conf"},
        }))
        binary = (source_tree / "bin" / "foo").read_bytes()
        assert rpm.value(rh.RPMTAG_DIRNAMES) == ["/etc/", "/usr/bin/", "/usr/local/bin/", "/var/log/"]
        assert rpm.value(rh.RPMTAG_BASENAMES) == ["foo.conf", "local.conf", "foo", "foo", "foo"]
        assert rpm.value(rh.RPMTAG_DIRINDEXES) == [0, 0, 1, 2, 3]
        assert rpm.value(rh.RPMTAG_FILEMODES) == [0o100644, 0o100644, 0o100755, 0o120777, 0o040755]
        assert rpm.value(rh.RPMTAG_FILESIZES) == [10, 8, len(binary), len("/usr/bin/foo"), 4096]
        assert rpm.value(rh.RPMTAG_FILEFLAGS) == [
            rh.RPMFILE_CONFIG,
            rh.RPMFILE_CONFIG | rh.RPMFILE_NOREPLACE,
            0,
            0,
            0,
        ]
        digests = rpm.value(rh.RPMTAG_FILEDIGESTS)
        assert digests[2] == hashlib.sha256(binary).hexdigest()
        assert digests[3:] == ["", ""]
        assert rpm.value(rh.RPMTAG_FILELINKTOS) == ["", "", "", "/usr/bin/foo", ""]
        assert rpm.value(rh.RPMTAG_FILEUSERNAME) == ["root"] * 5
        assert rpm.value(rh.RPMTAG_FILEINODES) == [1, 2, 3, 4, 5]
        assert rpm.value(rh.RPMTAG_FILEDIGESTALGO) == [rh.PGPHASHALGO_SHA256]

    def test_payload(self, make_info, source_tree):
        rpm = build(make_info())
        entries = parse_cpio(gzip.decompress(rpm.payload))
        assert [(name, mode) for name, mode, _ in entries] == [
            ("./etc/foo.conf", 0o100644),
            ("./usr/bin/foo", 0o100755),
            ("./usr/local/bin/foo", 0o120777),
            ("./var/log/foo", 0o040755),
        ]
        assert entries[1][2] == (source_tree / "bin" / "foo").read_bytes()
        assert entries[2][2] == b"/usr/bin/foo"

    def test_dependencies(self, make_info):
        info = make_info(
            epoch="2",
            depends=["bash >= 4.0"],
            provides=["virt"],
            conflicts=["other (< 1.0)"],
            replaces=["old"],
            recommends=["rec"],
            suggests=["sug"],
        )
        rpm = build(info)
        assert rpm.value(rh.RPMTAG_EPOCH) == [2]
        assert rpm.value(rh.RPMTAG_PROVIDENAME) == ["foo", "virt"]
        assert rpm.value(rh.RPMTAG_PROVIDEVERSION) == ["2:1.0.0-1", ""]
        assert rpm.value(rh.RPMTAG_PROVIDEFLAGS) == [rh.RPMSENSE_EQUAL, 0]

        requires = rpm.value(rh.RPMTAG_REQUIRENAME)
        assert requires[0] == "bash"
        assert "rpmlib(CompressedFileNames)" in requires
        assert "rpmlib(PayloadIsXz)" not in requires
        assert rpm.value(rh.RPMTAG_REQUIREVERSION)[0] == "4.0"
        assert rpm.value(rh.RPMTAG_REQUIREFLAGS)[0] == rh.RPMSENSE_GREATER | rh.RPMSENSE_EQUAL

        assert rpm.value(rh.RPMTAG_CONFLICTNAME) == ["other"]
        assert rpm.value(rh.RPMTAG_CONFLICTFLAGS) == [rh.RPMSENSE_LESS]
        assert rpm.value(rh.RPMTAG_OBSOLETENAME) == ["old"]
        assert rpm.value(rh.RPMTAG_RECOMMENDNAME) == ["rec"]
        assert rpm.value(rh.RPMTAG_SUGGESTNAME) == ["sug"]

    def test_scripts(self, make_info, script_paths):
        rpm = build(make_info(scripts=script_paths))
        assert rpm.value(rh.RPMTAG_PREIN) == "echo preinstall"
        assert rpm.value(rh.RPMTAG_POSTUN) == "echo postremove"
        assert rpm.value(rh.RPMTAG_PREINPROG) == "/bin/sh"

    def test_xz_payload(self, make_info):
        rpm = build(make_info(rpm={"compression": "xz:1"}))
        assert rpm.value(rh.RPMTAG_PAYLOADCOMPRESSOR) == "xz"
        assert rpm.value(rh.RPMTAG_PAYLOADFLAGS) == "1"
        assert "rpmlib(PayloadIsXz)" in rpm.value(rh.RPMTAG_REQUIRENAME)
        assert parse_cpio(lzma.decompress(rpm.payload))[0][0] == "./etc/foo.conf"

    def test_uncompressed_payload(self, make_info):
        rpm = build(make_info(rpm={"compression": "none"}))
        assert rpm.value(rh.RPMTAG_PAYLOADCOMPRESSOR) == "ufdio"
        assert rpm.payload[:6] == b"070701"

    def test_no_content(self):
        rpm = build(Info(name="foo", arch="amd64", version="1.0.0"))
        assert rh.RPMTAG_BASENAMES not in rpm.header
        assert parse_cpio(gzip.decompress(rpm.payload)) == []


class TestRpmHeader:
    """头编解码测试"""

    def test_region_and_alignment(self):
        header = rh.RpmHeader(rh.HEADER_IMMUTABLE)
        header.add_string(rh.RPMTAG_NAME, "x")
        header.add_int32(rh.RPMTAG_BUILDTIME, 7)
        header.add_int16(rh.RPMTAG_FILEMODES, [0o100644])
        data = header.to_bytes()

        entries, end = rh.parse_header(data)
        assert end == len(data)
        assert len(header) == 3
        assert rh.RPMTAG_NAME in header
        assert sorted(entries) == [rh.HEADER_IMMUTABLE, rh.RPMTAG_NAME, rh.RPMTAG_BUILDTIME, rh.RPMTAG_FILEMODES]
        assert rh.decode_value(*entries[rh.RPMTAG_BUILDTIME]) == [7]
        assert rh.decode_value(*entries[rh.RPMTAG_FILEMODES]) == [0o100644]

    def test_bad_magic(self):
        with pytest.raises(ValueError):
            rh.parse_header(b"\0" * 16)

    def test_signature_padded(self):
        signature = rh.build_signature(b"h" * 10, 5, b"\0" * 16, "a", "b", 20)
        assert len(signature) % 8 == 0
