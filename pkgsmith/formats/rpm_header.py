"""
RPM 二进制头编解码

只负责字节布局：lead（96 字节）、签名头与主头（带 region 的 tag 索引 + 数据区）。
字段内容由 rpm 打包器负责准备。
"""

import struct
from typing import Dict, Iterable, List, Tuple, Union

# 数据类型
RPM_CHAR = 1
RPM_INT8 = 2
RPM_INT16 = 3
RPM_INT32 = 4
RPM_INT64 = 5
RPM_STRING = 6
RPM_BIN = 7
RPM_STRING_ARRAY = 8
RPM_I18NSTRING = 9

# 数据区对齐
_ALIGNMENT = {
    RPM_INT16: 2,
    RPM_INT32: 4,
    RPM_INT64: 8,
}

# 依赖比较标志
RPMSENSE_ANY = 0
RPMSENSE_LESS = (1 << 1)
RPMSENSE_GREATER = (1 << 2)
RPMSENSE_EQUAL = (1 << 3)
RPMSENSE_PREREQ = (1 << 6)
RPMSENSE_RPMLIB = ((1 << 24) | RPMSENSE_PREREQ)

# 文件标志
RPMFILE_NONE = 0
RPMFILE_CONFIG = (1 << 0)
RPMFILE_NOREPLACE = (1 << 4)

# region 标签
HEADER_SIGNATURES = 62
HEADER_IMMUTABLE = 63
HEADER_I18NTABLE = 100

# 签名头标签
RPMSIGTAG_SHA1 = 269
RPMSIGTAG_SHA256 = 273
RPMSIGTAG_SIZE = 1000
RPMSIGTAG_MD5 = 1004
RPMSIGTAG_PAYLOADSIZE = 1007

# 主头标签
RPMTAG_NAME = 1000
RPMTAG_VERSION = 1001
RPMTAG_RELEASE = 1002
RPMTAG_EPOCH = 1003
RPMTAG_SUMMARY = 1004
RPMTAG_DESCRIPTION = 1005
RPMTAG_BUILDTIME = 1006
RPMTAG_BUILDHOST = 1007
RPMTAG_SIZE = 1009
RPMTAG_VENDOR = 1011
RPMTAG_LICENSE = 1014
RPMTAG_PACKAGER = 1015
RPMTAG_GROUP = 1016
RPMTAG_URL = 1020
RPMTAG_OS = 1021
RPMTAG_ARCH = 1022
RPMTAG_PREIN = 1023
RPMTAG_POSTIN = 1024
RPMTAG_PREUN = 1025
RPMTAG_POSTUN = 1026
RPMTAG_FILESIZES = 1028
RPMTAG_FILEMODES = 1030
RPMTAG_FILERDEVS = 1033
RPMTAG_FILEMTIMES = 1034
RPMTAG_FILEDIGESTS = 1035
RPMTAG_FILELINKTOS = 1036
RPMTAG_FILEFLAGS = 1037
RPMTAG_FILEUSERNAME = 1039
RPMTAG_FILEGROUPNAME = 1040
RPMTAG_SOURCERPM = 1044
RPMTAG_FILEVERIFYFLAGS = 1045
RPMTAG_PROVIDENAME = 1047
RPMTAG_REQUIREFLAGS = 1048
RPMTAG_REQUIRENAME = 1049
RPMTAG_REQUIREVERSION = 1050
RPMTAG_CONFLICTFLAGS = 1053
RPMTAG_CONFLICTNAME = 1054
RPMTAG_CONFLICTVERSION = 1055
RPMTAG_RPMVERSION = 1064
RPMTAG_PREINPROG = 1085
RPMTAG_POSTINPROG = 1086
RPMTAG_PREUNPROG = 1087
RPMTAG_POSTUNPROG = 1088
RPMTAG_OBSOLETENAME = 1090
RPMTAG_FILEDEVICES = 1095
RPMTAG_FILEINODES = 1096
RPMTAG_FILELANGS = 1097
RPMTAG_PROVIDEFLAGS = 1112
RPMTAG_PROVIDEVERSION = 1113
RPMTAG_OBSOLETEFLAGS = 1114
RPMTAG_OBSOLETEVERSION = 1115
RPMTAG_DIRINDEXES = 1116
RPMTAG_BASENAMES = 1117
RPMTAG_DIRNAMES = 1118
RPMTAG_PAYLOADFORMAT = 1124
RPMTAG_PAYLOADCOMPRESSOR = 1125
RPMTAG_PAYLOADFLAGS = 1126
RPMTAG_FILEDIGESTALGO = 5011
RPMTAG_RECOMMENDNAME = 5046
RPMTAG_RECOMMENDVERSION = 5047
RPMTAG_RECOMMENDFLAGS = 5048
RPMTAG_SUGGESTNAME = 5049
RPMTAG_SUGGESTVERSION = 5050
RPMTAG_SUGGESTFLAGS = 5051
RPMTAG_PAYLOADDIGEST = 5092
RPMTAG_PAYLOADDIGESTALGO = 5093

# 摘要算法（PGP 编号）
PGPHASHALGO_SHA256 = 8

HEADER_MAGIC = b"\x8e\xad\xe8\x01\x00\x00\x00\x00"
LEAD_MAGIC = b"\xed\xab\xee\xdb"
LEAD_SIZE = 96
_LEAD_STRUCT = struct.Struct(">4sBBhh66shh16x")
_INDEX_STRUCT = struct.Struct(">iiii")


def build_lead(name: str, archnum: int = 0) -> bytes:
    """构建 96 字节 lead（二进制包，osnum=1，signature_type=5）"""
    encoded = name.encode("utf-8")[:65]
    return _LEAD_STRUCT.pack(LEAD_MAGIC, 3, 0, 0, archnum, encoded, 1, 5)


class RpmHeader:
    """RPM 头构建器

    条目按标签排序写入索引；region 条目位于索引首位，其尾记录位于数据区末尾。
    """

    def __init__(self, region_tag: int = HEADER_IMMUTABLE):
        self.region_tag = region_tag
        self._entries: Dict[int, Tuple[int, int, bytes]] = {}

    def __contains__(self, tag: int) -> bool:
        return tag in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def _set(self, tag: int, tag_type: int, count: int, data: bytes) -> None:
        self._entries[tag] = (tag_type, count, data)

    def add_string(self, tag: int, value: str) -> None:
        self._set(tag, RPM_STRING, 1, value.encode("utf-8") + b"\0")

    def add_i18n_string(self, tag: int, value: str) -> None:
        """单语言（C）字符串，需要配合 HEADER_I18NTABLE 使用"""
        self._set(tag, RPM_I18NSTRING, 1, value.encode("utf-8") + b"\0")

    def add_string_array(self, tag: int, values: Iterable[str]) -> None:
        values = list(values)
        self._set(tag, RPM_STRING_ARRAY, len(values), b"".join(v.encode("utf-8") + b"\0" for v in values))

    def add_int16(self, tag: int, values: Union[int, Iterable[int]]) -> None:
        values = [values] if isinstance(values, int) else list(values)
        self._set(tag, RPM_INT16, len(values), b"".join(struct.pack(">H", v & 0xFFFF) for v in values))

    def add_int32(self, tag: int, values: Union[int, Iterable[int]]) -> None:
        values = [values] if isinstance(values, int) else list(values)
        self._set(tag, RPM_INT32, len(values), b"".join(struct.pack(">I", v & 0xFFFFFFFF) for v in values))

    def add_bin(self, tag: int, value: bytes) -> None:
        self._set(tag, RPM_BIN, len(value), value)

    def to_bytes(self) -> bytes:
        """序列化为头字节（magic + 索引 + 数据区）"""
        index: List[bytes] = []
        store = bytearray()
        for tag, (tag_type, count, data) in sorted(self._entries.items()):
            alignment = _ALIGNMENT.get(tag_type, 1)
            if len(store) % alignment:
                store += b"\0" * (alignment - len(store) % alignment)
            index.append(_INDEX_STRUCT.pack(tag, tag_type, len(store), count))
            store += data

        entry_count = len(index) + 1
        region_offset = len(store)
        store += _INDEX_STRUCT.pack(self.region_tag, RPM_BIN, -entry_count * _INDEX_STRUCT.size, 16)
        index.insert(0, _INDEX_STRUCT.pack(self.region_tag, RPM_BIN, region_offset, 16))

        return HEADER_MAGIC + struct.pack(">ii", entry_count, len(store)) + b"".join(index) + bytes(store)


def build_signature(header: bytes, payload_size: int, md5_digest: bytes, sha1_hex: str,
                    sha256_hex: str, uncompressed_size: int) -> bytes:
    """构建签名头（末尾补齐到 8 字节）

    Args:
        header: 主头字节
        payload_size: 压缩后载荷长度
        md5_digest: 主头 + 载荷的 MD5
        sha1_hex: 主头的 SHA-1
        sha256_hex: 主头的 SHA-256
        uncompressed_size: 未压缩载荷（cpio）长度
    """
    signature = RpmHeader(HEADER_SIGNATURES)
    signature.add_string(RPMSIGTAG_SHA1, sha1_hex)
    signature.add_string(RPMSIGTAG_SHA256, sha256_hex)
    signature.add_int32(RPMSIGTAG_SIZE, len(header) + payload_size)
    signature.add_bin(RPMSIGTAG_MD5, md5_digest)
    signature.add_int32(RPMSIGTAG_PAYLOADSIZE, uncompressed_size)
    data = signature.to_bytes()
    if len(data) % 8:
        data += b"\0" * (8 - len(data) % 8)
    return data


def parse_header(data: bytes, offset: int = 0) -> Tuple[Dict[int, Tuple[int, int, bytes]], int]:
    """解析头结构

    Returns:
        (标签 -> (类型, 数量, 原始数据), 头结束偏移)
    """
    if data[offset:offset + 8] != HEADER_MAGIC:
        raise ValueError("RPM 头 magic 错误")
    entry_count, store_size = struct.unpack_from(">ii", data, offset + 8)
    index_start = offset + 16
    store_start = index_start + entry_count * _INDEX_STRUCT.size

    raw = []
    for i in range(entry_count):
        raw.append(_INDEX_STRUCT.unpack_from(data, index_start + i * _INDEX_STRUCT.size))
    offsets = sorted({entry_offset for _, _, entry_offset, _ in raw} | {store_size})

    entries: Dict[int, Tuple[int, int, bytes]] = {}
    for tag, tag_type, entry_offset, count in raw:
        end = next(o for o in offsets if o > entry_offset)
        entries[tag] = (tag_type, count, data[store_start + entry_offset:store_start + end])
    return entries, store_start + store_size


def decode_value(tag_type: int, count: int, raw: bytes):
    """把原始数据解码为 Python 值（字符串、字符串列表或整数列表）"""
    if tag_type == RPM_STRING:
        return raw.split(b"\0", 1)[0].decode("utf-8")
    if tag_type in (RPM_STRING_ARRAY, RPM_I18NSTRING):
        return [item.decode("utf-8") for item in raw.split(b"\0")[:count]]
    if tag_type == RPM_INT16:
        return list(struct.unpack(f">{count}H", raw[:2 * count]))
    if tag_type == RPM_INT32:
        return list(struct.unpack(f">{count}I", raw[:4 * count]))
    if tag_type == RPM_INT64:
        return list(struct.unpack(f">{count}Q", raw[:8 * count]))
    return raw[:count]
