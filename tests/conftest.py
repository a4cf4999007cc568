"""
共享测试夹具
"""

import os

import pytest

from pkgsmith.config.schema import Info

FIXED_MTIME = 1600000000


@pytest.fixture
def source_tree(tmp_path):
    """创建测试用源文件树

    src/
      bin/foo          (0755)
      etc/foo.conf
      etc/local.conf
      share/a.txt
      share/b.txt
      share/sub/c.txt
      scripts/*.sh
    """
    root = tmp_path / "src"
    files = {
        "bin/foo": b"#!/bin/sh\necho foo\n",
        "etc/foo.conf": b"key=value\n",
        "etc/local.conf": b"local=1\n",
        "share/a.txt": b"aaa\n",
        "share/b.txt": b"bbbb\n",
        "share/sub/c.txt": b"c\n",
        "scripts/preinstall.sh": b"echo preinstall",
        "scripts/postinstall.sh": b"echo postinstall",
        "scripts/preremove.sh": b"echo preremove",
        "scripts/postremove.sh": b"echo postremove",
        "scripts/preupgrade.sh": b"echo preupgrade",
        "scripts/postupgrade.sh": b"echo postupgrade",
        "scripts/rules": b"#!/usr/bin/make -f\n",
    }
    for rel, data in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        os.utime(path, (FIXED_MTIME, FIXED_MTIME))
    (root / "bin" / "foo").chmod(0o755)
    for rel in files:
        if not rel.startswith("bin/"):
            (root / rel).chmod(0o644)
    return root


@pytest.fixture(autouse=True)
def fixed_source_date_epoch(monkeypatch):
    """固定生成条目的时间戳"""
    monkeypatch.setenv("SOURCE_DATE_EPOCH", str(FIXED_MTIME))


@pytest.fixture
def make_info(source_tree):
    """构造一个带完整内容的 Info"""

    def factory(**overrides) -> Info:
        data = {
            "name": "foo",
            "arch": "amd64",
            "version": "1.0.0",
            "maintainer": "Foo Bar <foo@example.com>",
            "description": "Foo does things.\nIt does them well.",
            "homepage": "https://example.com",
            "license": "MIT",
            "vendor": "Example",
            "depends": ["bash"],
            "files": {str(source_tree / "bin" / "foo"): "/usr/bin/foo"},
            "config_files": {str(source_tree / "etc" / "foo.conf"): "/etc/foo.conf"},
            "symlinks": {"/usr/bin/foo": "/usr/local/bin/foo"},
            "empty_folders": ["/var/log/foo"],
        }
        data.update(overrides)
        return Info.model_validate(data)

    return factory


@pytest.fixture
def script_paths(source_tree):
    """通用维护脚本路径"""
    return {
        "preinstall": str(source_tree / "scripts" / "preinstall.sh"),
        "postinstall": str(source_tree / "scripts" / "postinstall.sh"),
        "preremove": str(source_tree / "scripts" / "preremove.sh"),
        "postremove": str(source_tree / "scripts" / "postremove.sh"),
    }
