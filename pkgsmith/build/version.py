"""
版本号规范化

把语义化版本形式的输入拆分为 version / release / prerelease，并按各打包格式的语法渲染版本字符串。
"""

import re
from dataclasses import dataclass
from typing import Optional

# 严格的语义化版本：MAJOR.MINOR.PATCH[-PRERELEASE][+BUILD]
_SEMVER_PATTERN = re.compile(
    r'^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)'
    r'(?:-((?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?'
    r'(?:\+([0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$'
)

_INT_PATTERN = re.compile(r'^[+-]?\d+$')


@dataclass(frozen=True)
class SemVer:
    """解析后的语义化版本"""
    major: int
    minor: int
    patch: int
    prerelease: str = ""
    metadata: str = ""

    @property
    def core(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"


def parse_semver(version: str) -> Optional[SemVer]:
    """严格解析语义化版本，失败返回 None"""
    match = _SEMVER_PATTERN.match(version or "")
    if not match:
        return None
    major, minor, patch, prerelease, metadata = match.groups()
    return SemVer(int(major), int(minor), int(patch), prerelease or "", metadata or "")


def is_int(value: str) -> bool:
    """判断字符串是否为纯数字（允许正负号）"""
    return bool(_INT_PATTERN.match(value or ""))


@dataclass(frozen=True)
class VersionParts:
    """拆分后的版本字段"""
    version: str
    release: str = ""
    prerelease: str = ""
    metadata: str = ""


def normalize_version(version: str, release: str = "", prerelease: str = "") -> VersionParts:
    """规范化版本号

    解析成功时 version 被改写为 MAJOR.MINOR.PATCH；输入中的预发布标记为纯数字时
    作为 release（未显式给出 release 时），否则作为 prerelease（未显式给出时）。
    解析失败时原样保留，不推断 release / prerelease。

    Args:
        version: 原始版本号
        release: 显式给出的 release
        prerelease: 显式给出的 prerelease

    Returns:
        VersionParts: 规范化结果
    """
    parsed = parse_semver(version)
    if parsed is None:
        return VersionParts(version=version, release=release, prerelease=prerelease)

    if not release and is_int(parsed.prerelease):
        release = parsed.prerelease
    if not prerelease and not is_int(parsed.prerelease):
        prerelease = parsed.prerelease

    return VersionParts(
        version=parsed.core,
        release=release,
        prerelease=prerelease,
        metadata=parsed.metadata,
    )


def split_version_release(version: str, release: str = "") -> tuple[str, str]:
    """RPM：release 未单独给出时，按第一个连字符拆分合并的 version-release"""
    if release:
        return version, release
    parts = version.split("-", 1)
    if len(parts) == 2:
        return parts[0], parts[1]
    return version, ""


def arch_pkgrel(release: str) -> int:
    """Arch pkgrel：release 不是整数时取 1"""
    try:
        return int(release)
    except (TypeError, ValueError):
        return 1


def arch_prerelease(prerelease: str) -> str:
    """pkgver 中不允许出现连字符"""
    return (prerelease or "").replace("-", "_")


def render_arch_version(version: str, epoch: str = "", release: str = "", prerelease: str = "") -> str:
    """渲染 .PKGINFO 中的 pkgver

    示例：version=0.0.1 epoch=2 prerelease=beta-1 -> 2:0.0.1beta_1-1
    """
    pkgrel = arch_pkgrel(release)
    if epoch:
        return f"{epoch}:{version}{arch_prerelease(prerelease)}-{pkgrel}"
    return f"{version}-{pkgrel}"


def render_apk_version(version: str, epoch: str = "", release: str = "", prerelease: str = "") -> str:
    """渲染 APK pkgver：[epoch:]version[prerelease]-r<release>"""
    pkgver = f"{version}{arch_prerelease(prerelease)}-r{release or '1'}"
    if epoch:
        return f"{epoch}:{pkgver}"
    return pkgver


def render_deb_version(
    version: str,
    epoch: str = "",
    release: str = "",
    prerelease: str = "",
    metadata: str = "",
) -> str:
    """渲染 deb Version：[epoch:]version[~prerelease][+metadata][-release]"""
    result = f"{epoch}:{version}" if epoch else version
    if prerelease:
        result += f"~{prerelease}"
    if metadata:
        result += f"+{metadata}"
    if release:
        result += f"-{release}"
    return result


def render_rpm_version(version: str, prerelease: str = "") -> str:
    """RPM Version 标签：预发布以 ~ 连接，排序时低于正式版"""
    if prerelease:
        return f"{version}~{arch_prerelease(prerelease)}"
    return version


def render_rpm_evr(version: str, epoch: str = "", release: str = "") -> str:
    """RPM 完整版本：[epoch:]version-release"""
    evr = f"{version}-{release}" if release else version
    if epoch:
        return f"{epoch}:{evr}"
    return evr
