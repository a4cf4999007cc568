"""
配置 Schema 定义

使用 Pydantic 定义软件包描述信息（Info）以及可按格式覆盖的字段（Overridables）。
YAML 配置文件的顶层即为 Info 字段加上 overrides 映射。
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator


class ContentType(str, Enum):
    """内容条目类型枚举"""
    FILE = "file"
    CONFIG = "config"
    CONFIG_NOREPLACE = "config|noreplace"
    DIR = "dir"
    SYMLINK = "symlink"


class _StrictModel(BaseModel):
    """禁止未知字段的基类，对应原始工具的严格 YAML 解码"""

    model_config = {
        "extra": "forbid",
        "str_strip_whitespace": True,
    }


class Scripts(_StrictModel):
    """通用维护脚本（文件路径）"""
    preinstall: Optional[str] = Field(None, description="安装前脚本")
    postinstall: Optional[str] = Field(None, description="安装后脚本")
    preremove: Optional[str] = Field(None, description="卸载前脚本")
    postremove: Optional[str] = Field(None, description="卸载后脚本")


class RPMConfig(_StrictModel):
    """仅 RPM 可用的配置"""
    arch: Optional[str] = Field(None, description="覆盖架构名称")
    group: Optional[str] = Field(None, description="RPM Group")
    summary: Optional[str] = Field(None, description="RPM Summary，默认取描述第一行")
    compression: Optional[str] = Field(None, description="载荷压缩算法，如 gzip、xz、zstd:19")
    config_noreplace_files: Dict[str, str] = Field(
        default_factory=dict,
        description="升级时不覆盖的配置文件（源 -> 目标）",
    )


class DebTriggers(_StrictModel):
    """deb 触发器声明"""
    interest: List[str] = Field(default_factory=list)
    interest_await: List[str] = Field(default_factory=list)
    interest_noawait: List[str] = Field(default_factory=list)
    activate: List[str] = Field(default_factory=list)
    activate_await: List[str] = Field(default_factory=list)
    activate_noawait: List[str] = Field(default_factory=list)


class DebScripts(_StrictModel):
    """仅 deb 可用的脚本"""
    rules: Optional[str] = Field(None, description="debian/rules 文件路径")


class DebConfig(_StrictModel):
    """仅 deb 可用的配置"""
    arch: Optional[str] = Field(None, description="覆盖架构名称")
    scripts: DebScripts = Field(default_factory=DebScripts)
    triggers: DebTriggers = Field(default_factory=DebTriggers)
    metadata: Optional[str] = Field(None, description="版本元数据（+ 后缀）")
    breaks: List[str] = Field(default_factory=list)


class ArchLinuxScripts(_StrictModel):
    """仅 Arch Linux 可用的脚本"""
    preupgrade: Optional[str] = None
    postupgrade: Optional[str] = None


class ArchLinuxConfig(_StrictModel):
    """仅 Arch Linux 可用的配置"""
    arch: Optional[str] = Field(None, description="覆盖架构名称")
    pkgbase: Optional[str] = Field(None, description="pkgbase，默认等于包名")
    packager: Optional[str] = Field(None, description="打包者，默认 Unknown Packager")
    scripts: ArchLinuxScripts = Field(default_factory=ArchLinuxScripts)


class APKScripts(_StrictModel):
    """仅 APK 可用的脚本"""
    preupgrade: Optional[str] = None
    postupgrade: Optional[str] = None


class APKConfig(_StrictModel):
    """仅 APK 可用的配置"""
    arch: Optional[str] = Field(None, description="覆盖架构名称")
    scripts: APKScripts = Field(default_factory=APKScripts)


class ContentFileInfo(_StrictModel):
    """内容条目的属主与权限"""
    mode: Optional[int] = Field(None, description="权限位（八进制写法如 0o644 或 420）", ge=0, le=0o7777)
    owner: str = Field("root", description="属主")
    group: str = Field("root", description="属组")
    mtime: Optional[int] = Field(None, description="修改时间（unix 秒）", ge=0)

    @field_validator('mode', mode='before')
    @classmethod
    def parse_mode(cls, v: Any) -> Any:
        """支持 "0644" 形式的八进制字符串"""
        if isinstance(v, str):
            text = v.strip().lower()
            return int(text[2:] if text.startswith("0o") else text, 8)
        return v


class ContentModel(_StrictModel):
    """显式声明的内容条目"""
    src: Optional[str] = Field(None, description="源路径或 glob；符号链接时为链接目标")
    dst: str = Field(..., description="包内目标路径", min_length=1)
    type: ContentType = Field(ContentType.FILE, description="条目类型")
    file_info: ContentFileInfo = Field(default_factory=ContentFileInfo)


class Overridables(_StrictModel):
    """可以按目标格式覆盖的字段"""
    replaces: List[str] = Field(default_factory=list)
    provides: List[str] = Field(default_factory=list)
    depends: List[str] = Field(default_factory=list)
    recommends: List[str] = Field(default_factory=list)
    suggests: List[str] = Field(default_factory=list)
    conflicts: List[str] = Field(default_factory=list)
    files: Dict[str, str] = Field(default_factory=dict, description="源（glob）-> 目标")
    config_files: Dict[str, str] = Field(default_factory=dict, description="配置文件 源（glob）-> 目标")
    symlinks: Dict[str, str] = Field(default_factory=dict, description="链接目标 -> 链接路径")
    empty_folders: List[str] = Field(default_factory=list)
    contents: List[ContentModel] = Field(default_factory=list)
    scripts: Scripts = Field(default_factory=Scripts)
    rpm: RPMConfig = Field(default_factory=RPMConfig)
    deb: DebConfig = Field(default_factory=DebConfig)
    archlinux: ArchLinuxConfig = Field(default_factory=ArchLinuxConfig)
    apk: APKConfig = Field(default_factory=APKConfig)


class Info(Overridables):
    """单个软件包的描述信息

    从合并后的配置构造，默认值只应用一次，之后作为单次构建的只读输入。
    """
    name: str = Field("", description="包名")
    arch: str = Field("", description="架构（GOARCH 风格，如 amd64、arm64）")
    platform: str = Field("linux", description="平台")
    epoch: str = Field("", description="epoch")
    version: str = Field("", description="版本号")
    release: str = Field("", description="发布号")
    prerelease: str = Field("", description="预发布标记")
    section: str = Field("", description="deb section")
    priority: str = Field("", description="deb priority")
    maintainer: str = Field("", description="维护者")
    description: str = Field("no description given", description="描述")
    vendor: str = Field("", description="供应商")
    homepage: str = Field("", description="主页")
    license: str = Field("", description="许可证")
    changelog: str = Field("", description="changelog 文件路径")
    mtime: Optional[int] = Field(None, description="生成条目使用的修改时间（unix 秒）", ge=0)

    @field_validator('epoch', 'version', 'release', 'prerelease', mode='before')
    @classmethod
    def coerce_to_str(cls, v: Any) -> Any:
        """YAML 中的 epoch: 2 / release: 1 会被解析为整数"""
        if v is None:
            return ""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


class PackageConfig(Info):
    """顶层配置：Info 字段加上按格式的覆盖块"""
    overrides: Dict[str, Overridables] = Field(default_factory=dict, description="格式名 -> 覆盖字段")

    def get(self, format_name: str) -> Info:
        """返回指定格式合并覆盖后的 Info"""
        from .merge import resolve_info
        return resolve_info(self, self.overrides.get(format_name))

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典格式（用于保存 YAML）"""
        return self.model_dump(mode="json", exclude_defaults=True)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PackageConfig':
        """从字典创建配置实例"""
        return cls.model_validate(data)
