"""
维护脚本与触发器

脚本以文件路径引用，构建时整体读入；路径为空表示该钩子没有脚本。
"""

from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..config.schema import DebTriggers, Info
from ..utils.logging import LogStage, debug
from .errors import SourceFileError

# 通用钩子名
PREINSTALL = "preinstall"
POSTINSTALL = "postinstall"
PREUPGRADE = "preupgrade"
POSTUPGRADE = "postupgrade"
PREREMOVE = "preremove"
POSTREMOVE = "postremove"

# .INSTALL 中的函数顺序
ARCH_INSTALL_FUNCTIONS: Tuple[Tuple[str, str], ...] = (
    (PREINSTALL, "pre_install"),
    (POSTINSTALL, "post_install"),
    (PREUPGRADE, "pre_upgrade"),
    (POSTUPGRADE, "post_upgrade"),
    (PREREMOVE, "pre_remove"),
    (POSTREMOVE, "post_remove"),
)

DEB_TRIGGER_DIRECTIVES: Tuple[Tuple[str, str], ...] = (
    ("interest", "interest"),
    ("interest_await", "interest-await"),
    ("interest_noawait", "interest-noawait"),
    ("activate", "activate"),
    ("activate_await", "activate-await"),
    ("activate_noawait", "activate-noawait"),
)


def read_script(path: Optional[str]) -> Optional[str]:
    """读取脚本文件

    Args:
        path: 脚本路径，空值表示没有脚本

    Returns:
        Optional[str]: 脚本内容；没有脚本时返回 None

    Raises:
        SourceFileError: 文件缺失或不可读
    """
    if not path:
        return None
    try:
        content = Path(path).read_text(encoding="utf-8")
    except OSError as e:
        raise SourceFileError(path, e.strerror or str(e)) from e
    except UnicodeDecodeError as e:
        raise SourceFileError(path, f"不是 UTF-8 文本: {e}") from e
    debug(f"读取脚本 {path}", LogStage.SCRIPT)
    return content


def collect_scripts(info: Info, upgrade_source: Optional[str] = None) -> Dict[str, str]:
    """读取通用钩子脚本，可选附加某个格式的升级钩子

    Args:
        info: 已合并的描述信息
        upgrade_source: "archlinux" 或 "apk"，读取对应扩展块中的 preupgrade / postupgrade

    Returns:
        Dict[str, str]: 钩子名 -> 脚本内容，只包含已声明的钩子
    """
    paths = {
        PREINSTALL: info.scripts.preinstall,
        POSTINSTALL: info.scripts.postinstall,
        PREREMOVE: info.scripts.preremove,
        POSTREMOVE: info.scripts.postremove,
    }
    if upgrade_source == "archlinux":
        paths[PREUPGRADE] = info.archlinux.scripts.preupgrade
        paths[POSTUPGRADE] = info.archlinux.scripts.postupgrade
    elif upgrade_source == "apk":
        paths[PREUPGRADE] = info.apk.scripts.preupgrade
        paths[POSTUPGRADE] = info.apk.scripts.postupgrade

    scripts = {}
    for hook, path in paths.items():
        content = read_script(path)
        if content is not None:
            scripts[hook] = content
    return scripts


def render_arch_install(scripts: Dict[str, str]) -> str:
    """渲染 Arch .INSTALL：每个钩子一个 shell 函数，没有脚本时返回空字符串"""
    parts: List[str] = []
    for hook, function in ARCH_INSTALL_FUNCTIONS:
        if hook in scripts:
            parts.append(f"function {function}() {{\n{scripts[hook]}\n}}\n\n")
    return "".join(parts)


def render_deb_triggers(triggers: DebTriggers) -> str:
    """渲染 deb triggers 文件：每个触发器一行 "指令 名称" """
    lines: List[str] = []
    for field, directive in DEB_TRIGGER_DIRECTIVES:
        for name in getattr(triggers, field):
            lines.append(f"{directive} {name}\n")
    return "".join(lines)
