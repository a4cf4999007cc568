"""
pkgsmith CLI 主入口

提供命令行接口，支持 package/init/validate/formats 等命令。
"""

from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from .. import __version__
from .commands import get_registry, init, package, validate


# 创建主应用
app = typer.Typer(
    name="pkgsmith",
    help="pkgsmith - 从一份 YAML 描述构建 Arch Linux / deb / apk / rpm 软件包",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# 控制台输出
console = Console()


def version_callback(value: bool) -> None:
    """显示版本信息"""
    if value:
        console.print(f"pkgsmith v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="显示版本信息"
    ),
) -> None:
    """pkgsmith - Linux 软件包构建工具

    使用 --help 查看可用命令的详细信息。
    """
    pass


# 注册子命令
app.command("package", help="构建软件包")(package.package_command)
app.command("init", help="生成示例配置文件")(init.init_command)
app.command("validate", help="验证配置文件")(validate.validate_command)


@app.command("formats")
def formats_command() -> None:
    """列出已注册的软件包格式"""
    table = Table(title="支持的软件包格式")
    table.add_column("格式", style="cyan")
    table.add_column("别名", style="magenta")
    table.add_column("扩展名", style="green")

    for name, packager in get_registry().items():
        table.add_row(name, ", ".join(packager.aliases) or "-", packager.extension)

    console.print(table)


if __name__ == "__main__":
    app()
