"""
Package 命令实现

为一个目标格式构建软件包。
"""

import traceback
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from ...config import ConfigError, ConfigValidationError, load_config
from ...config.loader import DEFAULT_CONFIG_FILE
from ...build.errors import PackagingError
from ...utils.logging import OutputLevel, configure_logging, log_exception_to_file
from ...utils.paths import format_size
from . import get_registry


console = Console()


def package_command(
    config: str = typer.Option(DEFAULT_CONFIG_FILE, "--config", "-c", help="配置文件路径"),
    packager: str = typer.Option(..., "--packager", "-p", help="目标格式 (archlinux/arch, deb, apk, rpm)"),
    target: Optional[str] = typer.Option(None, "--target", "-t", help="输出文件或目录，默认当前目录"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="日志输出文件"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出详细调试日志 (DEBUG 级别)"),
) -> None:
    """构建软件包

    从配置文件构建一个格式的软件包。

    示例:
        pkgsmith package -c pkgsmith.yaml -p deb
        pkgsmith package -p archlinux -t dist/
    """
    from ...build.builder import Builder

    # 初始化日志：在任何输出前设置
    level = OutputLevel.DEBUG if verbose else OutputLevel.INFO
    try:
        configure_logging(level, log_file)
    except OSError:
        console.print(f"[yellow]无法写入日志文件: {log_file}[/yellow]")
        log_file = None

    registry = get_registry()
    config_path = Path(config)

    try:
        console.print(f"[cyan]正在加载配置文件[/cyan]: {config_path}")
        config_obj = load_config(config_path, registry)
    except ConfigValidationError as e:
        console.print("[red]配置验证失败:[/red]")
        console.print(e.format_errors())
        raise typer.Exit(1)
    except (ConfigError, PackagingError) as e:
        console.print(f"[red]配置错误[/red]: {e}")
        raise typer.Exit(1)

    def progress_callback(stage: str, current: int, total: int, message: str = "") -> None:
        if total > 0:
            console.print(f"[blue]{stage}[/blue]: {message} ({current * 100 // total}%)")

    builder = Builder(registry)
    result = builder.build(
        config_obj,
        packager,
        Path(target) if target else None,
        progress_callback=progress_callback,
    )

    if not result.success:
        console.print(f"[red]✗ 构建失败[/red]: {result.error}")
        if log_file and result.exception is not None:
            log_exception_to_file("".join(traceback.format_exception(
                type(result.exception), result.exception, result.exception.__traceback__)))
            console.print(f"[yellow]请检查日志文件 {log_file} 获取详细信息。[/yellow]")
        raise typer.Exit(1)

    console.print(f"[green]✓ 软件包构建完成[/green]: {result.output_path}")
    if result.output_size is not None:
        console.print(f"[blue]文件大小[/blue]: {format_size(result.output_size)}")
