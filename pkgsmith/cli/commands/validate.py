"""
Validate 命令实现

验证配置文件的命令。
"""

import json
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from ...build.errors import NoPackagerError
from ...config import ConfigError, ConfigLoader, ConfigValidationError
from ...config.loader import DEFAULT_CONFIG_FILE
from . import get_registry


console = Console()


def validate_command(
    config: str = typer.Option(DEFAULT_CONFIG_FILE, "--config", "-c", help="配置文件路径"),
    json_output: bool = typer.Option(False, "--json", help="输出 JSON 格式的错误信息"),
) -> None:
    """验证配置文件

    检查配置文件的语法、字段以及 overrides 中的格式名。

    示例:
        pkgsmith validate -c pkgsmith.yaml
        pkgsmith validate -c pkgsmith.yaml --json
    """
    config_path = Path(config)
    if not json_output:
        console.print(f"正在验证配置文件: [cyan]{config_path}[/cyan]")

    try:
        ConfigLoader(get_registry()).load_from_file(config_path)
    except ConfigValidationError as e:
        if json_output:
            console.print(e.format_errors_json(config_path), markup=False, highlight=False, soft_wrap=True)
        else:
            console.print(f"[red]配置文件验证失败 ({len(e.errors)} 个错误):[/red]")
            console.print()

            table = Table(title="验证错误")
            table.add_column("位置", style="cyan", no_wrap=True)
            table.add_column("错误信息", style="red")
            table.add_column("输入值", style="yellow")

            for err in e.errors:
                location = " -> ".join(str(item) for item in err.get('loc', []))
                message = err.get('msg', '未知错误')
                input_value = str(err.get('input', ''))
                if len(input_value) > 47:
                    input_value = input_value[:47] + "..."
                table.add_row(location or "根级别", message, input_value or "-")

            console.print(table)
        raise typer.Exit(1)
    except (ConfigError, NoPackagerError) as e:
        if json_output:
            error_data = {
                "file": str(config_path),
                "error": str(e),
                "error_type": type(e).__name__,
            }
            console.print(json.dumps(error_data, ensure_ascii=False, indent=2),
                          markup=False, highlight=False, soft_wrap=True)
        else:
            console.print(f"[red]配置错误: {e}[/red]")
        raise typer.Exit(1)

    console.print("[green]✓ 配置文件验证通过[/green]")
