"""
Init 命令实现

生成带注释的示例配置文件。
"""

from pathlib import Path

import typer
from rich.console import Console

from ...config.loader import DEFAULT_CONFIG_FILE


console = Console()


EXAMPLE_CONFIG = """\
# pkgsmith 示例配置
# 所有相对路径都相对于本文件所在目录解析

name: "foo"
# GOARCH 风格的架构名，会按格式转换 (amd64 -> x86_64 / amd64 / x86_64)
arch: "amd64"
platform: "linux"
# version/release/epoch/prerelease 支持 $VAR 环境变量展开，如 "${MY_APP_VERSION}"
version: "1.0.0"
section: "default"
priority: "extra"
maintainer: "Foo Bar <foo@example.com>"
description: |
  Foo is a sample package.
  It does nothing useful.
vendor: "Example"
homepage: "https://example.com"
license: "MIT"

replaces:
  - foobar
provides:
  - bar
depends:
  - bash
recommends:
  - curl
suggests:
  - wget
conflicts:
  - baz

# 源（可以是 glob） -> 包内路径
files:
  ./bin/foo: "/usr/local/bin/foo"
config_files:
  ./etc/foo.conf: "/etc/foo.conf"
# 链接目标 -> 链接路径
symlinks:
  /usr/local/bin/foo: "/usr/bin/foo"
empty_folders:
  - /var/log/foo

# 显式条目；mode 请写成带引号的八进制字符串
contents:
  - src: ./share/foo
    dst: /usr/share/foo
    file_info:
      mode: "0644"

scripts:
  preinstall: ./scripts/preinstall.sh
  postinstall: ./scripts/postinstall.sh
  preremove: ./scripts/preremove.sh
  postremove: ./scripts/postremove.sh

rpm:
  group: "Unspecified"
  compression: "gzip"
  config_noreplace_files:
    ./etc/foo-local.conf: "/etc/foo-local.conf"

deb:
  triggers:
    interest:
      - some-trigger

archlinux:
  packager: "Foo Bar <foo@example.com>"

# 按格式覆盖字段
overrides:
  rpm:
    depends:
      - bash >= 4.0
  deb:
    depends:
      - bash (>= 4.0)
"""


def init_command(
    config: str = typer.Option(DEFAULT_CONFIG_FILE, "--config", "-c", help="输出配置文件路径"),
    force: bool = typer.Option(False, "--force", "-f", help="强制覆盖已存在的文件"),
) -> None:
    """生成示例配置文件

    示例:
        pkgsmith init
        pkgsmith init -c foo.yaml
    """
    config_path = Path(config)

    if config_path.exists() and not force:
        console.print(f"[red]配置文件已存在: {config_path}[/red]")
        console.print("使用 --force 参数强制覆盖")
        raise typer.Exit(1)

    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)
        config_path.write_text(EXAMPLE_CONFIG, encoding='utf-8')
    except OSError as e:
        console.print(f"[red]生成示例配置失败: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"✓ 示例配置文件已生成: [green]{config_path}[/green]")
    console.print("请根据需要修改配置文件，然后运行:")
    console.print(f"  [cyan]pkgsmith package -c {config_path} -p deb[/cyan]")
