"""
CLI 主入口 - 使用 Click 框架
CLI main entry - using the Click framework.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys

import click

from AdminKernel.config.manager import CONFIG_FILE


def _load_config(config_path: str):
    from AdminKernel.config.defaults import build_default_config
    from AdminKernel.config.manager import ConfigManager

    config_mgr = ConfigManager(defaults=build_default_config(), config_path=config_path)
    asyncio.run(config_mgr.load(persist=False))
    return config_mgr


@click.group()
def cli() -> None:
    """AdminKernel - 管理界面模块编排内核"""


@cli.command()
@click.option("--config", "config_path", default=CONFIG_FILE, help="配置文件路径")
@click.option("--debug", is_flag=True, help="开启调试模式")
def run(config_path: str, debug: bool) -> None:
    """启动内核直到收到关闭信号 / Boot the kernel until signalled."""
    from AdminKernel.kernel.bootstrap import Kernel
    from AdminKernel.kernel.errors import KernelError
    from AdminKernel.utils.logging import setup_logging

    config_mgr = _load_config(config_path)
    if debug:
        config_mgr.set("kernel.debug", True)
        config_mgr.set("logging.level", "DEBUG")

    setup_logging(
        config_mgr.get("logging.level", "INFO"), config_mgr.get("logging.file")
    )
    logger = logging.getLogger("AdminKernel")

    kernel = Kernel(config=config_mgr)

    async def main() -> None:
        await kernel.start()
        await kernel.run_forever()

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("收到键盘中断信号")
    except KernelError as exc:
        logger.error("内核启动失败: %s", exc)
        sys.exit(1)
    except Exception:
        logger.exception("致命错误")
        sys.exit(1)


@cli.command()
@click.option("--config", "config_path", default=CONFIG_FILE, help="配置文件路径")
@click.argument("manifests", nargs=-1, type=click.Path(exists=True, dir_okay=False))
def order(config_path: str, manifests: tuple[str, ...]) -> None:
    """
    打印模块加载顺序（不连接模块） / Print the module load order without connecting.

    未给出清单时使用配置文件中的 modules.manifests。
    """
    from AdminKernel.kernel.errors import KernelError
    from AdminKernel.module.loader import ModuleLoader
    from AdminKernel.module.manifest import ModuleManifest

    paths = list(manifests) or _load_config(config_path).get("modules.manifests") or []
    if not paths:
        click.echo("没有模块清单")
        return

    loader = ModuleLoader()
    try:
        for path in paths:
            manifest = ModuleManifest.from_file(path)
            loader.add(manifest.to_definition())
        resolved = loader.resolve_order()
    except KernelError as exc:
        raise click.ClickException(str(exc)) from exc

    for index, name in enumerate(resolved, start=1):
        click.echo(f"{index}. {name}")


@cli.command()
@click.option("--config", "config_path", default=CONFIG_FILE, help="配置文件路径")
@click.option("--force", is_flag=True, help="覆盖已有配置文件")
def init(config_path: str, force: bool) -> None:
    """初始化配置 / Initialize configuration."""
    from AdminKernel.config.defaults import build_default_config
    from AdminKernel.config.manager import ConfigManager

    if os.path.exists(config_path) and not force:
        click.echo(f"配置文件已存在: {config_path}")
        if not click.confirm("是否覆盖?"):
            return

    config_mgr = ConfigManager(defaults=build_default_config(), config_path=config_path)
    asyncio.run(config_mgr.save())
    click.echo(f"配置文件已创建: {config_path}")


@cli.command()
def version() -> None:
    """显示版本信息 / Show version info."""
    from AdminKernel import __app_name__, __version__

    click.echo(f"{__app_name__} v{__version__}")


def run_cli() -> int:
    """执行 CLI 并返回进程退出码。"""
    try:
        cli.main(standalone_mode=False)
    except click.exceptions.Abort:
        click.echo("已取消", err=True)
        return 1
    except click.ClickException as exc:
        exc.show()
        return exc.exit_code
    return 0


if __name__ == "__main__":
    cli()
