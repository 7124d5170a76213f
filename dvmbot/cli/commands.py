"""
CLI 命令模块 - dvmbot 的所有命令行命令定义。

本模块使用 Typer 框架定义 dvmbot 的 CLI 命令体系：
- onboard：初始化配置文件并生成签名身份
- run：启动 Agent（连接中继 + 分发器 + 一次性服务公告）
- status：查看配置与身份状态
- whoami：打印本 Agent 的 npub

技术栈：
- Typer：CLI 框架（基于 Click，支持类型注解自动生成帮助文档）
- Rich：终端美化输出（表格、彩色文本）
- loguru：运行日志，--verbose 时输出 DEBUG 级别

二开提示：
- run 命令是最完整的启动入口，包含了所有服务的编排逻辑
"""

import asyncio
import sys
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from dvmbot import __logo__, __version__

app = typer.Typer(
    name="dvmbot",
    help=f"{__logo__} dvmbot - Nostr content discovery DVM",
    no_args_is_help=True,
)

console = Console()


def _config_option():
    return typer.Option(None, "--config", "-c", help="Path to config.json")


def _load_config_or_exit(config_path: Path):
    """加载配置；文件存在但无法解析时报错退出，绝不覆盖原文件。"""
    from dvmbot.config.loader import load_config
    from dvmbot.errors import ConfigLoadError

    try:
        return load_config(config_path)
    except ConfigLoadError as e:
        console.print(f"[red]{e}[/red]")
        console.print("Fix the file or move it aside, then retry.")
        raise typer.Exit(1)


def _setup_logging(verbose: bool) -> None:
    """配置 loguru 输出级别。"""
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")


def version_callback(value: bool):
    """版本号回调：当用户传入 --version 参数时，打印版本号并退出。"""
    if value:
        console.print(f"{__logo__} dvmbot v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", callback=version_callback, is_eager=True
    ),
):
    """dvmbot CLI 根命令回调。"""
    pass


# ============================================================================
# Onboard / Setup
# ============================================================================


@app.command()
def onboard(config: Optional[Path] = _config_option()):
    """
    初始化 dvmbot 配置。

    执行流程：
    1. 创建默认配置文件 config.json
    2. 生成签名私钥和公告 d 标签
    3. 打印后续操作指引
    """
    from dvmbot.config.loader import ensure_identity, get_config_path
    from dvmbot.config.schema import Config
    from dvmbot.identity.keys import Keys

    config_path = config or get_config_path()

    if config_path.exists():
        console.print(f"[yellow]Config already exists at {config_path}[/yellow]")
        if not typer.confirm("Overwrite?"):
            raise typer.Exit()
        config_path.unlink()

    cfg = Config()
    ensure_identity(cfg, config_path)
    console.print(f"[green]✓[/green] Created config at {config_path}")
    console.print(f"[green]✓[/green] Identity: {Keys.parse(cfg.package.nsec).npub}")

    console.print(f"\n{__logo__} dvmbot is ready!")
    console.print("\nNext steps:")
    console.print(f"  1. Add the npubs to follow under [cyan]comms.npubs[/cyan] in {config_path}")
    console.print("  2. Start: [cyan]dvmbot run[/cyan]")


# ============================================================================
# Run
# ============================================================================


@app.command("run")
def run_agent(
    config: Optional[Path] = _config_option(),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    启动 dvmbot（核心启动命令）。

    编排流程：
    1. 加载配置，首次运行时生成身份
    2. 创建事件总线、中继池、历史缓冲区、应答器和分发器
    3. 并行运行分发器和所有中继连接
    4. 至少一个中继连上后，若尚未公告则发送一次服务公告
    """
    from dvmbot.agent.announce import announce_once
    from dvmbot.agent.commands import CommandHandler
    from dvmbot.agent.history import HistoryBuffer
    from dvmbot.agent.loop import Dispatcher
    from dvmbot.agent.responder import RequestResponder
    from dvmbot.bus.queue import EventBus
    from dvmbot.channels.manager import RelayPool
    from dvmbot.config.loader import ensure_identity, get_config_path
    from dvmbot.errors import TransportError
    from dvmbot.identity.keys import Keys

    _setup_logging(verbose)

    config_path = config or get_config_path()
    cfg = _load_config_or_exit(config_path)
    ensure_identity(cfg, config_path)
    keys = Keys.parse(cfg.package.nsec)

    bus = EventBus(cfg.agent.queue_size)
    pool = RelayPool(cfg, bus)
    history = HistoryBuffer(cfg.agent.history_capacity)
    responder = RequestResponder(keys, pool.send_event, relays=cfg.comms.relays)
    dispatcher = Dispatcher(bus, history, responder, CommandHandler(), admins=pool.admins)

    console.print(f"{__logo__} Starting dvmbot {cfg.package.name!r}")
    console.print(f"[green]✓[/green] Relays: {', '.join(pool.channels) or 'none'}")
    console.print(f"[green]✓[/green] Following {len(pool.peers)} authors, history capacity {history.capacity}")
    console.print(f"Find me at: [cyan]{keys.npub}[/cyan]")

    async def announce_when_ready():
        """等待中继连上后发送一次服务公告。"""
        if cfg.package.announced:
            return
        if not await pool.wait_until_connected():
            logger.warning("No relay connected, announcement postponed to next start")
            return
        try:
            await announce_once(cfg, keys, pool.send_event, config_path)
        except TransportError as e:
            logger.warning(f"Announcement failed: {e}")

    async def run():
        try:
            await asyncio.gather(
                dispatcher.run(),
                pool.start_all(),
                announce_when_ready(),
            )
        finally:
            dispatcher.stop()
            await pool.stop_all()
            stats = {outcome.value: count for outcome, count in dispatcher.stats.items()}
            logger.info(f"Dispatcher stats: {stats}, dropped from queue: {bus.dropped}")

    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        console.print("\nShutting down...")


# ============================================================================
# Status
# ============================================================================


@app.command()
def status(config: Optional[Path] = _config_option()):
    """
    显示 dvmbot 配置状态。

    展示内容：
    - 配置文件路径和状态
    - 身份（npub）与公告状态
    - 中继、关注作者、管理员
    """
    from dvmbot.config.loader import get_config_path
    from dvmbot.identity.keys import Keys

    config_path = config or get_config_path()
    cfg = _load_config_or_exit(config_path)

    console.print(f"{__logo__} dvmbot Status\n")
    console.print(f"Config: {config_path} {'[green]✓[/green]' if config_path.exists() else '[red]✗[/red]'}")

    if cfg.package.nsec:
        console.print(f"Identity: {Keys.parse(cfg.package.nsec).npub}")
    else:
        console.print("Identity: [dim]not generated[/dim]")
    console.print(f"Announced: {'[green]✓[/green]' if cfg.package.announced else '[dim]no[/dim]'}")
    console.print(f"History capacity: {cfg.agent.history_capacity}")

    table = Table(title="Comms")
    table.add_column("Type", style="cyan")
    table.add_column("Value")
    for url in cfg.comms.relays:
        table.add_row("relay", url)
    for npub in cfg.comms.npubs:
        table.add_row("peer", npub)
    for admin in cfg.comms.admins:
        table.add_row("admin", admin)
    console.print(table)


@app.command()
def whoami(config: Optional[Path] = _config_option()):
    """打印本 Agent 的 npub（尚未生成身份时提示先运行 onboard）。"""
    from dvmbot.config.loader import get_config_path
    from dvmbot.identity.keys import Keys

    cfg = _load_config_or_exit(config or get_config_path())
    if not cfg.package.nsec:
        console.print("[red]No identity yet. Run: dvmbot onboard[/red]")
        raise typer.Exit(1)
    console.print(Keys.parse(cfg.package.nsec).npub)


if __name__ == "__main__":
    app()
