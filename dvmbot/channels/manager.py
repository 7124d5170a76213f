"""
中继池模块 - 统一管理所有中继连接的生命周期和事件广播。

本模块是 dvmbot 传输层的"大管家"，负责：
1. 根据配置为每个中继地址创建 RelayChannel
2. 生成订阅过滤器（关注作者的笔记、自启动以来的服务请求、可选的管理员私信）
3. 统一启动/停止所有中继
4. 把出站事件广播到所有已连接的中继

所有中继共享一个 SeenCache，同一事件无论来自几个中继，都只进入总线一次。

【Java 开发者类比】
- RelayPool 相当于一个连接池（类似 HikariCP）+ 广播器
- build_filters() 类似于构建一组 JPA Criteria 查询条件
"""

from __future__ import annotations

import asyncio
import time
from typing import Any, Iterable

from loguru import logger

from dvmbot.bus.events import (
    ENCRYPTED_DIRECT_MESSAGE,
    JOB_REQUEST,
    PRIVATE_DIRECT_MESSAGE,
    TEXT_NOTE,
    Event,
)
from dvmbot.bus.queue import EventBus
from dvmbot.channels.base import SeenCache
from dvmbot.channels.relay import Filter, RelayChannel
from dvmbot.config.schema import Config
from dvmbot.errors import TransportError
from dvmbot.identity.keys import parse_public_key


def parse_public_keys(values: Iterable[str], label: str) -> list[str]:
    """解析公钥列表，无法解析的条目记录警告后跳过。"""
    keys = []
    for value in values:
        try:
            keys.append(parse_public_key(value))
        except ValueError as e:
            logger.warning(f"Ignoring invalid {label} entry {value!r}: {e}")
    return keys


def build_filters(
    peers: list[str],
    admins: list[str],
    since: int,
    history_limit: int,
    include_admin_dms: bool = False,
) -> list[Filter]:
    """
    生成订阅过滤器。

    参数:
        peers: 关注作者的公钥（十六进制）；为空时不订阅笔记
        admins: 管理员公钥（十六进制）
        since: 服务请求的起始时间（进程启动时刻）
        history_limit: 笔记订阅的条数上限（与缓冲区容量一致）
        include_admin_dms: 是否订阅管理员私信

    返回:
        过滤器列表
    """
    filters = []
    if peers:
        filters.append(Filter(authors=list(peers), kinds=[TEXT_NOTE], limit=history_limit))
    filters.append(Filter(kinds=[JOB_REQUEST], since=since))
    if include_admin_dms and admins:
        filters.append(Filter(
            authors=list(admins),
            kinds=[PRIVATE_DIRECT_MESSAGE, ENCRYPTED_DIRECT_MESSAGE],
            since=since,
        ))
    return filters


class RelayPool:
    """
    中继池 - 管理所有中继连接。

    属性:
        config: 全局配置对象
        bus: 事件总线实例
        peers: 关注作者公钥（十六进制）
        admins: 管理员公钥（十六进制）
        channels: 中继渠道字典 {中继地址: 渠道实例}
    """

    def __init__(self, config: Config, bus: EventBus, since: int | None = None):
        self.config = config
        self.bus = bus
        self.since = int(time.time()) if since is None else since
        self.seen = SeenCache(config.agent.seen_cache_size)
        self.peers = parse_public_keys(config.comms.npubs, "peer")
        self.admins = parse_public_keys(config.comms.admins, "admin")
        self.filters = build_filters(
            self.peers,
            self.admins,
            since=self.since,
            history_limit=config.agent.history_capacity,
            include_admin_dms=config.agent.subscribe_admin_dms,
        )
        self.channels: dict[str, RelayChannel] = {}
        self._tasks: list[asyncio.Task] = []

        self._init_channels()

    def _init_channels(self) -> None:
        for url in self.config.comms.relays:
            if url in self.channels:
                continue
            self.channels[url] = RelayChannel(
                url,
                self.filters,
                self.bus,
                seen=self.seen,
                reconnect_delay=self.config.agent.reconnect_delay,
            )
        logger.info(f"Relay pool configured with {len(self.channels)} relays")

    async def _start_channel(self, url: str, channel: RelayChannel) -> None:
        try:
            await channel.start()
        except Exception as e:
            logger.error(f"Relay {url} stopped with error: {e}")

    async def start_all(self) -> None:
        """
        并行启动所有中继渠道，并等待它们运行结束（通常直到被取消）。
        """
        if not self.channels:
            logger.warning("No relays configured")
            return

        self._tasks = [
            asyncio.create_task(self._start_channel(url, channel))
            for url, channel in self.channels.items()
        ]
        await asyncio.gather(*self._tasks, return_exceptions=True)

    async def stop_all(self) -> None:
        """停止所有中继渠道并取消其任务。"""
        logger.info("Stopping all relays...")
        for url, channel in self.channels.items():
            try:
                await channel.stop()
            except Exception as e:
                logger.error(f"Error stopping relay {url}: {e}")
        for task in self._tasks:
            task.cancel()
        self._tasks = []

    async def wait_until_connected(self, timeout: float = 10.0) -> bool:
        """等待至少一个中继连上。返回 False 表示超时。"""
        deadline = time.monotonic() + timeout
        while not self.connected_relays:
            if time.monotonic() >= deadline:
                return False
            await asyncio.sleep(0.1)
        return True

    async def send_event(self, event: Event) -> None:
        """
        把事件广播到所有已连接的中继。

        异常:
            TransportError: 没有任何中继接收该事件
        """
        results = await asyncio.gather(
            *(channel.send(event) for channel in self.channels.values())
        )
        accepted = sum(1 for ok in results if ok)
        if not accepted:
            raise TransportError(f"No relay accepted event {event.id[:12]}")
        logger.debug(f"Broadcast {event.id[:12]} to {accepted}/{len(self.channels)} relays")

    @property
    def connected_relays(self) -> list[str]:
        return [url for url, channel in self.channels.items() if channel.connected]

    def get_status(self) -> dict[str, Any]:
        """
        获取所有中继的运行状态。

        返回:
            {中继地址: {"running": bool, "connected": bool}}
        """
        return {
            url: {"running": channel.is_running, "connected": channel.connected}
            for url, channel in self.channels.items()
        }
