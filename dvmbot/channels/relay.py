"""
中继渠道实现 - 基于 NIP-01 WebSocket 协议的单个中继连接。

本模块实现了与一个 Nostr 中继的收发：
- 入站：连接后发送 ["REQ", <订阅 id>, *filters]，接收 ["EVENT", <订阅 id>, event]
- 出站：发送 ["EVENT", event]，中继以 ["OK", id, accepted, message] 确认

中继消息类型：
- EVENT：订阅命中的事件，转发到事件总线
- EOSE：存量事件推送完毕（之后都是实时事件）
- OK：对我们发布事件的确认或拒绝
- NOTICE：中继的提示信息
- CLOSED：中继关闭了订阅

架构特点：
- 内置断线重连机制（默认 5 秒间隔），重连后重新发送订阅
- 每个中继一个独立的异步任务，互不影响

依赖：
- websockets：Python WebSocket 客户端库
"""

import asyncio
import json
import secrets
from dataclasses import dataclass
from typing import Any

from loguru import logger

from dvmbot.bus.events import Event
from dvmbot.bus.queue import EventBus
from dvmbot.channels.base import BaseChannel, SeenCache


@dataclass
class Filter:
    """
    NIP-01 订阅过滤器。未设置的字段不会出现在序列化结果中。
    """
    ids: list[str] | None = None
    authors: list[str] | None = None
    kinds: list[int] | None = None
    since: int | None = None
    until: int | None = None
    limit: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in vars(self).items() if v is not None}


class RelayChannel(BaseChannel):
    """
    单个中继的连接渠道。

    属性:
        url: 中继的 WebSocket 地址
        filters: 连接建立后发送的订阅过滤器
        reconnect_delay: 断线重连间隔（秒）
        subscription_id: 本连接使用的订阅 id
    """

    def __init__(
        self,
        url: str,
        filters: list[Filter],
        bus: EventBus,
        seen: SeenCache | None = None,
        reconnect_delay: float = 5.0,
        verify: bool = True,
    ):
        super().__init__(bus, seen, verify=verify)
        self.url = url
        self.name = url
        self.filters = filters
        self.reconnect_delay = reconnect_delay
        self.subscription_id = secrets.token_hex(8)
        self._ws = None
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    async def start(self) -> None:
        """
        连接中继并持续监听。

        流程：
        1. 建立 WebSocket 连接
        2. 发送 REQ 订阅
        3. 进入消息监听循环
        4. 连接断开时等待 reconnect_delay 秒后重连
        """
        import websockets

        self._running = True

        while self._running:
            try:
                logger.info(f"Connecting to relay {self.url}...")
                async with websockets.connect(self.url) as ws:
                    self._ws = ws
                    self._connected = True
                    logger.info(f"Connected to relay {self.url}")
                    await self._subscribe()

                    async for message in ws:
                        try:
                            await self._handle_relay_message(message)
                        except Exception as e:
                            logger.error(f"Error handling message from {self.url}: {e}")
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.warning(f"Relay {self.url} connection error: {e}")
            finally:
                self._connected = False
                self._ws = None

            if self._running:
                logger.info(f"Reconnecting to {self.url} in {self.reconnect_delay}s...")
                await asyncio.sleep(self.reconnect_delay)

    async def stop(self) -> None:
        """关闭订阅和 WebSocket 连接。"""
        self._running = False
        ws = self._ws
        self._connected = False
        self._ws = None

        if ws:
            try:
                await ws.send(json.dumps(["CLOSE", self.subscription_id]))
            except Exception as e:
                logger.debug(f"Could not close subscription on {self.url}: {e}")
            await ws.close()

    async def send(self, event: Event) -> bool:
        """
        向中继发布事件。

        返回:
            True 表示已写入连接；未连接或写入失败时返回 False
        """
        if not self._ws or not self._connected:
            logger.debug(f"Relay {self.url} not connected, skipping send")
            return False

        try:
            await self._ws.send(json.dumps(["EVENT", event.to_dict()]))
            return True
        except Exception as e:
            logger.warning(f"Error sending event {event.id[:12]} to {self.url}: {e}")
            return False

    async def _subscribe(self) -> None:
        if not self.filters or not self._ws:
            return
        request = ["REQ", self.subscription_id, *(f.to_dict() for f in self.filters)]
        await self._ws.send(json.dumps(request))
        logger.debug(f"Subscribed on {self.url} with {len(self.filters)} filters")

    async def _handle_relay_message(self, raw: str) -> None:
        """
        处理中继发来的一条消息。

        参数:
            raw: 原始 JSON 字符串
        """
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Invalid JSON from {self.url}: {raw[:100]}")
            return

        if not isinstance(data, list) or not data:
            logger.warning(f"Unexpected message from {self.url}: {raw[:100]}")
            return

        msg_type = data[0]

        if msg_type == "EVENT" and len(data) >= 3:
            if data[1] != self.subscription_id:
                return  # 旧连接遗留的订阅
            try:
                event = Event.from_dict(data[2])
            except ValueError as e:
                logger.warning(f"Malformed event from {self.url}: {e}")
                return
            await self._handle_event(event)

        elif msg_type == "EOSE":
            logger.debug(f"End of stored events on {self.url}")

        elif msg_type == "OK" and len(data) >= 3:
            event_id, accepted = data[1], data[2]
            detail = data[3] if len(data) > 3 else ""
            if accepted:
                logger.debug(f"Relay {self.url} accepted {str(event_id)[:12]}")
            else:
                logger.warning(f"Relay {self.url} rejected {str(event_id)[:12]}: {detail}")

        elif msg_type == "NOTICE":
            logger.info(f"Notice from {self.url}: {data[1] if len(data) > 1 else ''}")

        elif msg_type == "CLOSED":
            reason = data[2] if len(data) > 2 else ""
            logger.warning(f"Relay {self.url} closed subscription: {reason}")
