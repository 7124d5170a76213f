"""
渠道基类模块 - 定义所有中继连接的统一接口。

本模块提供了 BaseChannel 抽象基类，具体传输实现（如 RelayChannel）
必须继承此基类并实现其抽象方法。

【核心抽象方法】
- start(): 启动渠道，开始监听事件（长期运行的异步任务）
- stop(): 停止渠道，释放资源
- send(): 向渠道发送出站事件

【公共能力】
- _handle_event(): 事件预处理与转发（跨中继去重 → 签名校验 → 发布到总线）

【Java 开发者类比】
- BaseChannel 相当于 Java 的 abstract class + interface
- _handle_event() 相当于 Template Method 模式中的模板方法
"""

from abc import ABC, abstractmethod
from collections import OrderedDict

from loguru import logger

from dvmbot.bus.events import JOB_REQUEST, Event
from dvmbot.bus.queue import EventBus


class SeenCache:
    """
    有序去重缓存 - 记录最近见过的事件 id。

    同一个事件通常会被多个中继各推送一次，所有渠道共享同一个缓存，
    保证每个事件只进入总线一次。超过容量时丢弃最早记录的 id。

    服务请求的 id 以 pin=True 记录，永不淘汰：中继重连后会按 since
    重新推送全部存量请求，每个请求必须只应答一次。
    """

    def __init__(self, capacity: int = 4096):
        self.capacity = capacity
        self._ids: OrderedDict[str, None] = OrderedDict()
        self._pinned: set[str] = set()

    def add(self, event_id: str, pin: bool = False) -> bool:
        """记录 id。返回 True 表示首次见到。"""
        if event_id in self:
            return False
        if pin:
            self._pinned.add(event_id)
            return True
        self._ids[event_id] = None
        while len(self._ids) > self.capacity:
            self._ids.popitem(last=False)
        return True

    def __contains__(self, event_id: str) -> bool:
        return event_id in self._ids or event_id in self._pinned

    def __len__(self) -> int:
        return len(self._ids) + len(self._pinned)


class BaseChannel(ABC):
    """
    传输渠道抽象基类。

    属性:
        name: 渠道标识名（中继渠道使用中继 URL）
        bus: 事件总线实例
        seen: 共享的去重缓存
        _running: 渠道运行状态标志
    """

    name: str = "base"

    def __init__(
        self,
        bus: EventBus,
        seen: SeenCache | None = None,
        verify: bool = True,
    ):
        self.bus = bus
        self.seen = seen if seen is not None else SeenCache()
        self.verify = verify
        self._running = False

    @abstractmethod
    async def start(self) -> None:
        """启动渠道并开始监听事件（长期运行，直到 stop() 或被取消）。"""
        pass

    @abstractmethod
    async def stop(self) -> None:
        """停止渠道并清理资源。"""
        pass

    @abstractmethod
    async def send(self, event: Event) -> bool:
        """
        通过该渠道发送事件。

        返回:
            True 表示事件已写出；渠道未连接时返回 False
        """
        pass

    async def _handle_event(self, event: Event) -> bool:
        """
        处理来自中继的入站事件（模板方法）。

        1. 去重：其他中继已经推送过的事件直接跳过
        2. 校验 id 与签名，伪造的事件丢弃
        3. 发布到事件总线

        返回:
            True 表示事件已发布到总线
        """
        if event.id in self.seen:
            return False

        if self.verify and not event.verify():
            logger.warning(f"Dropping event {event.id[:12]} with invalid id or signature from {self.name}")
            return False

        self.seen.add(event.id, pin=event.kind == JOB_REQUEST)
        await self.bus.publish_inbound(event)
        return True

    @property
    def is_running(self) -> bool:
        return self._running
