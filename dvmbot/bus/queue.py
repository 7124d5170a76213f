"""
异步事件队列模块 - 中继与分发器之间的交接队列。

本模块实现了 EventBus 类，它是 dvmbot 中所有入站事件流转的中枢。
采用生产者-消费者模式，基于 Python asyncio.Queue 实现异步事件传递：

  中继渠道 → publish_inbound() → inbound 队列 → consume_inbound() → Dispatcher

【Java 开发者类比】
- asyncio.Queue 类似于 Java 的 ArrayBlockingQueue（这里设置了容量上限）
- publish/consume 模式类似于 Java 的 BlockingQueue.offer()/take()

【背压策略】
生产者（中继回调）永远不会因为消费者慢而阻塞：
队列满时丢弃队首最旧的事件，记录警告并累加 dropped 计数。
"""

import asyncio

from loguru import logger

from dvmbot.bus.events import Event

DEFAULT_QUEUE_SIZE = 10000


class EventBus:
    """
    入站事件总线 - 解耦中继渠道与分发器。

    属性:
        inbound: 入站事件异步队列（中继 → Dispatcher）
        maxsize: 队列容量上限
        dropped: 因队列已满而被丢弃的事件数量
    """

    def __init__(self, maxsize: int = DEFAULT_QUEUE_SIZE):
        if maxsize < 1:
            raise ValueError("Queue size must be at least 1")
        self.maxsize = maxsize
        self.inbound: asyncio.Queue[Event] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    async def publish_inbound(self, event: Event) -> None:
        """
        发布入站事件（中继 → Dispatcher）。

        不会阻塞：队列已满时先丢弃最旧的一条再入队。

        参数:
            event: 已通过校验和去重的事件
        """
        try:
            self.inbound.put_nowait(event)
        except asyncio.QueueFull:
            oldest = self.inbound.get_nowait()
            self.inbound.task_done()
            self.dropped += 1
            logger.warning(
                f"Inbound queue full ({self.maxsize}), dropped oldest event {oldest.id[:12]}"
            )
            self.inbound.put_nowait(event)

    async def consume_inbound(self) -> Event:
        """
        消费下一条入站事件（阻塞等待）。

        返回:
            下一条入站事件
        """
        event = await self.inbound.get()
        self.inbound.task_done()
        return event

    @property
    def inbound_size(self) -> int:
        """待处理的入站事件数量。"""
        return self.inbound.qsize()
