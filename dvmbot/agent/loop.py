"""
分发器主循环模块：dvmbot 的核心处理引擎。

本模块实现了完整的事件处理流水线：
  入站事件 → 分类 → 路由到处理器 → 回到空闲等待

状态流转：
  Idle（等待下一条事件）→ Classifying → {Inserting | Responding | DelegatingDM | Discarding} → Idle

路由表：
- NOTE            → HistoryBuffer.insert
- SERVICE_REQUEST → RequestResponder.respond
- DIRECT_MESSAGE  → CommandHandler.handle（占位实现）
- OTHER           → 丢弃

【单写者约束】
Dispatcher 是唯一修改历史缓冲区的执行上下文。它严格逐条处理事件：
第 k 条事件的处理器完成之前，绝不会开始分类第 k+1 条。因此缓冲区无需加锁。

【错误处理】
单个处理器的异常只记录日志，不会中断循环，也不会丢失后续事件；
唯一的例外是 BufferInvariantViolation，它代表并发 bug，会直接向上抛出。

【Java 开发者类比】
- Dispatcher 类似于一个单线程的 @KafkaListener 消费者
- 路由表类似于 Spring MVC 的 HandlerMapping
"""

import asyncio
from collections import Counter
from typing import Collection

from loguru import logger

from dvmbot.agent.classifier import Category, classify
from dvmbot.agent.commands import CommandHandler
from dvmbot.agent.history import HistoryBuffer
from dvmbot.agent.outcome import Outcome
from dvmbot.agent.responder import RequestResponder
from dvmbot.bus.events import Event
from dvmbot.bus.queue import EventBus
from dvmbot.errors import BufferInvariantViolation


class Dispatcher:
    """
    事件分发器：入站队列的唯一消费者。

    核心属性：
    - bus: 事件总线，提供入站队列
    - history: 历史缓冲区（由本对象独占写入）
    - responder: 请求应答器
    - commands: 管理员私信处理器
    - admins: 管理员公钥集合（十六进制）
    - stats: 按处理结果统计的计数器
    """

    def __init__(
        self,
        bus: EventBus,
        history: HistoryBuffer,
        responder: RequestResponder,
        commands: CommandHandler | None = None,
        admins: Collection[str] = (),
    ):
        self.bus = bus
        self.history = history
        self.responder = responder
        self.commands = commands or CommandHandler()
        self.admins = frozenset(admins)
        self.stats: Counter[Outcome] = Counter()
        self._running = False

    async def run(self) -> None:
        """
        启动分发循环，持续从事件总线消费并处理事件。

        通过 asyncio.wait_for 设置 1 秒超时，以便及时响应 stop()。
        """
        self._running = True
        logger.info("Dispatcher started, waiting for events")

        while self._running:
            try:
                event = await asyncio.wait_for(self.bus.consume_inbound(), timeout=1.0)
            except asyncio.TimeoutError:
                continue
            await self.process(event)

    def stop(self) -> None:
        """停止分发循环，当前事件处理完后退出。"""
        self._running = False
        logger.info("Dispatcher stopping")

    async def process(self, event: Event) -> Outcome:
        """
        处理单条入站事件。

        参数:
            event: 入站事件

        返回:
            本次处理的结果

        异常:
            BufferInvariantViolation: 缓冲区不变式被破坏（致命）
        """
        category = classify(event, self.admins)
        try:
            outcome = await self._route(category, event)
        except BufferInvariantViolation:
            logger.critical(f"History invariant violated while handling {event.id[:12]}")
            raise
        except Exception as e:
            logger.error(f"Error handling {category.value} event {event.id[:12]}: {e}")
            outcome = Outcome.FAILED

        self.stats[outcome] += 1
        return outcome

    async def _route(self, category: Category, event: Event) -> Outcome:
        if category is Category.NOTE:
            return self._insert_note(event)
        if category is Category.SERVICE_REQUEST:
            await self.responder.respond(event, self.history)
            return Outcome.REPLIED
        if category is Category.DIRECT_MESSAGE:
            return await self.commands.handle(event)

        logger.debug(f"Discarding event {event.id[:12]} of kind {event.kind}")
        return Outcome.DISCARDED

    def _insert_note(self, event: Event) -> Outcome:
        if self.history.contains(event.id):
            return Outcome.DUPLICATE
        if self.history.insert(event):
            logger.debug(f"Stored note {event.id[:12]} ({len(self.history)}/{self.history.capacity})")
            return Outcome.INSERTED
        return Outcome.STALE
