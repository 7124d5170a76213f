"""
事件总线模块 - 实现中继渠道与分发器之间的解耦通信。

事件流向：
  中继(Relay) → RelayChannel → Event → 事件总线 → Dispatcher 处理
  Dispatcher 回复 → RequestResponder → RelayPool.send_event → 中继

【Java 开发者类比】
- EventBus 类似于一个有界的 LinkedBlockingQueue
- Event 类似于一个不可变的入站 DTO
"""

from dvmbot.bus.events import Event, Reference
from dvmbot.bus.queue import EventBus

__all__ = ["EventBus", "Event", "Reference"]
