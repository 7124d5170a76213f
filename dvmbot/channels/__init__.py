"""
传输渠道模块 - 实现与 Nostr 中继的连接与管理。

渠道层是 dvmbot 的"感官系统"，负责接收中继推送的事件并把回复广播出去。
渠道通过事件总线（EventBus）与分发器解耦。

事件流向：
  中继 → RelayChannel → EventBus → Dispatcher → RequestResponder → RelayPool → 中继

【Java 开发者类比】
- BaseChannel 相当于 Java 接口（Interface），定义了 start/stop/send 方法契约
- RelayPool 相当于连接池，管理所有中继连接的生命周期
"""

from dvmbot.channels.base import BaseChannel, SeenCache
from dvmbot.channels.manager import RelayPool
from dvmbot.channels.relay import Filter, RelayChannel

__all__ = ["BaseChannel", "SeenCache", "RelayPool", "RelayChannel", "Filter"]
