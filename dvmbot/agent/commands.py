"""
管理员私信处理器。

私信解密尚未实现，因此处理器只记录来源并返回 Outcome.NOT_IMPLEMENTED，
让调用方和测试都能明确看到"空操作"这一约定。
"""

from loguru import logger

from dvmbot.agent.outcome import Outcome
from dvmbot.bus.events import Event


class CommandHandler:
    """管理员命令处理器（占位实现）。"""

    async def handle(self, event: Event) -> Outcome:
        logger.debug(f"Direct message {event.id[:12]} from admin {event.pubkey[:12]} ignored")
        return Outcome.NOT_IMPLEMENTED
