"""
事件分类器 - 把入站事件映射到有限的类别集合。

分类规则（按 kind 判别）：
- 1（普通笔记）           → NOTE
- 5300（内容发现请求）    → SERVICE_REQUEST
- 4 / 14（私信）          → 作者在管理员白名单中时为 DIRECT_MESSAGE，否则 OTHER
- 其他 kind 或读取失败    → OTHER（由 Dispatcher 静默丢弃）

分类器是纯函数，没有副作用，也从不抛出异常。
"""

from enum import Enum
from typing import Collection

from dvmbot.bus.events import (
    ENCRYPTED_DIRECT_MESSAGE,
    JOB_REQUEST,
    PRIVATE_DIRECT_MESSAGE,
    TEXT_NOTE,
    Event,
)


class Category(str, Enum):
    """入站事件的类别。"""
    NOTE = "note"
    SERVICE_REQUEST = "service_request"
    DIRECT_MESSAGE = "direct_message"
    OTHER = "other"


_DM_KINDS = frozenset({ENCRYPTED_DIRECT_MESSAGE, PRIVATE_DIRECT_MESSAGE})


def classify(event: Event, admins: Collection[str] = frozenset()) -> Category:
    """
    对单个事件分类。

    参数:
        event: 入站事件
        admins: 管理员公钥集合（十六进制），用于私信的白名单判断

    返回:
        事件所属类别
    """
    try:
        kind = event.kind
        if kind == TEXT_NOTE:
            return Category.NOTE
        if kind == JOB_REQUEST:
            return Category.SERVICE_REQUEST
        if kind in _DM_KINDS and event.pubkey in admins:
            return Category.DIRECT_MESSAGE
    except (AttributeError, TypeError):
        # 畸形事件按未知类别处理
        pass
    return Category.OTHER
