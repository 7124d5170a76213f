"""单次事件处理的结果。"""

from enum import Enum


class Outcome(str, Enum):
    INSERTED = "inserted"  # 笔记进入历史缓冲区
    DUPLICATE = "duplicate"  # 笔记已在缓冲区中
    STALE = "stale"  # 缓冲区已满且笔记比所有成员都旧，被立即淘汰
    REPLIED = "replied"  # 已为服务请求发送回复
    NOT_IMPLEMENTED = "not_implemented"  # 路由到了占位处理器
    DISCARDED = "discarded"  # 未知类别，直接丢弃
    FAILED = "failed"  # 处理器抛出异常
