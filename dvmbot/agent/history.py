"""
历史缓冲区 - 有界、去重、有序的近期笔记集合。

不变式：
- 唯一性：以事件 id 为键，同一事件最多出现一次
- 有序性：按 (created_at, id) 降序排列，即最新的在前，时间相同时 id 大的在前
- 有界性：元素个数不超过 capacity；超出时从排序尾部（最旧的）开始淘汰，
  而不是按到达顺序淘汰

所有权：
缓冲区只由 Dispatcher 任务修改（单写者），读者通过 snapshot() 获取独立副本，
因此内部不需要任何锁。

【Java 开发者类比】
- 相当于一个容量受限的 TreeSet<Event>（带自定义 Comparator）+ HashMap<id, Event> 索引
"""

from loguru import logger

from dvmbot.bus.events import Event
from dvmbot.errors import BufferInvariantViolation

DEFAULT_CAPACITY = 200


def _order_key(event: Event) -> tuple[int, str]:
    return (event.created_at, event.id)


class HistoryBuffer:
    """
    有界历史缓冲区。

    属性:
        capacity: 容量上限 N
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity < 1:
            raise ValueError("History capacity must be at least 1")
        self.capacity = capacity
        self._events: list[Event] = []
        self._index: dict[str, Event] = {}

    def __len__(self) -> int:
        return len(self._events)

    def contains(self, event_id: str) -> bool:
        """判断缓冲区中是否已有该 id 的事件。"""
        return event_id in self._index

    def insert(self, event: Event) -> bool:
        """
        插入一条事件。

        已存在同 id 事件时不做任何改动。否则追加、重新排序，
        再从排序尾部淘汰直到不超过容量。

        参数:
            event: 笔记事件

        返回:
            True 表示插入后该事件留在了缓冲区中；
            False 表示重复，或它比现有成员都旧而被立即淘汰
        """
        if self.contains(event.id):
            return False

        self._events.append(event)
        self._index[event.id] = event
        self._events.sort(key=_order_key, reverse=True)

        while len(self._events) > self.capacity:
            evicted = self._events.pop()
            del self._index[evicted.id]
            if evicted.id != event.id:
                logger.debug(f"History full, evicted {evicted.id[:12]} (created_at={evicted.created_at})")

        self._check_invariants()
        return event.id in self._index

    def snapshot(self) -> tuple[str, ...]:
        """返回当前成员 id 的独立副本（按缓冲区顺序）。"""
        return tuple(e.id for e in self._events)

    def events(self) -> tuple[Event, ...]:
        """返回当前成员事件的独立副本（按缓冲区顺序）。"""
        return tuple(self._events)

    def _check_invariants(self) -> None:
        if len(self._events) > self.capacity:
            raise BufferInvariantViolation(
                f"History holds {len(self._events)} events, capacity is {self.capacity}"
            )
        if len(self._index) != len(self._events):
            raise BufferInvariantViolation("History index is out of sync with its events")
        for newer, older in zip(self._events, self._events[1:]):
            if _order_key(newer) <= _order_key(older):
                raise BufferInvariantViolation(
                    f"History out of order at {newer.id[:12]} / {older.id[:12]}"
                )
