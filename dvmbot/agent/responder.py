"""
请求应答器 - 为内容发现请求构造并发送结果事件。

处理步骤：
1. 对历史缓冲区做快照（独立副本，不引用活动缓冲区）
2. 把快照编码为引用数组 [["e", id1], ["e", id2], ...]
3. 附加四个关联标签：请求 id、请求者公钥、成功状态、描述标签
4. 签名后交给传输层广播

整个过程在 Dispatcher 处理下一条事件之前同步完成（以关联正确性换吞吐）。
签名或广播失败时抛出 ResponderFailure，不重试、不排队。
"""

import json
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Sequence

from loguru import logger

from dvmbot.agent.history import HistoryBuffer
from dvmbot.bus.events import JOB_RESULT, Event, Reference
from dvmbot.errors import ResponderFailure
from dvmbot.identity.keys import Keys

STATUS_SUCCESS = "success"
RESULT_ALT = "Result of content discovery DVM"


@dataclass(frozen=True)
class RequestContext:
    """单个请求的处理上下文：请求事件 + 处理时刻的缓冲区 id 快照。"""
    request: Event
    snapshot: tuple[str, ...]


def correlation_references(request: Event) -> list[Reference]:
    """构造回复事件的关联引用（顺序固定）。"""
    return [
        Reference("e", request.id),
        Reference("p", request.pubkey),
        Reference("status", STATUS_SUCCESS),
        Reference("alt", RESULT_ALT),
    ]


def encode_payload(snapshot: Sequence[str]) -> str:
    """把 id 列表编码为引用数组的 JSON 字符串。"""
    return json.dumps([Reference("e", event_id).to_tag() for event_id in snapshot])


class RequestResponder:
    """
    请求应答器。

    属性:
        keys: Agent 的签名密钥（只读共享）
        send_callback: 广播事件的异步回调（通常是 RelayPool.send_event）
        relays: 写入 relays 标签的中继地址
    """

    def __init__(
        self,
        keys: Keys,
        send_callback: Callable[[Event], Awaitable[None]],
        relays: Sequence[str] = (),
        clock: Callable[[], float] = time.time,
    ):
        self.keys = keys
        self.send_callback = send_callback
        self.relays = tuple(relays)
        self._clock = clock

    def build_reply(self, context: RequestContext) -> Event:
        """根据请求上下文构造并签名回复事件。"""
        tags = [ref.to_tag() for ref in correlation_references(context.request)]
        if self.relays:
            # relays 标签是地址列表，不是引用
            tags.append(["relays", *self.relays])
        return self.keys.sign_event(
            kind=JOB_RESULT,
            content=encode_payload(context.snapshot),
            tags=tags,
            created_at=int(self._clock()),
        )

    async def respond(self, request: Event, history: HistoryBuffer) -> Event:
        """
        应答一个服务请求。

        参数:
            request: 服务请求事件
            history: 历史缓冲区（只读取快照）

        返回:
            已发送的回复事件

        异常:
            ResponderFailure: 签名或广播失败
        """
        context = RequestContext(request=request, snapshot=history.snapshot())
        try:
            reply = self.build_reply(context)
            await self.send_callback(reply)
        except Exception as e:
            raise ResponderFailure(request.id, str(e)) from e

        logger.info(
            f"Answered request {request.id[:12]} from {request.pubkey[:12]} "
            f"with {len(context.snapshot)} notes"
        )
        return reply
