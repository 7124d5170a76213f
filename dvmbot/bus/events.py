"""
事件类型定义模块 - 定义在消息总线和中继之间流转的数据结构。

本模块定义了：
- Event：NIP-01 事件（不可变，内容寻址的 id + 作者 + kind + 时间戳 + 标签 + 内容 + 签名）
- Reference：结构化的引用标签（kind + 目标标识），用于请求/响应关联
- 常用的 kind 常量

所有中继、分发器和回复构造器都通过 Event 这一统一结构交换数据，
实现了传输层与处理逻辑的解耦。

【Java 开发者类比】
- @dataclass(frozen=True) 等价于 Java 的 record 类（不可变值对象）
- Reference.from_tag() 类似于一个静态工厂方法 Reference.valueOf(...)

【设计要点】
- id 是对序列化内容做 sha256 得到的，因此天然稳定、可比较
- 标签统一保存为元组的元组，保证 Event 在哈希和比较时的不可变性
"""

import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Iterable

# ===== 事件 kind 常量 =====
TEXT_NOTE = 1                    # 普通笔记
ENCRYPTED_DIRECT_MESSAGE = 4     # NIP-04 加密私信
PRIVATE_DIRECT_MESSAGE = 14      # NIP-17 私信
JOB_REQUEST = 5300               # NIP-90 内容发现请求
JOB_RESULT = 6300                # NIP-90 内容发现结果
HANDLER_INFORMATION = 31990      # NIP-89 服务公告


@dataclass(frozen=True)
class Reference:
    """
    结构化引用 - 一个标签的类型化表示。

    例如 ["e", "<event id>"] 表示引用某个事件，["p", "<pubkey>"] 表示引用某个用户。
    回复事件的关联标签都由 Reference 构造，而不是手工拼接字符串。

    属性:
        kind: 标签名（如 "e"、"p"、"status"）
        target: 被引用的目标（事件 id、公钥或状态值）
        extra: 标签中其余的附加字段（如中继提示）
    """

    kind: str
    target: str
    extra: tuple[str, ...] = ()

    def to_tag(self) -> list[str]:
        """渲染为 NIP-01 标签数组。"""
        return [self.kind, self.target, *self.extra]

    @classmethod
    def from_tag(cls, tag: Iterable[Any]) -> "Reference | None":
        """
        从标签数组解析引用。

        参数:
            tag: 标签数组，如 ["e", "abcd...", "wss://relay"]

        返回:
            Reference 实例；元素不足两个或含非字符串元素时返回 None
        """
        items = list(tag)
        if len(items) < 2 or not all(isinstance(i, str) for i in items):
            return None
        return cls(kind=items[0], target=items[1], extra=tuple(items[2:]))


@dataclass(frozen=True)
class Event:
    """
    Nostr 事件 - 网络中不可变的数据单元。

    属性:
        id: 事件唯一标识（序列化内容的 sha256，64 位十六进制）
        pubkey: 作者公钥（x-only，64 位十六进制）
        created_at: 创建时间（Unix 秒）
        kind: 类别判别字段，分类器据此路由
        tags: 标签列表（元组的元组）
        content: 不透明的负载字符串
        sig: schnorr 签名（128 位十六进制）
    """

    id: str
    pubkey: str
    created_at: int
    kind: int
    tags: tuple[tuple[str, ...], ...] = field(default_factory=tuple)
    content: str = ""
    sig: str = ""

    @staticmethod
    def serialize(
        pubkey: str,
        created_at: int,
        kind: int,
        tags: Iterable[Iterable[str]],
        content: str,
    ) -> bytes:
        """按 NIP-01 规则序列化事件（用于计算 id）。"""
        payload = [0, pubkey, created_at, kind, [list(t) for t in tags], content]
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")

    @classmethod
    def compute_id(
        cls,
        pubkey: str,
        created_at: int,
        kind: int,
        tags: Iterable[Iterable[str]],
        content: str,
    ) -> str:
        """计算事件 id：序列化结果的 sha256 十六进制摘要。"""
        return hashlib.sha256(cls.serialize(pubkey, created_at, kind, tags, content)).hexdigest()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Event":
        """
        从中继下发的 JSON 对象构造事件。

        异常:
            ValueError: 字段缺失或类型不正确
        """
        if not isinstance(data, dict):
            raise ValueError(f"Event must be an object, got {type(data).__name__}")
        try:
            event_id = data["id"]
            pubkey = data["pubkey"]
            created_at = data["created_at"]
            kind = data["kind"]
            raw_tags = data.get("tags", [])
            content = data.get("content", "")
            sig = data.get("sig", "")
        except KeyError as e:
            raise ValueError(f"Event is missing field {e}") from e

        if not isinstance(event_id, str) or not isinstance(pubkey, str):
            raise ValueError("Event id and pubkey must be strings")
        # bool 是 int 的子类，需要单独排除
        if not isinstance(created_at, int) or isinstance(created_at, bool):
            raise ValueError("Event created_at must be an integer")
        if not isinstance(kind, int) or isinstance(kind, bool):
            raise ValueError("Event kind must be an integer")
        if not isinstance(content, str) or not isinstance(sig, str):
            raise ValueError("Event content and sig must be strings")
        if not isinstance(raw_tags, list) or not all(
            isinstance(t, list) and all(isinstance(v, str) for v in t) for t in raw_tags
        ):
            raise ValueError("Event tags must be a list of string lists")

        return cls(
            id=event_id,
            pubkey=pubkey,
            created_at=created_at,
            kind=kind,
            tags=tuple(tuple(t) for t in raw_tags),
            content=content,
            sig=sig,
        )

    def to_dict(self) -> dict[str, Any]:
        """转换为 NIP-01 JSON 对象（发送给中继时使用）。"""
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(t) for t in self.tags],
            "content": self.content,
            "sig": self.sig,
        }

    def references(self, kind: str | None = None) -> list[Reference]:
        """
        获取事件携带的结构化引用。

        参数:
            kind: 只返回该标签名的引用；为 None 时返回全部

        返回:
            Reference 列表（保持标签原有顺序）
        """
        refs = []
        for tag in self.tags:
            ref = Reference.from_tag(tag)
            if ref and (kind is None or ref.kind == kind):
                refs.append(ref)
        return refs

    def has_valid_id(self) -> bool:
        """检查 id 是否与事件内容一致。"""
        return self.id == self.compute_id(
            self.pubkey, self.created_at, self.kind, self.tags, self.content
        )

    def verify(self) -> bool:
        """
        校验事件：id 与内容一致，且签名能被作者公钥验证。

        返回:
            True 表示事件可信
        """
        from coincurve import PublicKeyXOnly

        if not self.has_valid_id():
            return False
        try:
            key = PublicKeyXOnly(bytes.fromhex(self.pubkey))
            return key.verify(bytes.fromhex(self.sig), bytes.fromhex(self.id))
        except ValueError:
            return False
