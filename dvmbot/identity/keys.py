"""
签名密钥模块 - secp256k1 密钥对、bech32 编码与事件签名。

技术栈：
- coincurve：libsecp256k1 的 Python 绑定，提供 BIP-340 schnorr 签名
- bech32：npub/nsec 人类可读地址的编解码

【Java 开发者类比】
- Keys 类似于 java.security.KeyPair + Signature 的组合封装
- parse_public_key() 类似于一个带校验的静态工厂方法
"""

import os
import time
from typing import Iterable

from bech32 import bech32_decode, bech32_encode, convertbits
from coincurve import PrivateKey, PublicKeyXOnly

from dvmbot.bus.events import Event


def _encode_bech32(hrp: str, data: bytes) -> str:
    """将 32 字节数据编码为 bech32 字符串（如 npub1...）。"""
    words = convertbits(data, 8, 5)
    return bech32_encode(hrp, words)


def _decode_bech32(value: str, expected_hrp: str) -> bytes:
    """
    解码 bech32 字符串并校验前缀。

    异常:
        ValueError: 格式错误、前缀不匹配或长度不是 32 字节
    """
    hrp, words = bech32_decode(value)
    if hrp is None or words is None:
        raise ValueError(f"Invalid bech32 string: {value[:16]}...")
    if hrp != expected_hrp:
        raise ValueError(f"Expected {expected_hrp} prefix, got {hrp}")
    data = convertbits(words, 5, 8, False)
    if data is None or len(data) != 32:
        raise ValueError(f"Invalid {expected_hrp} payload length")
    return bytes(data)


def parse_public_key(value: str) -> str:
    """
    解析公钥，支持 64 位十六进制或 npub 格式。

    参数:
        value: 公钥字符串

    返回:
        64 位小写十六进制公钥

    异常:
        ValueError: 无法解析
    """
    value = value.strip()
    if value.startswith("npub1"):
        return _decode_bech32(value, "npub").hex()
    if len(value) == 64:
        try:
            return bytes.fromhex(value).hex()
        except ValueError:
            pass
    raise ValueError(f"Invalid public key: {value[:16]}...")


class Keys:
    """
    Agent 的签名身份。

    属性:
        public_key: x-only 公钥（64 位十六进制）
    """

    def __init__(self, secret: bytes):
        if len(secret) != 32:
            raise ValueError("Secret key must be 32 bytes")
        self._private = PrivateKey(secret)
        self.public_key = PublicKeyXOnly.from_secret(secret).format().hex()

    @classmethod
    def generate(cls) -> "Keys":
        """生成一对新的随机密钥。"""
        return cls(PrivateKey().secret)

    @classmethod
    def parse(cls, secret: str) -> "Keys":
        """
        从十六进制私钥或 nsec 字符串恢复密钥。

        异常:
            ValueError: 格式错误
        """
        secret = secret.strip()
        if secret.startswith("nsec1"):
            return cls(_decode_bech32(secret, "nsec"))
        try:
            raw = bytes.fromhex(secret)
        except ValueError as e:
            raise ValueError("Secret key must be hex or nsec") from e
        return cls(raw)

    @property
    def secret_hex(self) -> str:
        return self._private.secret.hex()

    @property
    def npub(self) -> str:
        return _encode_bech32("npub", bytes.fromhex(self.public_key))

    @property
    def nsec(self) -> str:
        return _encode_bech32("nsec", self._private.secret)

    def sign(self, message: bytes) -> str:
        """对 32 字节消息（事件 id）做 schnorr 签名，返回十六进制签名。"""
        return self._private.sign_schnorr(message, os.urandom(32)).hex()

    def sign_event(
        self,
        kind: int,
        content: str,
        tags: Iterable[Iterable[str]] = (),
        created_at: int | None = None,
    ) -> Event:
        """
        构造并签名一个新事件。

        参数:
            kind: 事件类别
            content: 事件内容
            tags: 标签列表
            created_at: 创建时间（Unix 秒），为 None 时取当前时间

        返回:
            已签名的 Event
        """
        tag_tuple = tuple(tuple(t) for t in tags)
        ts = int(time.time()) if created_at is None else created_at
        event_id = Event.compute_id(self.public_key, ts, kind, tag_tuple, content)
        return Event(
            id=event_id,
            pubkey=self.public_key,
            created_at=ts,
            kind=kind,
            tags=tag_tuple,
            content=content,
            sig=self.sign(bytes.fromhex(event_id)),
        )


def random_correlation_id() -> str:
    """
    生成服务公告的 d 标签值。

    取一个新随机公钥的 npub，去掉 "npub" 前缀后截断为 20 个字符。
    """
    return Keys.generate().npub.replace("npub", "")[:20]
