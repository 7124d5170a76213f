"""
身份模块 - 管理 Agent 的签名密钥。

提供 Keys（私钥/公钥、bech32 编码、事件签名）和公钥解析工具。
签名密钥在启动后只读，可在各组件之间按引用共享，无需同步。
"""

from dvmbot.identity.keys import Keys, parse_public_key, random_correlation_id

__all__ = ["Keys", "parse_public_key", "random_correlation_id"]
