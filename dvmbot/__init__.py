"""
dvmbot - 基于 Nostr 的轻量级数据售卖机（DVM）Agent

模块概述：
    本文件是 dvmbot 包的入口文件（__init__.py），定义了包的元信息。
    dvmbot 长期监听若干 Nostr 中继（relay），维护一个有界的近期笔记缓冲区，
    并对"内容发现"类服务请求（kind 5300）给出引用该缓冲区的结果事件（kind 6300）。

    整个框架的核心功能包括：
    - 多中继接入（NIP-01 WebSocket 协议）
    - 单写者、去重、有序的历史缓冲区
    - 请求/响应关联（基于结构化的引用标签）
    - 一次性的服务公告（NIP-89）
"""

# 版本号，遵循语义化版本规范（主版本.次版本.修订号）
__version__ = "0.1.0"

# 项目 logo 表情符号，用于 CLI 输出等场景的品牌标识
__logo__ = "📡"
