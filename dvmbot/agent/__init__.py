"""
Agent 核心模块 - 事件分类、历史缓冲、请求应答与分发循环。

核心组件：
- classify：事件分类器（纯函数）
- HistoryBuffer：有界、去重、有序的历史缓冲区
- RequestResponder：为服务请求构造并发送结果事件
- Dispatcher：入站队列的唯一消费者，负责路由
"""

from dvmbot.agent.classifier import Category, classify
from dvmbot.agent.history import HistoryBuffer
from dvmbot.agent.loop import Dispatcher
from dvmbot.agent.outcome import Outcome
from dvmbot.agent.responder import RequestResponder

__all__ = ["Category", "classify", "HistoryBuffer", "Dispatcher", "Outcome", "RequestResponder"]
