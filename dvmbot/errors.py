"""
错误类型定义 - dvmbot 核心流水线的异常分类。

分类与传播策略：
- TransportError：连接/发送失败。由渠道层抛出，记录日志但不会终止事件循环
- ResponderFailure：构造/签名/广播回复时失败。请求被丢弃，不重试
- ConfigLoadError：配置文件存在但无法解析。绝不以默认值覆盖，CLI 直接报错退出
- BufferInvariantViolation：历史缓冲区不变式被破坏。正常情况下不可达，
  一旦出现说明存在并发 bug，属于致命错误，会从 Dispatcher 中向上抛出

未知类别的事件不是错误，分类器直接返回 Category.OTHER 并被丢弃。
"""


class DvmError(Exception):
    """dvmbot 所有自定义异常的基类。"""


class TransportError(DvmError):
    """中继连接或事件发送失败。"""


class ResponderFailure(DvmError):
    """为服务请求构造或发送回复失败。"""

    def __init__(self, request_id: str, reason: str):
        super().__init__(f"Failed to answer request {request_id}: {reason}")
        self.request_id = request_id
        self.reason = reason


class BufferInvariantViolation(DvmError):
    """历史缓冲区的容量、唯一性或顺序不变式被破坏。"""


class ConfigLoadError(DvmError):
    """配置文件存在但无法解析或校验失败。"""

    def __init__(self, path, reason: str):
        super().__init__(f"Failed to load config from {path}: {reason}")
        self.path = path
        self.reason = reason
