"""
配置数据模型定义 (config/schema.py)
=================================
本模块使用 Pydantic 定义 dvmbot 的完整配置结构。
所有配置项都有默认值，用户只需在 config.json 中覆盖需要修改的部分。

整体配置结构（树形）：
Config (根配置)
├── package   - 服务身份与公告信息（名称、简介、私钥、是否已公告、公告 d 标签）
├── comms     - 通信配置（中继地址、管理员白名单、关注的作者列表）
└── agent     - 流水线参数（缓冲区容量、队列容量、去重缓存大小等）

对于 Java 开发者：
- Pydantic 的 BaseModel 类似于 Java 的 POJO/Record，但自带字段验证和默认值
- BaseSettings 类似于 Spring 的 @ConfigurationProperties，额外支持从环境变量读取配置
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings


class PackageConfig(BaseModel):
    """服务身份配置。nsec 和 random_id 为空时会在首次启动时自动生成并写回。"""
    name: str = "dvmbot"  # 公告中展示的服务名称
    about: str = "Recent notes from the people I follow"  # 公告中的服务简介
    lnurl: str = ""  # 闪电网络收款地址（可选，非空时写入公告的 lud16 字段）
    nsec: str | None = None  # 签名私钥（nsec 或十六进制）
    announced: bool = False  # 是否已经发送过服务公告
    random_id: str | None = None  # 公告的 d 标签值（稳定的随机关联后缀）


class CommsConfig(BaseModel):
    """通信配置。"""
    relays: list[str] = Field(
        default_factory=lambda: ["wss://relay.damus.io", "wss://nos.lol"]
    )  # 要连接的中继列表
    admins: list[str] = Field(default_factory=list)  # 管理员公钥白名单（npub 或十六进制）
    npubs: list[str] = Field(default_factory=list)  # 关注的作者公钥（其笔记进入历史缓冲区）


class AgentConfig(BaseModel):
    """事件流水线配置。"""
    history_capacity: int = 200  # 历史缓冲区容量上限 N
    queue_size: int = 10000  # 入站队列容量，满时丢弃最旧事件
    seen_cache_size: int = 4096  # 跨中继去重缓存大小
    reconnect_delay: float = 5.0  # 中继断线重连间隔（秒）
    subscribe_admin_dms: bool = False  # 是否订阅管理员私信（处理器目前是空实现）

    @field_validator("history_capacity", "queue_size", "seen_cache_size")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v


class Config(BaseSettings):
    """
    dvmbot 根配置类。

    除了从 JSON 文件加载外，还支持从环境变量覆盖：
    - 环境变量前缀: DVMBOT_
    - 嵌套分隔符: __ (双下划线)
    - 示例: DVMBOT_AGENT__HISTORY_CAPACITY=500
    """
    package: PackageConfig = Field(default_factory=PackageConfig)
    comms: CommsConfig = Field(default_factory=CommsConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)

    model_config = ConfigDict(
        env_prefix="DVMBOT_",
        env_nested_delimiter="__"
    )
