"""
服务公告 - 首次启动时发布一次 NIP-89 handler information 事件。

公告事件：
- kind 31990
- 标签 ["k", "5300"]（支持的请求类别）和 ["d", <random_id>]（稳定的随机后缀）
- 内容为 JSON：{"name", "about", "encryptionSupported": false}，配置了 lnurl 时附带 lud16

发送成功后把 package.announced 置为 True 并写回配置文件；
发送失败时保持未公告状态，下次启动会再次尝试。
"""

import json
from pathlib import Path
from typing import Awaitable, Callable

from loguru import logger

from dvmbot.bus.events import HANDLER_INFORMATION, JOB_REQUEST, Event, Reference
from dvmbot.config.loader import save_config
from dvmbot.config.schema import Config
from dvmbot.identity.keys import Keys


def build_announcement(config: Config, keys: Keys) -> Event:
    """
    构造服务公告事件。

    异常:
        ValueError: 配置中缺少 random_id（应先调用 ensure_identity）
    """
    if not config.package.random_id:
        raise ValueError("Config has no randomId; run identity bootstrap first")

    content = {
        "name": config.package.name,
        "about": config.package.about,
        "encryptionSupported": False,
    }
    if config.package.lnurl:
        content["lud16"] = config.package.lnurl

    tags = [
        Reference("k", str(JOB_REQUEST)).to_tag(),
        Reference("d", config.package.random_id).to_tag(),
    ]
    return keys.sign_event(kind=HANDLER_INFORMATION, content=json.dumps(content), tags=tags)


async def announce_once(
    config: Config,
    keys: Keys,
    send: Callable[[Event], Awaitable[None]],
    config_path: Path | None = None,
) -> bool:
    """
    如果尚未公告过，则发送公告并持久化 announced 标志。

    返回:
        True 表示本次发送了公告
    """
    if config.package.announced:
        logger.debug("Service already announced, skipping")
        return False

    event = build_announcement(config, keys)
    await send(event)
    config.package.announced = True
    save_config(config, config_path)
    logger.info(f"Announced service {config.package.name!r} ({event.id[:12]})")
    return True
