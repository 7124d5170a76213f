"""
配置加载工具模块 (config/loader.py)
=================================
本模块负责 dvmbot 配置文件的加载、保存、格式转换和首次启动引导：
- 配置文件默认路径: ~/.dvmbot/config.json
- 配置文件使用 camelCase（驼峰命名），Python 内部使用 snake_case（下划线命名）
- 加载时自动将 camelCase → snake_case，保存时自动将 snake_case → camelCase
- 首次启动时自动生成签名私钥和公告 d 标签并写回文件

对于 Java 开发者：
- 类似于 Spring Boot 的 application.yml 加载机制
- camelCase ↔ snake_case 转换类似于 Jackson 的 @JsonNaming 注解功能
"""

import json
import re
from pathlib import Path
from typing import Any, Callable

from loguru import logger

from dvmbot.config.schema import Config
from dvmbot.errors import ConfigLoadError


def get_config_path() -> Path:
    """获取默认配置文件路径: ~/.dvmbot/config.json"""
    return Path.home() / ".dvmbot" / "config.json"


def load_config(config_path: Path | None = None) -> Config:
    """
    从 JSON 文件加载配置，若文件不存在则返回默认配置。

    文件存在但无法解析时直接报错：其中可能保存着签名身份，
    降级为默认配置会让随后的 ensure_identity() 把它覆盖掉。

    参数:
        config_path: 可选的配置文件路径。为 None 时使用默认路径。

    返回:
        Config 配置对象实例

    异常:
        ConfigLoadError: 文件存在但不是合法 JSON 或未通过校验
    """
    path = config_path or get_config_path()

    if not path.exists():
        return Config()

    try:
        with open(path) as f:
            data = json.load(f)
        return Config.model_validate(convert_keys(data))
    except (json.JSONDecodeError, ValueError) as e:
        logger.error(f"Failed to load config from {path}: {e}")
        raise ConfigLoadError(path, str(e)) from e


def save_config(config: Config, config_path: Path | None = None) -> None:
    """
    将配置对象保存为 JSON 文件（camelCase 键名，带缩进）。

    参数:
        config: 要保存的配置对象
        config_path: 可选的保存路径。为 None 时使用默认路径。
    """
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = convert_to_camel(config.model_dump())

    with open(path, "w") as f:
        json.dump(data, f, indent=2)


def ensure_identity(config: Config, config_path: Path | None = None) -> bool:
    """
    首次启动引导：补齐签名私钥和公告 d 标签。

    缺少 nsec 时生成新密钥；缺少 random_id 时生成新的关联后缀。
    有任何改动都会立即写回配置文件。

    参数:
        config: 配置对象（原地修改）
        config_path: 配置文件路径

    返回:
        True 表示生成了新值并已保存

    异常:
        ConfigLoadError: 目标文件已存在但无法解析（不会被覆盖）
    """
    from dvmbot.identity.keys import Keys, random_correlation_id

    changed = False
    if not config.package.nsec:
        config.package.nsec = Keys.generate().nsec
        logger.info("Generated new signing key")
        changed = True
    if not config.package.random_id:
        config.package.random_id = random_correlation_id()
        changed = True
    if changed:
        path = config_path or get_config_path()
        if path.exists():
            # 已有文件必须能解析，否则抛出 ConfigLoadError，原文件保持不动
            load_config(path)
        save_config(config, path)
    return changed


def _rename_keys(data: Any, rename: Callable[[str], str]) -> Any:
    """递归地重命名字典键（列表中的字典同样处理），值保持不变。"""
    if isinstance(data, dict):
        return {rename(k): _rename_keys(v, rename) for k, v in data.items()}
    if isinstance(data, list):
        return [_rename_keys(item, rename) for item in data]
    return data


def convert_keys(data: Any) -> Any:
    """磁盘格式 → Python 格式，如 {"historyCapacity": 200} → {"history_capacity": 200}"""
    return _rename_keys(data, camel_to_snake)


def convert_to_camel(data: Any) -> Any:
    """Python 格式 → 磁盘格式，如 {"random_id": "..."} → {"randomId": "..."}"""
    return _rename_keys(data, snake_to_camel)


_UPPER_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def camel_to_snake(name: str) -> str:
    return _UPPER_BOUNDARY.sub("_", name).lower()


def snake_to_camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)
