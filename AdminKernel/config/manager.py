"""
配置管理器 - 读写和合并配置
Config manager - reads, writes and merges configuration.

按扩展名使用 JSON 或 YAML 文件存储，支持默认值合并和嵌套键访问。
Stores JSON or YAML depending on the file extension, with default merging
and nested key access.
"""

from __future__ import annotations

import copy
import json
import logging
import os
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILE = os.path.join("data", "config", "adminkernel.yaml")


def _is_yaml(path: str) -> bool:
    return path.endswith((".yaml", ".yml"))


class ConfigManager:
    """
    配置管理器 - 内核的配置中心
    Config manager - the configuration center of the kernel.

    支持：
    - 嵌套键访问（如 "kernel.debug"）
    - 默认值自动合并
    - 持久化到 JSON 或 YAML 文件

    未调用 load() 时仅包含默认值，可直接在内存中使用。
    Before load() it only holds the defaults and works purely in memory.
    """

    def __init__(
        self,
        defaults: dict[str, Any] | None = None,
        config_path: str = CONFIG_FILE,
    ) -> None:
        self._defaults = defaults or {}
        self._config: dict[str, Any] = copy.deepcopy(self._defaults)
        self._config_path = config_path

    @property
    def path(self) -> str:
        return self._config_path

    async def load(self, persist: bool = True) -> None:
        """
        加载配置文件
        Load the configuration file.

        persist=True 时把合并默认值后的配置写回文件。
        With persist=True the merged configuration is written back.
        """
        if os.path.exists(self._config_path):
            try:
                with open(self._config_path, encoding="utf-8") as f:
                    if _is_yaml(self._config_path):
                        data = yaml.safe_load(f)
                    else:
                        data = json.load(f)
                self._config = data if isinstance(data, dict) else {}
                logger.info("配置已从 %s 加载", self._config_path)
            except (json.JSONDecodeError, yaml.YAMLError, OSError):
                logger.warning("加载配置失败，使用默认值")
                self._config = {}
        else:
            self._config = {}
            logger.info("未找到配置文件，将使用默认配置")

        # 合并默认值
        self._merge_defaults(self._config, copy.deepcopy(self._defaults))
        if persist:
            await self.save()

    async def save(self) -> None:
        """
        保存配置到文件
        Save the configuration to file.
        """
        try:
            os.makedirs(os.path.dirname(self._config_path) or ".", exist_ok=True)
            with open(self._config_path, "w", encoding="utf-8") as f:
                if _is_yaml(self._config_path):
                    yaml.safe_dump(
                        self._config, f, allow_unicode=True, sort_keys=False
                    )
                else:
                    json.dump(self._config, f, ensure_ascii=False, indent=2)
        except OSError:
            logger.exception("保存配置失败")

    def get(self, key: str, default: Any = None) -> Any:
        """
        获取配置值（支持嵌套键，如 "kernel.debug"）
        Get a config value (supports nested keys like "kernel.debug").
        """
        current: Any = self._config
        for k in key.split("."):
            if isinstance(current, dict):
                current = current.get(k)
            else:
                return default
            if current is None:
                return default
        return current

    def set(self, key: str, value: Any) -> None:
        """
        设置配置值（支持嵌套键）
        Set a config value (supports nested keys).
        """
        keys = key.split(".")
        current = self._config
        for k in keys[:-1]:
            if k not in current or not isinstance(current[k], dict):
                current[k] = {}
            current = current[k]
        current[keys[-1]] = value

    def update(self, data: dict[str, Any]) -> None:
        """
        递归覆盖配置
        Recursively override configuration values.
        """
        self._deep_update(self._config, data)

    def as_dict(self) -> dict[str, Any]:
        """获取完整配置字典 / Get the full config dictionary."""
        return dict(self._config)

    def _deep_update(self, target: dict[str, Any], data: dict[str, Any]) -> None:
        for key, value in data.items():
            if isinstance(value, dict) and isinstance(target.get(key), dict):
                self._deep_update(target[key], value)
            else:
                target[key] = value

    def _merge_defaults(self, config: dict[str, Any], defaults: dict[str, Any]) -> None:
        """
        递归合并默认值到配置中（不覆盖已有值）
        Recursively merge defaults into config (does not overwrite existing).
        """
        for key, default_value in defaults.items():
            if key not in config:
                config[key] = default_value
            elif isinstance(default_value, dict) and isinstance(config[key], dict):
                self._merge_defaults(config[key], default_value)
