"""
模块清单 - 用文件描述模块元数据
Module manifest - describes a module in a JSON or YAML file.

示例 / Example (books.yaml)::

    name: books
    requires: [genres]
    priority: 10
    entry: my_admin.books:connect
    disconnect: my_admin.books:disconnect
"""

from __future__ import annotations

import importlib
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any

import yaml

from AdminKernel.kernel.errors import ManifestError

logger = logging.getLogger(__name__)


def import_entry(path: str) -> Any:
    """
    按 "package.module:attr" 导入对象
    Import an object given as "package.module:attr".
    """
    module_path, sep, attr = path.partition(":")
    if not sep or not module_path or not attr:
        raise ManifestError(f"Invalid entry '{path}', expected 'package.module:attr'")
    try:
        target = importlib.import_module(module_path)
    except ImportError as exc:
        raise ManifestError(f"Cannot import module '{module_path}': {exc}") from exc

    for part in attr.split("."):
        try:
            target = getattr(target, part)
        except AttributeError as exc:
            raise ManifestError(f"'{module_path}' has no attribute '{attr}'") from exc
    return target


@dataclass
class ModuleManifest:
    """
    模块清单 - 从 .json / .yaml / .yml 文件加载
    Module manifest - loaded from a .json, .yaml or .yml file.
    """

    # 模块名（唯一标识）
    name: str = ""
    # 描述
    description: str = ""
    # 版本
    version: str = "0.1.0"
    # 依赖的模块名
    requires: list[str] = field(default_factory=list)
    # 加载优先级
    priority: int = 0
    # 是否启用
    enabled: bool = True
    # 连接入口 "package.module:callable"
    entry: str = ""
    # 断开入口（可选）
    disconnect: str = ""
    # 清单文件路径
    path: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "") -> ModuleManifest:
        if not isinstance(data, dict):
            raise ManifestError(f"Manifest {path or '<dict>'} must be a mapping")
        requires = data.get("requires") or []
        if isinstance(requires, str):
            requires = [requires]
        manifest = cls(
            name=data.get("name", ""),
            description=data.get("description", ""),
            version=str(data.get("version", "0.1.0")),
            requires=list(requires),
            priority=int(data.get("priority", 0) or 0),
            enabled=bool(data.get("enabled", True)),
            entry=data.get("entry", ""),
            disconnect=data.get("disconnect", "") or "",
            path=path,
        )
        if not manifest.name:
            raise ManifestError(f"Manifest {path or '<dict>'} has no name")
        if not manifest.entry:
            raise ManifestError(f"Manifest '{manifest.name}' has no entry")
        return manifest

    @classmethod
    def from_file(cls, file_path: str) -> ModuleManifest:
        """
        从文件加载清单
        Load a manifest from file.
        """
        if not os.path.exists(file_path):
            raise ManifestError(f"Manifest not found: {file_path}")

        with open(file_path, encoding="utf-8") as f:
            if file_path.endswith(".json"):
                try:
                    data = json.load(f)
                except json.JSONDecodeError as exc:
                    raise ManifestError(f"Invalid JSON in {file_path}: {exc}") from exc
            elif file_path.endswith((".yaml", ".yml")):
                try:
                    data = yaml.safe_load(f)
                except yaml.YAMLError as exc:
                    raise ManifestError(f"Invalid YAML in {file_path}: {exc}") from exc
            else:
                raise ManifestError(f"Unsupported manifest format: {file_path}")

        logger.debug("已读取模块清单: %s", file_path)
        return cls.from_dict(data or {}, path=file_path)

    def to_definition(self) -> dict[str, Any]:
        """
        转为 ModuleLoader 可接受的映射形态
        Convert into the mapping shape accepted by ModuleLoader.add().
        """
        connect = import_entry(self.entry)
        if not callable(connect):
            raise ManifestError(f"Entry '{self.entry}' of '{self.name}' is not callable")
        definition: dict[str, Any] = {
            "name": self.name,
            "requires": tuple(self.requires),
            "priority": self.priority,
            "enabled": self.enabled,
            "connect": connect,
        }
        if self.disconnect:
            definition["disconnect"] = import_entry(self.disconnect)
        return definition

    def to_dict(self) -> dict[str, Any]:
        """转为字典 / Convert to dictionary."""
        return {
            "name": self.name,
            "description": self.description,
            "version": self.version,
            "requires": list(self.requires),
            "priority": self.priority,
            "enabled": self.enabled,
            "entry": self.entry,
            "disconnect": self.disconnect,
        }
