"""
界面注册表 - 收集模块声明的路由、导航、区域和注入值
UI registry - collects the routes, nav items, zones and provided values
declared by modules.

内核不解释这些条目，只负责保存并交给外部的界面层。
The kernel does not interpret these entries; it only stores them for the
external UI layer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class RouteGroup:
    """一个模块在 base_path 下注册的路由 / Routes registered under one base path."""

    base_path: str
    routes: list[Any]
    options: dict[str, Any] = field(default_factory=dict)


@dataclass
class Zone:
    """
    区域 - 可插入区块的命名位置
    Zone - a named slot that blocks are rendered into.
    """

    name: str
    options: dict[str, Any] = field(default_factory=dict)
    blocks: list[dict[str, Any]] = field(default_factory=list)

    def sorted_blocks(self) -> list[dict[str, Any]]:
        # weight 越小越靠前，相同权重保持注册顺序
        return sorted(self.blocks, key=lambda block: block.get("weight", 50))


class UiRegistry:
    """界面注册表 / UI registry."""

    def __init__(self) -> None:
        self.route_groups: list[RouteGroup] = []
        self.nav_items: list[dict[str, Any]] = []
        self.route_families: dict[str, list[str]] = {}
        self.zones: dict[str, Zone] = {}
        self.provides: dict[str, Any] = {}

    def add_routes(
        self, base_path: str, routes: list[Any], options: dict[str, Any] | None = None
    ) -> None:
        self.route_groups.append(RouteGroup(base_path, list(routes), dict(options or {})))
        logger.debug("已注册路由组 %s (%d 条)", base_path, len(routes))

    def add_nav_item(self, item: dict[str, Any]) -> None:
        self.nav_items.append(dict(item))

    def add_route_family(self, base: str, prefixes: list[str]) -> None:
        family = self.route_families.setdefault(base, [])
        family.extend(p for p in prefixes if p not in family)

    def family_of(self, route_name: str) -> str | None:
        """
        查找路由所属的路由族（用于导航高亮）
        Find the family a route name belongs to, for active nav detection.
        """
        for base, prefixes in self.route_families.items():
            if route_name == base or any(route_name.startswith(p) for p in prefixes):
                return base
        return None

    def define_zone(self, name: str, options: dict[str, Any] | None = None) -> Zone:
        zone = self.zones.get(name)
        if zone is None:
            zone = Zone(name)
            self.zones[name] = zone
        zone.options.update(options or {})
        return zone

    def register_block(self, zone_name: str, config: dict[str, Any]) -> None:
        # 区块可以在区域定义之前注册
        self.define_zone(zone_name).blocks.append(dict(config))

    def get_blocks(self, zone_name: str) -> list[dict[str, Any]]:
        zone = self.zones.get(zone_name)
        return zone.sorted_blocks() if zone else []

    def provide(self, key: str, value: Any) -> None:
        if key in self.provides:
            logger.warning("注入值 %s 被覆盖", key)
        self.provides[key] = value

    def clear(self) -> None:
        self.route_groups.clear()
        self.nav_items.clear()
        self.route_families.clear()
        self.zones.clear()
        self.provides.clear()
