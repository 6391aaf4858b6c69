"""
模块加载器 - 依赖排序、加载和卸载模块
Module loader - orders, loads and unloads modules by dependency.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from AdminKernel.kernel.errors import (
    CircularDependencyError,
    DuplicateModuleError,
    MissingModuleError,
    ModuleLoadError,
)
from AdminKernel.module.descriptor import ModuleDescriptor, normalize_module

logger = logging.getLogger(__name__)

ContextFactory = Callable[[ModuleDescriptor], Any]


class ModuleLoader:
    """
    模块加载器 - 注册任意形态的模块，按拓扑顺序依次 connect
    Module loader - accepts any module shape and connects them in
    topological order.

    排序规则：在依赖已全部放置的模块中，选择 priority 数值最小的，
    再按注册顺序打破平局。
    Ordering: among modules whose requirements are all placed, pick the
    lowest priority value, then the earliest registration.
    """

    def __init__(self) -> None:
        # 已注册的模块（按注册顺序）: name -> descriptor
        self._registered: dict[str, ModuleDescriptor] = {}
        # 已加载的模块: name -> descriptor
        self._loaded: dict[str, ModuleDescriptor] = {}
        # 加载顺序（用于逆序卸载）
        self._load_order: list[str] = []

    def add(self, definition: Any) -> ModuleLoader:
        """
        注册一个模块（任意形态）
        Register a module in any accepted shape.

        loader.add(UsersModule()).add(UsersModule).add({"name": "simple", "connect": fn})
        """
        descriptor = normalize_module(definition)
        if descriptor.name in self._registered:
            raise DuplicateModuleError(descriptor.name)
        self._registered[descriptor.name] = descriptor
        logger.debug(
            "已注册模块: %s (形态=%s, 依赖=%s, 优先级=%d)",
            descriptor.name,
            descriptor.kind.value,
            list(descriptor.requires),
            descriptor.priority,
        )
        return self

    def resolve_order(self) -> list[str]:
        """
        计算加载顺序
        Compute the load order.

        使用 Kahn 算法：前沿中按 (priority, 注册序号) 选择下一个模块。
        Kahn's algorithm: the next module is picked from the frontier by
        (priority, registration index).
        """
        names = list(self._registered)
        index = {name: i for i, name in enumerate(names)}

        for name, descriptor in self._registered.items():
            for required in descriptor.requires:
                if required not in self._registered:
                    raise MissingModuleError(required, name)

        placed: set[str] = set()
        order: list[str] = []
        unplaced = list(names)

        while unplaced:
            frontier = [
                name
                for name in unplaced
                if all(r in placed for r in self._registered[name].requires)
            ]
            if not frontier:
                raise CircularDependencyError(self._find_cycle(unplaced, placed))
            current = min(
                frontier,
                key=lambda n: (self._registered[n].priority, index[n]),
            )
            order.append(current)
            placed.add(current)
            unplaced.remove(current)

        return order

    def _find_cycle(self, unplaced: list[str], placed: set[str]) -> list[str]:
        """
        沿未放置的依赖边行走直到重复，得到一个环
        Walk unplaced requirement edges until a name repeats.

        前沿为空时，每个未放置模块都至少有一个未放置的依赖，所以行走总能继续。
        With an empty frontier every unplaced module has an unplaced
        requirement, so the walk always continues.
        """
        path: list[str] = []
        seen: dict[str, int] = {}
        current = unplaced[0]
        while current not in seen:
            seen[current] = len(path)
            path.append(current)
            current = next(
                r for r in self._registered[current].requires if r not in placed
            )
        return path[seen[current]:] + [current]

    async def load_all(
        self,
        ctx: Any = None,
        *,
        context_factory: ContextFactory | None = None,
    ) -> None:
        """
        按依赖顺序加载所有模块
        Load every registered module in dependency order.

        context_factory 存在时为每个模块单独创建上下文。
        When context_factory is given, each module gets its own context.

        Raises:
            MissingModuleError: 依赖的模块未注册
            CircularDependencyError: 存在循环依赖
            ModuleLoadError: 某个模块的 connect() 失败（不会回滚已加载模块）
        """
        order = self.resolve_order()

        for name in order:
            if name in self._loaded:
                continue
            descriptor = self._registered[name]

            module_ctx = context_factory(descriptor) if context_factory else ctx
            if not descriptor.is_enabled(module_ctx):
                logger.info("模块 %s 已停用，跳过加载", name)
                continue

            try:
                await descriptor.connect(module_ctx)
            except Exception as exc:
                logger.error("模块 %s 加载失败: %s", name, exc)
                raise ModuleLoadError(name, exc) from exc

            self._loaded[name] = descriptor
            self._load_order.append(name)
            logger.info("已加载模块: %s", name)

        logger.info("已加载 %d 个模块", len(self._loaded))

    async def unload_all(self) -> None:
        """
        按加载顺序的逆序卸载所有模块
        Unload every loaded module in reverse load order.

        disconnect() 的异常直接传播。
        disconnect() failures propagate unchanged.
        """
        for name in reversed(list(self._load_order)):
            descriptor = self._loaded.get(name)
            if descriptor is not None:
                await descriptor.disconnect()
                logger.info("已卸载模块: %s", name)
            self._loaded.pop(name, None)
            self._load_order.remove(name)

        self._loaded.clear()
        self._load_order.clear()

    def get_modules(self) -> dict[str, ModuleDescriptor]:
        """已加载模块的副本（按加载顺序） / Copy of the loaded modules, in load order."""
        return {name: self._loaded[name] for name in self._load_order}

    @property
    def load_order(self) -> list[str]:
        return list(self._load_order)

    def registered_names(self) -> list[str]:
        return list(self._registered)

    def get(self, name: str) -> ModuleDescriptor | None:
        return self._registered.get(name)

    def has(self, name: str) -> bool:
        return name in self._registered

    def is_loaded(self, name: str) -> bool:
        return name in self._loaded
