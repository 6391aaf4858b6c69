"""
模块描述符 - 将各种模块输入形态规范化为统一结构
Module descriptor - normalizes every accepted module shape into one record.

支持的输入形态：
1. Module 实例
2. 带类属性 name 且有 connect 方法的类（实例化一次）
3. 普通对象（映射或带属性的对象）：name + connect，可选 requires/priority/enabled/disconnect
4. 具名函数 fn(ctx) - 旧式一次性初始化器
Accepted shapes:
1. a Module instance
2. a class with a class-level `name` and a `connect` method (instantiated once)
3. a plain object (mapping or attribute object) with name + connect, optional
   requires/priority/enabled/disconnect
4. a named function fn(ctx) - legacy single-shot initializer

加载器只处理规范化后的描述符，不再检查原始输入。
The loader only ever sees descriptors, never the raw input again.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from AdminKernel.kernel.errors import InvalidModuleFormatError
from AdminKernel.module.base import Module

logger = logging.getLogger(__name__)


class ModuleKind(str, Enum):
    """描述符来源形态 / Which input shape produced a descriptor."""

    INSTANCE = "instance"
    CLASS = "class"
    OBJECT = "object"
    LEGACY = "legacy"


async def _maybe_await(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


@dataclass(eq=False)
class ModuleDescriptor:
    """
    规范化的模块描述符
    Canonical module descriptor.

    cleanups 是模块自有的清理列表，在 disconnect() 中只清空一次。
    `cleanups` is the module's own cleanup list, drained once in disconnect().
    """

    name: str
    kind: ModuleKind
    target: Any
    connect_fn: Callable[[Any], Any]
    requires: tuple[str, ...] = ()
    priority: int = 0
    enabled_fn: Callable[[Any], bool] | None = None
    disconnect_fn: Callable[[], Any] | None = None
    cleanups: list[Callable[[], None]] = field(default_factory=list)
    connected: bool = False

    def is_enabled(self, ctx: Any) -> bool:
        if self.enabled_fn is None:
            return True
        return bool(self.enabled_fn(ctx))

    async def connect(self, ctx: Any) -> None:
        if isinstance(self.target, Module):
            self.target.ctx = ctx
        await _maybe_await(self.connect_fn(ctx))
        self.connected = True

    def add_cleanup(self, cleanup: Callable[[], None]) -> None:
        """登记卸载时执行的清理函数 / Register a cleanup run on disconnect."""
        self.cleanups.append(cleanup)

    async def disconnect(self) -> None:
        """
        断开模块并清理监听（幂等）
        Disconnect the module and drain its cleanups (idempotent).
        """
        if not self.connected:
            return
        self.connected = False
        try:
            if self.disconnect_fn is not None:
                await _maybe_await(self.disconnect_fn())
        finally:
            cleanups, self.cleanups = self.cleanups, []
            for cleanup in cleanups:
                cleanup()
            if isinstance(self.target, Module):
                self.target.ctx = None


def _as_names(value: Any, owner: str) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    if isinstance(value, Iterable):
        return tuple(value)
    raise InvalidModuleFormatError(
        f"Module '{owner}' has invalid requires: {value!r}", value
    )


def _enabled_fn(value: Any) -> Callable[[Any], bool] | None:
    if value is None:
        return None
    if callable(value):
        return value
    flag = bool(value)
    return lambda ctx: flag


def _require_name(name: Any, definition: Any) -> str:
    if not isinstance(name, str) or not name or name == "<lambda>":
        raise InvalidModuleFormatError(
            "Module must have a name (class attribute, 'name' key or function name)",
            definition,
        )
    return name


def _from_attributes(target: Any, kind: ModuleKind, definition: Any) -> ModuleDescriptor:
    name = _require_name(getattr(target, "name", None), definition)
    connect = getattr(target, "connect", None)
    if not callable(connect):
        raise InvalidModuleFormatError(
            f"Module '{name}' has no callable connect()", definition
        )
    disconnect = getattr(target, "disconnect", None)
    return ModuleDescriptor(
        name=name,
        kind=kind,
        target=target,
        connect_fn=connect,
        requires=_as_names(getattr(target, "requires", None), name),
        priority=int(getattr(target, "priority", 0) or 0),
        enabled_fn=_enabled_fn(getattr(target, "enabled", None)),
        disconnect_fn=disconnect if callable(disconnect) else None,
    )


def _from_mapping(definition: Mapping[str, Any]) -> ModuleDescriptor:
    name = _require_name(definition.get("name"), definition)
    connect = definition.get("connect")
    if not callable(connect):
        raise InvalidModuleFormatError(
            f"Module '{name}' has no callable connect", definition
        )
    disconnect = definition.get("disconnect")
    return ModuleDescriptor(
        name=name,
        kind=ModuleKind.OBJECT,
        target=definition,
        connect_fn=connect,
        requires=_as_names(definition.get("requires"), name),
        priority=int(definition.get("priority", 0) or 0),
        enabled_fn=_enabled_fn(definition.get("enabled")),
        disconnect_fn=disconnect if callable(disconnect) else None,
    )


def _from_function(fn: Callable[[Any], Any]) -> ModuleDescriptor:
    name = _require_name(getattr(fn, "__name__", None), fn)
    return ModuleDescriptor(
        name=name,
        kind=ModuleKind.LEGACY,
        target=fn,
        connect_fn=fn,
    )


def normalize_module(definition: Any) -> ModuleDescriptor:
    """
    按能力检测模块形态并生成描述符
    Detect the module shape by capability and build its descriptor.
    """
    if isinstance(definition, ModuleDescriptor):
        return definition

    if isinstance(definition, Module):
        return _from_attributes(definition, ModuleKind.INSTANCE, definition)

    if inspect.isclass(definition):
        declared = getattr(definition, "name", None)
        if (
            isinstance(declared, str)
            and declared
            and callable(getattr(definition, "connect", None))
        ):
            instance = definition()
            kind = (
                ModuleKind.INSTANCE if isinstance(instance, Module) else ModuleKind.CLASS
            )
            return _from_attributes(instance, kind, definition)
        raise InvalidModuleFormatError(
            f"Class {definition.__name__} needs a class attribute 'name' and a connect() method",
            definition,
        )

    if isinstance(definition, Mapping):
        return _from_mapping(definition)

    if inspect.isfunction(definition) or inspect.ismethod(definition):
        return _from_function(definition)

    if hasattr(definition, "name") and callable(getattr(definition, "connect", None)):
        return _from_attributes(definition, ModuleKind.OBJECT, definition)

    raise InvalidModuleFormatError(
        "Invalid module format. Expected: Module instance, Module class, "
        "object with connect(), or function",
        definition,
    )
