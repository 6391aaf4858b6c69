"""
编排内核 - 框架的最小化核心
Orchestration kernel - the minimal core of the framework.

包含信号总线、钩子注册表、延迟注册表、事件路由和内核引导。
Contains the signal bus, hook registry, deferred registry, event router and
the kernel bootstrap.
"""

from AdminKernel.kernel.context import KernelContext
from AdminKernel.kernel.deferred import DeferredRegistry, DeferredStatus
from AdminKernel.kernel.errors import (
    CircularDependencyError,
    DuplicateHandlerError,
    DuplicateModuleError,
    EventRouteError,
    HookInvocationError,
    InvalidModuleFormatError,
    KernelError,
    ManifestError,
    MissingModuleError,
    ModuleLoadError,
    SignalTimeoutError,
)
from AdminKernel.kernel.event_router import EventRouter, RouteContext, RouteTarget
from AdminKernel.kernel.hooks import HookEvent, HookPriority, HookRegistry
from AdminKernel.kernel.signal_bus import Signal, SignalBus, Signals, build_signal
from AdminKernel.kernel.ui_registry import UiRegistry
from AdminKernel.kernel.bootstrap import Kernel

__all__ = [
    "Kernel",
    "KernelContext",
    "SignalBus",
    "Signal",
    "Signals",
    "build_signal",
    "HookRegistry",
    "HookEvent",
    "HookPriority",
    "DeferredRegistry",
    "DeferredStatus",
    "EventRouter",
    "RouteTarget",
    "RouteContext",
    "UiRegistry",
    "KernelError",
    "DuplicateModuleError",
    "InvalidModuleFormatError",
    "MissingModuleError",
    "CircularDependencyError",
    "ModuleLoadError",
    "DuplicateHandlerError",
    "HookInvocationError",
    "SignalTimeoutError",
    "EventRouteError",
    "ManifestError",
]
