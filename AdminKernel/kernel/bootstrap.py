"""
内核引导器 - 模块编排内核的生命周期管理
Kernel bootstrap - lifecycle management of the module orchestration kernel.

负责按正确顺序装配子系统、加载模块，并管理关闭流程。
Wires the subsystems in the right order, loads modules and manages shutdown.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from collections.abc import Iterable, Mapping
from typing import Any

from AdminKernel.config.defaults import build_default_config
from AdminKernel.config.manager import ConfigManager
from AdminKernel.kernel.context import KernelContext
from AdminKernel.kernel.deferred import DeferredRegistry
from AdminKernel.kernel.event_router import EventRouter
from AdminKernel.kernel.hooks import HookRegistry
from AdminKernel.kernel.signal_bus import SignalBus, Signals
from AdminKernel.kernel.ui_registry import UiRegistry
from AdminKernel.module.descriptor import ModuleDescriptor
from AdminKernel.module.loader import ModuleLoader
from AdminKernel.module.manifest import ModuleManifest

logger = logging.getLogger(__name__)


class Kernel:
    """
    内核 - 编排整个管理界面后端的启动和关闭
    Kernel - orchestrates startup and shutdown of the admin backend.

    启动顺序：
    1. 注册传入的模块和配置中的模块清单
    2. 按依赖顺序加载模块（每个模块拥有自己的上下文）
    3. 发射 kernel:ready 信号
    4. 构建事件路由器

    关闭顺序：
    1. 发射 kernel:shutdown 信号
    2. 销毁事件路由器
    3. 逆序卸载模块
    4. 清空钩子、信号和延迟项
    """

    def __init__(
        self,
        modules: Iterable[Any] = (),
        *,
        config: ConfigManager | None = None,
        event_routes: Mapping[str, Any] | None = None,
        ui: UiRegistry | None = None,
    ) -> None:
        self.config = config or ConfigManager(defaults=build_default_config())
        self.signals = SignalBus()
        self.hooks = HookRegistry()
        self.deferred = DeferredRegistry()
        self.ui = ui or UiRegistry()
        self.loader = ModuleLoader()
        self.router: EventRouter | None = None

        self._modules = list(modules)
        self._event_routes = dict(event_routes or {})
        self._shutdown_event = asyncio.Event()
        self._started = False
        self._registered = False

        if self.config.get("kernel.deferred_signals", True):
            self.deferred.set_signals(self.signals)

    @property
    def debug(self) -> bool:
        return bool(self.config.get("kernel.debug", False))

    @property
    def started(self) -> bool:
        return self._started

    def create_context(self, descriptor: ModuleDescriptor | None = None) -> KernelContext:
        """
        为模块创建上下文
        Create the context handed to a module.
        """
        return KernelContext(
            signals=self.signals,
            hooks=self.hooks,
            deferred=self.deferred,
            ui=self.ui,
            config=self.config,
            module=descriptor,
            debug=self.debug,
        )

    async def start(self) -> None:
        """
        启动内核
        Start the kernel.
        """
        if self._started:
            logger.warning("内核已启动，忽略重复启动")
            return
        logger.info("AdminKernel 正在启动...")
        self._shutdown_event.clear()

        # 注册模块（关闭后再次启动时沿用已注册的模块）
        if not self._registered:
            self._register_modules()
            self._registered = True

        # 加载模块
        await self.loader.load_all(context_factory=self.create_context)

        self._started = True

        # 发射就绪信号
        if self.config.get("kernel.ready_signal", True):
            await self.signals.emit(Signals.KERNEL_READY, {"ready": True}, source="kernel")

        # 构建事件路由
        routes = {**(self.config.get("event_routes") or {}), **self._event_routes}
        if routes:
            self.router = EventRouter(self.signals, routes, context=self)
            logger.info("事件路由已构建，共 %d 条路由", len(routes))

        logger.info(
            "AdminKernel 启动成功，已加载模块: %s",
            ", ".join(self.loader.load_order) or "(无)",
        )

    def _register_modules(self) -> None:
        for definition in self._modules:
            self.loader.add(definition)

        for path in self.config.get("modules.manifests") or []:
            manifest = ModuleManifest.from_file(path)
            self.loader.add(manifest.to_definition())
            logger.debug("已从清单注册模块 %s (%s)", manifest.name, path)

    async def run_forever(self) -> None:
        """
        持续运行直到收到关闭信号
        Run until a shutdown signal is received.
        """
        loop = asyncio.get_running_loop()

        # 注册系统信号（仅 Unix）
        if sys.platform != "win32":
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, self._shutdown_event.set)

        try:
            await self._shutdown_event.wait()
        finally:
            await self.shutdown()

    def request_shutdown(self) -> None:
        """请求 run_forever() 退出 / Ask run_forever() to return."""
        self._shutdown_event.set()

    async def shutdown(self) -> None:
        """
        优雅关闭
        Graceful shutdown.
        """
        if not self._started and not self.loader.load_order:
            return
        logger.info("AdminKernel 正在关闭...")

        # 发射关闭信号
        await self.signals.emit(Signals.KERNEL_SHUTDOWN, source="kernel")

        if self.router is not None:
            self.router.dispose()
            self.router = None

        # 逆序卸载模块
        await self.loader.unload_all()

        self.hooks.dispose()
        self.signals.off_all()
        self.deferred.clear_all()
        self._started = False

        logger.info("AdminKernel 已完全关闭")
