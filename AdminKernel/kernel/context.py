"""
内核上下文 - 模块 connect(ctx) 时拿到的注册门面
Kernel context - the registration facade a module receives in connect(ctx).

每个模块拥有自己的上下文；通过 on()/hook() 注册的监听会登记到
该模块的清理列表，模块断开时自动移除。
Each module gets its own context; listeners registered through on()/hook()
are recorded on that module's cleanup list and removed on disconnect.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from AdminKernel.config.manager import ConfigManager
    from AdminKernel.kernel.deferred import DeferredRegistry
    from AdminKernel.kernel.hooks import HookRegistry
    from AdminKernel.kernel.signal_bus import SignalBus
    from AdminKernel.kernel.ui_registry import UiRegistry
    from AdminKernel.module.descriptor import ModuleDescriptor

logger = logging.getLogger(__name__)


class KernelContext:
    """
    内核上下文 - 流式 API，所有注册方法都返回 self
    Kernel context - fluent API; every registration method returns self.

    示例 / Example::

        async def connect(self, ctx):
            (
                ctx.routes("books", [{"path": "", "name": "book"}])
                .nav_item({"section": "Library", "route": "book"})
                .on("books:created", self.on_created)
                .hook("books:list:alter", self.alter_list)
            )
    """

    def __init__(
        self,
        signals: SignalBus,
        hooks: HookRegistry,
        deferred: DeferredRegistry,
        ui: UiRegistry,
        config: ConfigManager | None = None,
        module: ModuleDescriptor | None = None,
        debug: bool = False,
    ) -> None:
        self._signals = signals
        self._hooks = hooks
        self._deferred = deferred
        self._ui = ui
        self._config = config
        self._module = module
        self._debug = debug

    @property
    def signals(self) -> SignalBus:
        return self._signals

    @property
    def hooks(self) -> HookRegistry:
        return self._hooks

    @property
    def deferred(self) -> DeferredRegistry:
        return self._deferred

    @property
    def ui(self) -> UiRegistry:
        return self._ui

    @property
    def config(self) -> ConfigManager | None:
        return self._config

    @property
    def debug(self) -> bool:
        return self._debug

    @property
    def module(self) -> ModuleDescriptor | None:
        """当前模块的描述符 / Descriptor of the module owning this context."""
        return self._module

    def routes(self, base_path: str, routes: list[Any], **options: Any) -> KernelContext:
        self._ui.add_routes(base_path, routes, options)
        return self

    def nav_item(self, item: dict[str, Any]) -> KernelContext:
        self._ui.add_nav_item(item)
        return self

    def route_family(self, base: str, prefixes: list[str]) -> KernelContext:
        self._ui.add_route_family(base, prefixes)
        return self

    def zone(self, name: str, **options: Any) -> KernelContext:
        self._ui.define_zone(name, options)
        return self

    def block(self, zone_name: str, config: dict[str, Any]) -> KernelContext:
        self._ui.register_block(zone_name, config)
        return self

    def provide(self, key: str, value: Any) -> KernelContext:
        self._ui.provide(key, value)
        return self

    def on(
        self, pattern: str, handler: Callable[..., Any], **options: Any
    ) -> KernelContext:
        """
        订阅信号，模块断开时自动取消
        Subscribe to a signal; unsubscribed automatically on disconnect.
        """
        unsubscribe = self._signals.on(pattern, handler, **options)
        self._track(unsubscribe)
        return self

    def hook(
        self, hook_name: str, handler: Callable[..., Any], **options: Any
    ) -> KernelContext:
        """
        注册钩子处理器，模块断开时自动解绑
        Register a hook handler; unbound automatically on disconnect.
        """
        unbind = self._hooks.register(hook_name, handler, **options)
        self._track(unbind)
        return self

    def defer(self, key: str, executor: Callable[[], Any]) -> KernelContext:
        self._deferred.queue(key, executor)
        return self

    def _track(self, cleanup: Callable[[], None]) -> None:
        if self._module is not None:
            self._module.add_cleanup(cleanup)
        else:
            logger.debug("上下文未绑定模块，监听不会被自动清理")
