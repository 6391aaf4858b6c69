"""
模块基类 - 所有类式模块的父类
Module base - parent of all class-based modules.
"""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)


class Module:
    """
    模块基类 - 封装实体、路由、导航、区域和信号监听的注册
    Module base - encapsulates entity, route, nav, zone and signal registration.

    生命周期：
    1. __init__(**options) - 构造
    2. enabled(ctx) - 决定是否加载
    3. connect(ctx) - 加载时调用，主要注册入口
    4. disconnect() - 卸载时调用

    通过 ctx.on()/ctx.hook() 注册的监听会在卸载时自动清理。
    Listeners registered through ctx.on()/ctx.hook() are removed automatically
    on unload.

    示例 / Example::

        class BooksModule(Module):
            name = "books"
            requires = ("genres",)
            priority = 10

            async def connect(self, ctx):
                ctx.routes("books", [...]).nav_item({...})
    """

    # 唯一模块名（依赖解析使用）
    name: str = ""
    # 必须先加载的模块
    requires: tuple[str, ...] = ()
    # 加载优先级（越小越先加载）
    priority: int = 0

    def __init__(self, **options: Any) -> None:
        self.options = options
        self.ctx: Any = None
        if options.get("name"):
            # 实例级名称覆盖类属性
            self.name = options["name"]

    def enabled(self, ctx: Any) -> bool:
        """
        是否启用 - 子类可按条件覆盖
        Whether the module is enabled - override for conditional loading.
        """
        return True

    async def connect(self, ctx: Any) -> None:
        """连接到内核 / Connect to the kernel."""

    async def disconnect(self) -> None:
        """从内核断开 / Disconnect from the kernel."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
