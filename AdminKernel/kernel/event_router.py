"""
事件路由器 - 声明式的信号到信号路由
Event router - declarative signal-to-signal routing.

    router = EventRouter(signals, {
        "auth:impersonate": [
            "cache:entity:invalidate:loans",
            RouteTarget("notify:banner", lambda p: {"user": p["username"]}),
            lambda payload, ctx: audit(payload),
        ],
    })

目标可以是：
- 字符串：以相同负载转发为另一个信号
- RouteTarget(signal, transform)：转换负载后转发
- 可调用对象 (payload, RouteContext)：直接调用
Targets may be:
- a string: re-emit the payload as another signal
- RouteTarget(signal, transform): re-emit a transformed payload
- a callable (payload, RouteContext): called directly

信号目标之间不允许成环，在构造和 add_route() 时检测。
Signal targets may not form a cycle; checked on construction and add_route().
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Union

from AdminKernel.kernel.errors import EventRouteError
from AdminKernel.kernel.signal_bus import Signal, SignalBus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RouteTarget:
    """带可选转换的信号目标 / A signal target with an optional payload transform."""

    signal: str
    transform: Callable[[Any], Any] | None = None


@dataclass
class RouteContext:
    """传给回调目标的上下文 / Context passed to callback targets."""

    signals: SignalBus
    source: str
    context: Any = None


Target = Union[str, RouteTarget, Callable[[Any, RouteContext], Any]]
Routes = Mapping[str, Sequence[Target]]


def _signal_of(target: Target) -> str | None:
    if isinstance(target, str):
        return target
    if isinstance(target, RouteTarget):
        return target.signal
    return None


def detect_cycle(routes: Routes) -> list[str] | None:
    """
    深度优先检测信号目标间的环
    Depth-first cycle detection over signal targets.

    回调目标不产生边。找到环时返回如 ["a", "b", "a"] 的路径。
    Callback targets add no edges. Returns a path like ["a", "b", "a"].
    """
    graph = {
        source: [s for s in map(_signal_of, targets) if s is not None]
        for source, targets in routes.items()
    }
    visited: set[str] = set()
    on_stack: set[str] = set()
    path: list[str] = []

    def dfs(node: str) -> list[str] | None:
        visited.add(node)
        on_stack.add(node)
        path.append(node)
        for neighbor in graph.get(node, []):
            if neighbor in on_stack:
                return path[path.index(neighbor):] + [neighbor]
            if neighbor not in visited:
                cycle = dfs(neighbor)
                if cycle:
                    return cycle
        path.pop()
        on_stack.discard(node)
        return None

    for node in graph:
        if node not in visited:
            cycle = dfs(node)
            if cycle:
                return cycle
    return None


def _validate(source: str, targets: Any) -> None:
    if isinstance(targets, (str, bytes)) or not isinstance(targets, Sequence):
        raise EventRouteError(f"Route '{source}' must be a list of targets")
    for i, target in enumerate(targets):
        if not isinstance(target, (str, RouteTarget)) and not callable(target):
            raise EventRouteError(
                f"Invalid target at '{source}'[{i}]: must be a signal name, "
                "RouteTarget or callable"
            )


class EventRouter:
    """
    事件路由器 - 监听源信号并分发到各个目标
    Event router - listens to source signals and fans out to targets.

    单个目标出错只记录日志，不影响其他目标。
    A failing target is logged and does not stop the others.
    """

    def __init__(
        self,
        signals: SignalBus,
        routes: Routes | None = None,
        *,
        context: Any = None,
    ) -> None:
        self._signals = signals
        self._context = context
        self._routes: dict[str, list[Target]] = {}
        self._cleanups: list[Callable[[], None]] = []

        routes = dict(routes or {})
        for source, targets in routes.items():
            _validate(source, targets)
        cycle = detect_cycle(routes)
        if cycle:
            raise EventRouteError(f"Cycle detected: {' -> '.join(cycle)}", cycle)

        for source, targets in routes.items():
            self._listen(source, list(targets))
        logger.debug("事件路由器已注册 %d 条路由", len(self._routes))

    def add_route(self, source: str, targets: Sequence[Target]) -> None:
        """
        添加一条路由
        Add a route.

        Raises:
            EventRouteError: 源已存在、目标无效或会产生环
        """
        if source in self._routes:
            raise EventRouteError(f"Route '{source}' already exists")
        _validate(source, targets)
        cycle = detect_cycle({**self._routes, source: targets})
        if cycle:
            raise EventRouteError(
                f"Adding route would create cycle: {' -> '.join(cycle)}", cycle
            )
        self._listen(source, list(targets))

    def get_routes(self) -> dict[str, list[Target]]:
        return {source: list(targets) for source, targets in self._routes.items()}

    def dispose(self) -> None:
        """取消所有监听 / Drop every listener."""
        for cleanup in self._cleanups:
            cleanup()
        self._cleanups.clear()
        self._routes.clear()

    def _listen(self, source: str, targets: list[Target]) -> None:
        self._routes[source] = targets

        async def handle(signal: Signal) -> None:
            await self._dispatch(source, signal.data, targets)

        self._cleanups.append(self._signals.on(source, handle))

    async def _dispatch(self, source: str, payload: Any, targets: list[Target]) -> None:
        route_context = RouteContext(self._signals, source, self._context)
        for target in targets:
            try:
                if isinstance(target, str):
                    await self._signals.emit(target, payload, source="router")
                elif isinstance(target, RouteTarget):
                    data = target.transform(payload) if target.transform else payload
                    await self._signals.emit(target.signal, data, source="router")
                else:
                    result = target(payload, route_context)
                    if inspect.isawaitable(result):
                        await result
            except Exception:
                logger.exception("路由 %s -> %r 执行出错", source, target)
