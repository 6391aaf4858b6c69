"""
信号总线 - 支持通配符的发布/订阅事件系统
Signal bus - wildcard-capable publish/subscribe event system.

信号名使用冒号分隔（如 "books:created"），订阅模式中的任意一段
都可以是 "*"，整体为 "*" 时匹配所有信号。
Signal names are colon-delimited (e.g. "books:created"); any segment of a
subscription pattern may be "*", and a bare "*" matches every signal.

处理器按优先级从高到低依次等待执行；异常不会被吞掉。
Handlers are awaited one by one in descending priority; exceptions propagate.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

from AdminKernel.kernel.errors import SignalTimeoutError

logger = logging.getLogger(__name__)

SignalHandler = Callable[..., Any]

WILDCARD = "*"
DELIMITER = ":"


class Signals:
    """
    约定的信号名 / Conventional signal names.

    实体相关信号可用 build_signal(kind, action) 生成。
    Entity-specific names are built with build_signal(kind, action).
    """

    ENTITY_CREATED = "entity:created"
    ENTITY_UPDATED = "entity:updated"
    ENTITY_DELETED = "entity:deleted"

    KERNEL_READY = "kernel:ready"
    KERNEL_SHUTDOWN = "kernel:shutdown"

    DEFERRED_STARTED = "deferred:started"
    DEFERRED_COMPLETED = "deferred:completed"
    DEFERRED_FAILED = "deferred:failed"

    AUTH_LOGIN = "auth:login"
    AUTH_LOGOUT = "auth:logout"
    AUTH_EXPIRED = "auth:expired"

    API_ERROR = "api:error"


class EntityAction:
    """实体动作 / Entity actions."""

    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


def build_signal(kind: str, action: str) -> str:
    """生成实体信号名 / Build an entity signal name, e.g. "books:created"."""
    return f"{kind}{DELIMITER}{action}"


@lru_cache(maxsize=512)
def _compile_pattern(pattern: str) -> re.Pattern[str]:
    if pattern == WILDCARD:
        return re.compile(r".*", re.DOTALL)
    parts = [
        r"[^:]+" if segment == WILDCARD else re.escape(segment)
        for segment in pattern.split(DELIMITER)
    ]
    return re.compile(DELIMITER.join(parts))


def match_signal(pattern: str, signal_name: str) -> bool:
    """
    检查信号名是否匹配订阅模式
    Check whether a signal name matches a subscription pattern.

    "*" 段匹配恰好一段；整体 "*" 匹配任意名称。
    A "*" segment matches exactly one segment; a bare "*" matches anything.
    """
    if pattern == signal_name:
        return True
    if WILDCARD not in pattern:
        return False
    return _compile_pattern(pattern).fullmatch(signal_name) is not None


@dataclass
class Signal:
    """
    信号对象 - 传递给处理器的消息载体
    Signal object - the message carrier handed to handlers.
    """

    name: str
    data: Any = None
    source: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(eq=False)
class Subscription:
    """
    订阅 - 将处理器绑定到信号模式上
    Subscription - binds a handler to a signal pattern.
    """

    pattern: str
    handler: SignalHandler
    priority: int = 0
    once: bool = False
    sub_id: str = ""
    sequence: int = 0


class SignalBus:
    """
    信号总线 - 管理所有订阅和分发
    Signal bus - manages every subscription and dispatch.

    核心规则：
    1. 优先级从高到低执行，同优先级按注册顺序
    2. 每次分发前对匹配的订阅做快照，处理器中退订不会影响本次遍历
    3. once 订阅在执行前移除
    """

    def __init__(self) -> None:
        # 订阅模式 -> 订阅列表
        self._subscriptions: dict[str, list[Subscription]] = {}
        self._counter = 0

    def on(
        self,
        pattern: str,
        handler: SignalHandler,
        *,
        priority: int = 0,
        once: bool = False,
    ) -> Callable[[], None]:
        """
        订阅信号，返回退订函数
        Subscribe to a signal pattern; returns an unsubscribe function.
        """
        self._counter += 1
        subscription = Subscription(
            pattern=pattern,
            handler=handler,
            priority=priority,
            once=once,
            sub_id=f"sub_{self._counter}",
            sequence=self._counter,
        )
        self._subscriptions.setdefault(pattern, []).append(subscription)
        logger.debug("已订阅 %s -> %s", subscription.sub_id, pattern)

        def unsubscribe() -> None:
            self._remove(subscription)

        return unsubscribe

    def off(self, pattern: str, handler: SignalHandler) -> bool:
        """
        按模式和处理器退订
        Unsubscribe a handler from a pattern.
        """
        for subscription in list(self._subscriptions.get(pattern, [])):
            if subscription.handler == handler:
                self._remove(subscription)
                return True
        return False

    def off_all(self, pattern: str | None = None) -> None:
        """
        移除某个模式（或全部）的订阅
        Remove every subscription of a pattern, or all of them.
        """
        if pattern is None:
            self._subscriptions.clear()
        else:
            self._subscriptions.pop(pattern, None)

    def once(
        self,
        pattern: str,
        *,
        timeout: float | None = None,
        priority: int = 0,
    ) -> asyncio.Task[Any]:
        """
        等待下一个匹配的信号
        Wait for the next matching signal.

        订阅立即生效，返回的任务以信号数据完成；超时则抛出 SignalTimeoutError。
        The subscription is active immediately; the returned task resolves with
        the signal data, or raises SignalTimeoutError after `timeout` seconds.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()

        def deliver(signal: Signal) -> None:
            if not future.done():
                future.set_result(signal.data)

        unsubscribe = self.on(pattern, deliver, priority=priority, once=True)
        return loop.create_task(
            self._wait_once(pattern, future, unsubscribe, timeout)
        )

    async def _wait_once(
        self,
        pattern: str,
        future: asyncio.Future[Any],
        unsubscribe: Callable[[], None],
        timeout: float | None,
    ) -> Any:
        try:
            return await asyncio.wait_for(future, timeout)
        except asyncio.TimeoutError:
            raise SignalTimeoutError(pattern, timeout or 0.0) from None
        finally:
            unsubscribe()

    async def emit(
        self, name: str, data: Any = None, *, source: str = ""
    ) -> Signal:
        """
        发射信号，依次等待所有匹配的处理器
        Emit a signal, awaiting every matching handler in turn.
        """
        signal = Signal(name=name, data=data, source=source)
        matching = [
            subscription
            for pattern, subscriptions in self._subscriptions.items()
            if match_signal(pattern, name)
            for subscription in subscriptions
        ]
        matching.sort(key=lambda s: (-s.priority, s.sequence))
        logger.debug("发射信号 %s (%d 个处理器)", name, len(matching))

        for subscription in matching:
            if subscription.once:
                # 已被同一轮中的其他处理器移除则跳过
                if not self._remove(subscription):
                    continue
            result = subscription.handler(signal)
            if inspect.isawaitable(result):
                await result

        return signal

    async def emit_entity(self, kind: str, action: str, data: Any = None) -> Signal:
        """
        发射通用实体信号 entity:<action>，负载为 {"entity": kind, "data": data}
        Emit the generic entity:<action> signal with {"entity": kind, "data": data}.
        """
        return await self.emit(
            build_signal("entity", action), {"entity": kind, "data": data}
        )

    def listener_count(self, pattern: str | None = None) -> int:
        """获取订阅数量 / Get the number of subscriptions."""
        if pattern is None:
            return sum(len(subs) for subs in self._subscriptions.values())
        return len(self._subscriptions.get(pattern, []))

    def signal_names(self) -> list[str]:
        """获取所有已订阅的模式 / Get every subscribed pattern."""
        return list(self._subscriptions.keys())

    def _remove(self, subscription: Subscription) -> bool:
        subscriptions = self._subscriptions.get(subscription.pattern)
        if not subscriptions or subscription not in subscriptions:
            return False
        subscriptions.remove(subscription)
        if not subscriptions:
            del self._subscriptions[subscription.pattern]
        logger.debug("已退订 %s", subscription.sub_id)
        return True
