"""
钩子注册表 - 按名称组织的扩展点
Hook registry - named extension points.

两种调用协议：
- invoke(): 扇出执行，处理器直接修改共享上下文，带错误边界
- alter(): 值传递链，每个处理器接收上一个处理器的输出，无错误边界
Two invocation protocols:
- invoke(): fan-out; handlers mutate a shared context, behind an error boundary
- alter(): value threading; each handler receives the previous output, no boundary

钩子名使用冒号分隔（如 "entity:presave"、"books:list:alter"）。
Hook names are colon-delimited (e.g. "entity:presave", "books:list:alter").
"""

from __future__ import annotations

import copy
import inspect
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

from AdminKernel.kernel.errors import DuplicateHandlerError, HookInvocationError

logger = logging.getLogger(__name__)

HookHandler = Callable[..., Any]


class HookPriority(IntEnum):
    """常用优先级（越大越先执行） / Common priorities (higher runs first)."""

    FIRST = 100
    HIGH = 75
    NORMAL = 50
    LOW = 25
    LAST = 0


@dataclass(eq=False)
class HookRegistration:
    """
    钩子注册项 - 描述一个注册的处理器
    Hook registration - describes one registered handler.
    """

    hook_name: str
    handler: HookHandler
    handler_id: str
    priority: int = HookPriority.NORMAL
    # 必须在这些处理器之后执行
    after: tuple[str, ...] = ()
    once: bool = False
    # 注册序号，用于稳定排序
    sequence: int = 0


@dataclass
class HookEvent:
    """
    钩子事件 - 在一次 invoke() 中所有处理器共享
    Hook event - shared by every handler of one invoke() pass.
    """

    hook_name: str
    context: Any = None
    # (handler_id, 异常) 按调用顺序记录
    errors: list[tuple[str, BaseException]] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        return bool(self.errors)


def _normalize_after(after: str | Iterable[str] | None) -> tuple[str, ...]:
    if after is None:
        return ()
    if isinstance(after, str):
        return (after,)
    return tuple(after)


def _rank(registration: HookRegistration) -> tuple[int, int]:
    return (-registration.priority, registration.sequence)


def sort_registrations(
    registrations: list[HookRegistration],
) -> list[HookRegistration]:
    """
    计算处理器执行顺序
    Compute the handler execution order.

    1. after 中列出的处理器先执行
    2. 其次按优先级从高到低
    3. 最后按注册顺序
    未知的 after ID 被忽略；after 成环时，在环内按优先级/注册顺序释放一个处理器。
    Unknown `after` ids are ignored; when `after` relations form a cycle, one
    handler of the cycle is released by priority/registration order.
    """
    by_id = {r.handler_id: r for r in registrations}
    # 处理器 -> 必须先于它执行的处理器
    predecessors: dict[HookRegistration, list[HookRegistration]] = {
        r: [by_id[dep] for dep in r.after if dep in by_id and by_id[dep] is not r]
        for r in registrations
    }

    placed: set[HookRegistration] = set()
    pending = list(registrations)
    ordered: list[HookRegistration] = []

    while pending:
        ready = [r for r in pending if all(p in placed for p in predecessors[r])]
        if not ready:
            ready = _cycle_candidates(pending, predecessors, placed)
            logger.warning(
                "钩子 %s 的 after 依赖存在环，按优先级释放: %s",
                pending[0].hook_name,
                ", ".join(r.handler_id for r in ready),
            )
        chosen = min(ready, key=_rank)
        ordered.append(chosen)
        placed.add(chosen)
        pending.remove(chosen)

    return ordered


def _cycle_candidates(
    pending: list[HookRegistration],
    predecessors: dict[HookRegistration, list[HookRegistration]],
    placed: set[HookRegistration],
) -> list[HookRegistration]:
    """
    找出只被自己所在的环阻塞的处理器
    Find handlers blocked only by members of their own cycle.

    若 r 的每个未放置前驱 p 的上游都包含 r（r 与 p 互相可达），则 r 可被释放。
    r is releasable when every unplaced predecessor p has r upstream of it.
    """

    def upstream(start: HookRegistration) -> set[HookRegistration]:
        seen: set[HookRegistration] = set()
        stack = [start]
        while stack:
            node = stack.pop()
            for pred in predecessors[node]:
                if pred not in placed and pred not in seen:
                    seen.add(pred)
                    stack.append(pred)
        return seen

    candidates = [
        r
        for r in pending
        if all(p in placed or r in upstream(p) for p in predecessors[r])
    ]
    return candidates or pending


class HookRegistry:
    """
    钩子注册表 - 管理所有扩展点的处理器
    Hook registry - manages the handlers of every extension point.

    invoke() 与 alter() 共用同一排序算法；每次调用开始时对顺序做快照。
    invoke() and alter() share one ordering algorithm; the order is
    snapshotted when a pass starts.
    """

    def __init__(self) -> None:
        # 钩子名 -> 注册项列表
        self._hooks: dict[str, list[HookRegistration]] = {}
        self._counter = 0

    def register(
        self,
        hook_name: str,
        handler: HookHandler,
        *,
        priority: int = HookPriority.NORMAL,
        handler_id: str | None = None,
        after: str | Iterable[str] | None = None,
        once: bool = False,
    ) -> Callable[[], None]:
        """
        注册钩子处理器，返回解绑函数
        Register a hook handler; returns an unbind function.
        """
        taken = {r.handler_id for r in self._hooks.get(hook_name, [])}
        if handler_id is not None and handler_id in taken:
            raise DuplicateHandlerError(hook_name, handler_id)

        self._counter += 1
        if handler_id is None:
            # 跳过已被显式占用的自动 ID
            while f"hook_{self._counter}" in taken:
                self._counter += 1
            handler_id = f"hook_{self._counter}"

        registration = HookRegistration(
            hook_name=hook_name,
            handler=handler,
            handler_id=handler_id,
            priority=priority,
            after=_normalize_after(after),
            once=once,
            sequence=self._counter,
        )
        self._hooks.setdefault(hook_name, []).append(registration)
        logger.debug(
            "已注册钩子 %s -> %s (优先级=%d)",
            registration.handler_id,
            hook_name,
            priority,
        )

        def unbind() -> None:
            self._remove(registration)

        return unbind

    def order(self, hook_name: str) -> list[HookRegistration]:
        """获取钩子的执行顺序 / Get the execution order of a hook."""
        return sort_registrations(list(self._hooks.get(hook_name, [])))

    async def invoke(
        self,
        hook_name: str,
        context: Any = None,
        *,
        throw_on_error: bool = False,
    ) -> HookEvent:
        """
        调用生命周期钩子（扇出）
        Invoke a lifecycle hook (fan-out).

        处理器依次执行并接收同一个 HookEvent；单个处理器出错会被记录，
        其余处理器继续执行。throw_on_error=True 时在全部执行后抛出聚合错误。
        Handlers run in order and share one HookEvent; a failing handler is
        recorded and the rest still run. With throw_on_error=True an aggregate
        HookInvocationError is raised once every handler has run.
        """
        event = HookEvent(
            hook_name=hook_name, context=context if context is not None else {}
        )

        for registration in self.order(hook_name):
            if registration.once and not self._remove(registration):
                continue
            try:
                result = registration.handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as exc:
                logger.exception(
                    "钩子 %s 的处理器 %s 执行出错",
                    hook_name,
                    registration.handler_id,
                )
                event.errors.append((registration.handler_id, exc))

        if throw_on_error and event.errors:
            raise HookInvocationError(hook_name, event.errors)
        return event

    async def alter(
        self, hook_name: str, data: Any, *, immutable: bool = False
    ) -> Any:
        """
        调用修改钩子（值传递链）
        Invoke an alter hook (value threading).

        每个处理器接收当前值并返回下一个值；返回 None 表示保留当前值。
        immutable=True 时每个处理器拿到深拷贝。异常直接向上传播。
        Each handler receives the current value and returns the next one;
        returning None keeps the current value. With immutable=True each
        handler gets a deep copy. Exceptions propagate immediately.
        """
        result = data
        for registration in self.order(hook_name):
            if registration.once and not self._remove(registration):
                continue
            value = copy.deepcopy(result) if immutable else result
            output = registration.handler(value)
            if inspect.isawaitable(output):
                output = await output
            if output is not None:
                result = output
        return result

    def handler_count(self, hook_name: str | None = None) -> int:
        """获取处理器数量 / Get the number of handlers."""
        if hook_name is None:
            return sum(len(bucket) for bucket in self._hooks.values())
        return len(self._hooks.get(hook_name, []))

    def hook_names(self) -> list[str]:
        """获取所有已注册的钩子名 / Get every registered hook name."""
        return list(self._hooks.keys())

    def has_hook(self, hook_name: str) -> bool:
        """检查钩子是否有处理器 / Check whether a hook has handlers."""
        return bool(self._hooks.get(hook_name))

    def dispose(self) -> None:
        """移除所有处理器 / Remove every handler."""
        self._hooks.clear()

    def _remove(self, registration: HookRegistration) -> bool:
        bucket = self._hooks.get(registration.hook_name)
        if not bucket or registration not in bucket:
            return False
        bucket.remove(registration)
        if not bucket:
            del self._hooks[registration.hook_name]
        logger.debug("已解绑钩子 %s", registration.handler_id)
        return True
