"""
延迟注册表 - 按名称登记的 Future，用于组件之间的松耦合等待
Deferred registry - named futures for loosely coupled waiting between components.

关键点：wait() 可以在 queue() 之前调用；Future 在首次访问时创建，
在任务完成（或外部 resolve/reject）时被结算，且只结算一次。
Key point: wait() may be called before queue() - the future is created on
first access and settled exactly once, when the task finishes or an external
producer resolves/rejects it.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from AdminKernel.kernel.signal_bus import Signals

if TYPE_CHECKING:
    from AdminKernel.kernel.signal_bus import SignalBus

logger = logging.getLogger(__name__)

Executor = Callable[[], Any]


class DeferredStatus(str, Enum):
    """延迟项状态 / Deferred entry status."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(eq=False)
class DeferredEntry:
    """
    延迟项 - 一个命名的 Future 及其状态
    Deferred entry - one named future and its status.
    """

    key: str
    future: asyncio.Future[Any]
    status: DeferredStatus = DeferredStatus.PENDING
    value: Any = None
    error: BaseException | None = None
    timestamp: float = field(default_factory=time.time)

    @property
    def settled(self) -> bool:
        return self.status in (DeferredStatus.COMPLETED, DeferredStatus.FAILED)


def _mark_retrieved(future: asyncio.Future[Any]) -> None:
    # 失败状态由注册表记录，避免未读取异常的告警
    if not future.cancelled():
        future.exception()


class DeferredRegistry:
    """
    延迟注册表 - 管理命名 Future 的创建、执行和结算
    Deferred registry - creates, runs and settles named futures.

    可选地连接到 SignalBus，在状态变化时发射 deferred:started/completed/failed。
    Optionally wired to a SignalBus, emitting deferred:started/completed/failed
    on each transition.
    """

    def __init__(self, signals: SignalBus | None = None) -> None:
        self._entries: dict[str, DeferredEntry] = {}
        self._signals = signals
        # 持有后台任务的引用，防止被回收
        self._tasks: set[asyncio.Task[Any]] = set()

    def set_signals(self, signals: SignalBus | None) -> None:
        """设置用于发射状态信号的总线 / Set the bus used for status signals."""
        self._signals = signals

    def _get_or_create(self, key: str) -> DeferredEntry:
        entry = self._entries.get(key)
        if entry is None:
            future = asyncio.get_running_loop().create_future()
            future.add_done_callback(_mark_retrieved)
            entry = DeferredEntry(key=key, future=future)
            self._entries[key] = entry
            logger.debug("已创建延迟项: %s", key)
        return entry

    def wait(self, key: str) -> asyncio.Future[Any]:
        """
        获取某个键的 Future（不存在则创建）
        Get the future of a key, creating a pending entry if needed.

        可以在 queue() 之前调用。
        Safe to call before any producer exists.
        """
        return self._get_or_create(key).future

    def queue(self, key: str, executor: Executor) -> asyncio.Future[Any]:
        """
        排队执行任务
        Queue work for a key.

        仅当状态为 pending 时执行；否则直接返回已有 Future（幂等）。
        The executor only runs while the entry is pending; otherwise the
        existing future is returned, so repeated calls run the work once.
        """
        entry = self._get_or_create(key)
        if entry.status is not DeferredStatus.PENDING:
            logger.debug("延迟项 %s 已是 %s，忽略重复排队", key, entry.status.value)
            return entry.future

        entry.status = DeferredStatus.RUNNING
        self._emit(Signals.DEFERRED_STARTED, {"key": key})
        logger.debug("延迟项开始执行: %s", key)
        self._spawn(self._run(entry, executor))
        return entry.future

    async def _run(self, entry: DeferredEntry, executor: Executor) -> None:
        try:
            value = executor()
            if inspect.isawaitable(value):
                value = await value
        except Exception as exc:
            self._fail(entry, exc)
        else:
            self._complete(entry, value)

    def resolve(self, key: str, value: Any = None) -> bool:
        """
        外部结算为成功（如服务端推送通知）
        Settle a key successfully from outside the queue flow.

        已结算时返回 False。
        Returns False when the entry was already settled.
        """
        entry = self._get_or_create(key)
        if entry.settled:
            logger.debug("无法结算 %s（已是 %s）", key, entry.status.value)
            return False
        self._complete(entry, value)
        return True

    def reject(self, key: str, error: BaseException) -> bool:
        """
        外部结算为失败
        Settle a key as failed from outside the queue flow.
        """
        entry = self._get_or_create(key)
        if entry.settled:
            logger.debug("无法拒绝 %s（已是 %s）", key, entry.status.value)
            return False
        self._fail(entry, error)
        return True

    def _complete(self, entry: DeferredEntry, value: Any) -> None:
        if entry.settled:
            return
        entry.status = DeferredStatus.COMPLETED
        entry.value = value
        if not entry.future.done():
            entry.future.set_result(value)
        self._emit(Signals.DEFERRED_COMPLETED, {"key": entry.key, "value": value})
        logger.debug("延迟项已完成: %s", entry.key)

    def _fail(self, entry: DeferredEntry, error: BaseException) -> None:
        if entry.settled:
            return
        entry.status = DeferredStatus.FAILED
        entry.error = error
        if not entry.future.done():
            entry.future.set_exception(error)
        self._emit(Signals.DEFERRED_FAILED, {"key": entry.key, "error": error})
        logger.debug("延迟项失败: %s (%s)", entry.key, error)

    def has(self, key: str) -> bool:
        return key in self._entries

    def status(self, key: str) -> DeferredStatus | None:
        """获取状态，不存在时返回 None / Get the status, None if unknown."""
        entry = self._entries.get(key)
        return entry.status if entry else None

    def value(self, key: str) -> Any:
        """仅在完成时返回值 / The value, only once completed."""
        entry = self._entries.get(key)
        if entry is not None and entry.status is DeferredStatus.COMPLETED:
            return entry.value
        return None

    def is_settled(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.settled

    def keys(self) -> list[str]:
        return list(self._entries.keys())

    def entries(self) -> list[dict[str, Any]]:
        """所有延迟项的概要 / Summary of every entry."""
        return [
            {"key": key, "status": entry.status, "timestamp": entry.timestamp}
            for key, entry in self._entries.items()
        ]

    def clear(self, key: str) -> bool:
        """移除某个延迟项（便于重试） / Drop one entry, e.g. to retry it."""
        return self._entries.pop(key, None) is not None

    def clear_all(self) -> None:
        self._entries.clear()

    def _emit(self, name: str, data: dict[str, Any]) -> None:
        if self._signals is None:
            return
        self._spawn(self._signals.emit(name, data, source="deferred"))

    def _spawn(self, coro: Any) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "延迟项信号处理器出错", exc_info=task.exception()
            )
