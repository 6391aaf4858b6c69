"""
内核异常 - 模块编排内核的错误分类
Kernel errors - error taxonomy of the module orchestration kernel.

注册期错误（重复、格式无效）、图解析错误（缺失依赖、循环依赖）
在任何 connect() 之前抛出；连接失败会被包装为 ModuleLoadError。
Registration errors (duplicate, invalid format) and graph errors
(missing dependency, cycle) are raised before any connect() runs;
connect failures are wrapped in ModuleLoadError.
"""

from __future__ import annotations


class KernelError(Exception):
    """所有内核错误的基类 / Base class of all kernel errors."""


class DuplicateModuleError(KernelError):
    """模块名重复注册 / A module name was registered twice."""

    def __init__(self, module_name: str) -> None:
        super().__init__(f"Module '{module_name}' is already registered")
        self.module_name = module_name


class InvalidModuleFormatError(KernelError):
    """无法从输入推导出名称或 connect 能力 / No name or connect capability could be derived."""

    def __init__(self, message: str, definition: object = None) -> None:
        super().__init__(message)
        self.definition = definition


class MissingModuleError(KernelError):
    """
    依赖的模块未注册
    A required module is not registered.
    """

    def __init__(self, module_name: str, required_by: str) -> None:
        super().__init__(
            f"Module '{module_name}' not found (required by '{required_by}')"
        )
        self.module_name = module_name
        self.required_by = required_by


class CircularDependencyError(KernelError):
    """
    模块依赖存在环
    The module dependency graph contains a cycle.
    """

    def __init__(self, cycle: list[str]) -> None:
        super().__init__(f"Circular dependency detected: {' -> '.join(cycle)}")
        self.cycle = list(cycle)


class ModuleLoadError(KernelError):
    """
    模块 connect() 失败
    A module's connect() failed.
    """

    def __init__(self, module_name: str, cause: BaseException) -> None:
        super().__init__(f"Failed to load module '{module_name}': {cause}")
        self.module_name = module_name
        self.cause = cause


class DuplicateHandlerError(KernelError):
    """同一钩子下处理器 ID 重复 / Handler id already used on the same hook."""

    def __init__(self, hook_name: str, handler_id: str) -> None:
        super().__init__(
            f"Handler '{handler_id}' is already registered on hook '{hook_name}'"
        )
        self.hook_name = hook_name
        self.handler_id = handler_id


class HookInvocationError(KernelError):
    """
    钩子调用聚合错误 - 按调用顺序收集所有处理器的异常
    Aggregate hook error - every handler failure, in invocation order.
    """

    def __init__(
        self, hook_name: str, errors: list[tuple[str, BaseException]]
    ) -> None:
        lines = "\n  ".join(f"[{handler_id}] {exc}" for handler_id, exc in errors)
        super().__init__(f'Hook "{hook_name}" handlers failed:\n  {lines}')
        self.hook_name = hook_name
        self.errors = list(errors)

    @property
    def exceptions(self) -> list[BaseException]:
        """仅返回异常对象 / Only the exception objects."""
        return [exc for _, exc in self.errors]


class SignalTimeoutError(KernelError, TimeoutError):
    """等待信号超时 / Timed out waiting for a signal."""

    def __init__(self, pattern: str, timeout: float) -> None:
        super().__init__(f"Timed out after {timeout}s waiting for signal '{pattern}'")
        self.pattern = pattern
        self.timeout = timeout


class EventRouteError(KernelError):
    """事件路由配置无效 / Invalid event routing configuration."""

    def __init__(self, message: str, cycle: list[str] | None = None) -> None:
        super().__init__(message)
        self.cycle = cycle


class ManifestError(KernelError):
    """模块清单无效 / Invalid module manifest."""
