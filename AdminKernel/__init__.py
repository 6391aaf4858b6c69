"""
AdminKernel - 管理界面构建框架的模块编排内核
AdminKernel - module orchestration kernel of an admin UI framework.
"""

from AdminKernel.config.defaults import VERSION
from AdminKernel.kernel import (
    HookRegistry,
    Kernel,
    KernelContext,
    SignalBus,
)
from AdminKernel.kernel.deferred import DeferredRegistry
from AdminKernel.module import Module, ModuleLoader

__app_name__ = "AdminKernel"
__version__ = VERSION

__all__ = [
    "Kernel",
    "KernelContext",
    "Module",
    "ModuleLoader",
    "HookRegistry",
    "SignalBus",
    "DeferredRegistry",
]
