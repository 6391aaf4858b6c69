"""
模块系统 - 模块是管理界面的扩展单元
Module system - modules are the extension units of the admin UI.

模块可以是 Module 子类、实例、普通对象或旧式函数；
加载器将它们规范化后按依赖顺序连接。
A module may be a Module subclass, an instance, a plain object or a legacy
function; the loader normalizes them and connects them in dependency order.
"""

from AdminKernel.module.base import Module
from AdminKernel.module.descriptor import ModuleDescriptor, ModuleKind, normalize_module
from AdminKernel.module.loader import ModuleLoader
from AdminKernel.module.manifest import ModuleManifest, import_entry

__all__ = [
    "Module",
    "ModuleDescriptor",
    "ModuleKind",
    "ModuleLoader",
    "ModuleManifest",
    "import_entry",
    "normalize_module",
]
