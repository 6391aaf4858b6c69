"""
配置模块 - 管理内核配置
Config module - manages kernel configuration.
"""

from AdminKernel.config.defaults import build_default_config
from AdminKernel.config.manager import ConfigManager

__all__ = ["ConfigManager", "build_default_config"]
