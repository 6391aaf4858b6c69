"""
默认配置 - 内核的所有默认配置值
Default configuration - every default value of the kernel.
"""

from __future__ import annotations

from typing import Any

# 框架版本
VERSION = "0.1.0"


def build_default_config() -> dict[str, Any]:
    """
    构建默认配置
    Build the default configuration.
    """
    return {
        # 内核配置
        "kernel": {
            "debug": False,
            # 延迟注册表是否在状态变化时发射信号
            "deferred_signals": True,
            # 启动完成后是否发射 kernel:ready
            "ready_signal": True,
        },
        # 模块配置
        "modules": {
            # 模块清单文件路径列表（.json / .yaml / .yml）
            "manifests": [],
        },
        # 事件路由: 源信号 -> 目标信号列表
        "event_routes": {},
        # 日志配置
        "logging": {
            "level": "INFO",
            "file": "data/logs/adminkernel.log",
        },
    }
