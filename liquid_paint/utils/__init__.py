# -*- coding: utf-8 -*-
"""
工具模块

日志配置与性能计时
"""

from .logging_utils import setup_logging, setup_logging_from_config, ColoredFormatter
from .performance import Timer

__all__ = [
    # 日志工具
    'setup_logging',
    'setup_logging_from_config',
    'ColoredFormatter',

    # 性能监控工具
    'Timer',
]
