# -*- coding: utf-8 -*-
"""
性能监控工具

高精度计时器，用于统计每帧渲染耗时
"""

import time
from typing import Optional


class Timer:
    """
    计时器类

    提供高精度时间测量功能，可作为上下文管理器使用
    """

    def __init__(self, name: str = "Timer"):
        """
        初始化计时器

        Args:
            name (str): 计时器名称
        """
        self.name = name
        self.start_time: Optional[float] = None
        self.end_time: Optional[float] = None
        self.elapsed_time = 0.0
        self.is_running = False

    def start(self):
        """
        开始计时
        """
        if self.is_running:
            raise RuntimeError(f"Timer '{self.name}' is already running")

        self.start_time = time.perf_counter()
        self.is_running = True

    def stop(self) -> float:
        """
        停止计时

        Returns:
            float: 经过的时间（秒）
        """
        if not self.is_running:
            raise RuntimeError(f"Timer '{self.name}' is not running")

        self.end_time = time.perf_counter()
        self.elapsed_time = self.end_time - self.start_time
        self.is_running = False

        return self.elapsed_time

    @property
    def elapsed_ms(self) -> float:
        return self.elapsed_time * 1000.0

    def reset(self):
        self.start_time = None
        self.end_time = None
        self.elapsed_time = 0.0
        self.is_running = False

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
