# -*- coding: utf-8 -*-
"""
日志工具

控制台彩色输出与可选的轮转日志文件
"""

import logging
import logging.handlers
import os
import sys
from typing import Optional, Union
import colorama
from colorama import Fore, Back, Style

# 初始化colorama
colorama.init()

DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DEFAULT_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
ROOT_LOGGER = 'liquid_paint'


class ColoredFormatter(logging.Formatter):
    """
    彩色日志格式化器

    为不同级别的日志添加颜色
    """

    # 颜色映射
    COLORS = {
        'DEBUG': Fore.CYAN,
        'INFO': Fore.GREEN,
        'WARNING': Fore.YELLOW,
        'ERROR': Fore.RED,
        'CRITICAL': Fore.RED + Back.WHITE + Style.BRIGHT
    }

    def __init__(self, fmt=None, datefmt=None, use_colors=True, stream=None):
        super().__init__(fmt, datefmt)
        self.use_colors = use_colors
        self.stream = stream or sys.stdout

    def format(self, record):
        log_message = super().format(record)

        # 仅在终端中着色
        if self.use_colors and self.stream.isatty():
            color = self.COLORS.get(record.levelname)
            if color:
                log_message = f"{color}{log_message}{Style.RESET_ALL}"

        return log_message


def _level(level: Union[str, int]) -> int:
    if isinstance(level, str):
        value = logging.getLevelName(level.upper())
        if not isinstance(value, int):
            raise ValueError(f"Unknown log level: {level}")
        return value
    return level


def setup_logging(level: Union[str, int] = 'INFO', use_colors: bool = True,
                  log_file: Optional[str] = None, file_level: Union[str, int] = 'DEBUG',
                  max_bytes: int = 10 * 1024 * 1024, backup_count: int = 5) -> logging.Logger:
    """
    配置包日志

    重复调用会替换之前安装的处理器

    Args:
        level: 控制台日志级别
        use_colors (bool): 是否使用颜色
        log_file (str, optional): 轮转日志文件路径
        file_level: 文件日志级别
        max_bytes (int): 单个日志文件最大字节数
        backup_count (int): 备份文件数量

    Returns:
        logging.Logger: 包根日志记录器
    """
    logger = logging.getLogger(ROOT_LOGGER)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console_level = _level(level)
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(console_level)
    console.setFormatter(ColoredFormatter(DEFAULT_FORMAT, DEFAULT_DATE_FORMAT, use_colors, sys.stdout))
    logger.addHandler(console)
    effective = console_level

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=max_bytes, backupCount=backup_count, encoding='utf-8'
        )
        file_handler.setLevel(_level(file_level))
        file_handler.setFormatter(logging.Formatter(DEFAULT_FORMAT, DEFAULT_DATE_FORMAT))
        logger.addHandler(file_handler)
        effective = min(effective, file_handler.level)

    logger.setLevel(effective)
    logger.propagate = False
    return logger


def setup_logging_from_config(config) -> logging.Logger:
    """按 Config 的 logging 段配置日志"""
    section = config.get('logging') or {}
    return setup_logging(level=section.get('level', 'INFO'),
                         use_colors=section.get('use_colors', True),
                         log_file=section.get('log_file'))
