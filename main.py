#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
液态笔触动画渲染器
主程序入口

打开预览窗口播放液态笔触动画或环境背景变体
"""

import sys
import argparse
from pathlib import Path

# 添加项目根目录到Python路径
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from liquid_paint.config.settings import Config
from liquid_paint.core.animation.scene_renderer import RenderConfig
from liquid_paint.utils.logging_utils import setup_logging_from_config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='液态笔触动画渲染器')
    parser.add_argument('--variant', choices=['liquid', 'ambient'], default=None,
                        help='场景变体')
    parser.add_argument('--config', '-c', default=None, help='YAML 配置文件路径')
    parser.add_argument('--texture', default=None, help='纹理图像路径')
    parser.add_argument('--texture-strength', type=float, default=None,
                        help='纹理强度 [0,1]，超出范围时截断')
    parser.add_argument('--duration', type=float, default=None, help='覆盖动画总时长(秒)')
    parser.add_argument('--reduced-motion', action='store_true', help='减少动态效果，只绘制静态帧')
    parser.add_argument('--constrained', action='store_true', help='受限设备模式（30fps）')
    parser.add_argument('--debug', action='store_true', help='调试模式')
    return parser


def apply_arguments(config: Config, args: argparse.Namespace) -> Config:
    """
    将命令行参数写入配置

    Args:
        config (Config): 配置
        args: 命令行参数

    Returns:
        Config: 更新后的配置
    """
    if args.variant:
        config.set('rendering', 'variant', args.variant)
    if args.texture:
        config.set('texture', 'path', args.texture)
        if args.texture_strength is None and not config.get('texture', 'strength'):
            config.set('texture', 'strength', 1.0)
    if args.texture_strength is not None:
        config.set('texture', 'strength', min(1.0, max(0.0, args.texture_strength)))
    if args.duration is not None:
        config.set('rendering', 'total_duration', args.duration)
    if args.reduced_motion:
        config.set('rendering', 'reduced_motion', True)
    if args.constrained:
        config.set('rendering', 'constrained_device', True)
    if args.debug:
        config.set('logging', 'level', 'DEBUG')
    return config


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    if args.config and not Path(args.config).exists():
        print(f"错误: 配置文件不存在 {args.config}")
        return 1

    config = apply_arguments(Config(args.config), args)
    logger = setup_logging_from_config(config)

    try:
        render_config = RenderConfig.from_config(config)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    logger.info(f"Starting {render_config.variant} preview")

    from PyQt5.QtWidgets import QApplication
    from liquid_paint.ui.main_window import PreviewWindow

    app = QApplication(sys.argv[:1])
    window = PreviewWindow(config, render_config)
    window.show()
    return app.exec_()


if __name__ == "__main__":
    sys.exit(main())
