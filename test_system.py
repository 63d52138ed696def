#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
系统测试脚本
用于验证液态笔触动画渲染器的基本功能
"""

import os
import sys
import tempfile
import traceback
from pathlib import Path

# 添加项目根目录到Python路径
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))


def test_directory_structure():
    """
    测试目录结构
    """
    print("\n测试目录结构...")

    required_dirs = [
        'liquid_paint',
        'liquid_paint/config',
        'liquid_paint/core',
        'liquid_paint/core/animation',
        'liquid_paint/ui',
        'liquid_paint/utils',
    ]

    for dir_path in required_dirs:
        full_path = project_root / dir_path
        assert full_path.is_dir(), f"{dir_path}/ (缺失)"
        print(f"  ✓ {dir_path}/")


def test_dependencies():
    """
    测试依赖包
    """
    print("\n测试依赖包...")

    required_packages = ['numpy', 'cv2', 'PIL', 'yaml', 'colorama']

    missing_packages = []
    for package in required_packages:
        try:
            __import__(package)
            print(f"  ✓ {package}")
        except ImportError:
            print(f"  ✗ {package} (缺失)")
            missing_packages.append(package)

    assert not missing_packages, f"缺失的依赖包: {', '.join(missing_packages)}"


def test_imports():
    """
    测试所有模块的导入
    """
    print("测试模块导入...")

    print("  - 导入核心模块...")
    from liquid_paint.core import RandomSource, DrawingSurface, StrokeDefinition, DEFAULT_STROKES
    from liquid_paint.core.animation import (
        GeometryBuilder, LayerCompositor, AmbientScene, SceneRenderer, AnimationScheduler
    )
    print("    ✓ 核心模块导入成功")

    print("  - 导入工具模块...")
    from liquid_paint.utils import setup_logging, Timer
    from liquid_paint.config import Config
    print("    ✓ 工具模块导入成功")

    assert len(DEFAULT_STROKES) == 8


def test_config():
    """
    测试配置读写
    """
    print("\n测试配置...")
    from liquid_paint.config import Config

    config = Config()
    for section in Config.SECTIONS:
        assert isinstance(config.get(section), dict), f"{section} 配置节缺失"
        print(f"  ✓ {section} 配置节存在")

    assert config.get('animation', 'seed') == 0xd3a7f1c9
    assert config.get('scheduler', 'max_pixel_ratio') == 2.0
    assert config.get('missing', 'key', 'fallback') == 'fallback'

    with tempfile.TemporaryDirectory() as tmp_dir:
        path = os.path.join(tmp_dir, 'config.yaml')
        config.set('rendering', 'variant', 'ambient')
        config.set('texture', 'strength', 0.5)
        config.save_config(path)

        loaded = Config(path)
        assert loaded.get('rendering', 'variant') == 'ambient'
        assert loaded.get('texture', 'strength') == 0.5
        # 未保存的键保留默认值
        assert loaded.get('animation', 'sample_count') == 200
        print("  ✓ YAML 保存与加载一致")


def test_logging_setup():
    """
    测试日志配置
    """
    print("\n测试日志配置...")
    import logging
    from liquid_paint.utils import setup_logging

    with tempfile.TemporaryDirectory() as tmp_dir:
        log_file = os.path.join(tmp_dir, 'logs', 'render.log')
        logger = setup_logging('WARNING', use_colors=False, log_file=log_file)
        assert logger.name == 'liquid_paint'
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 2

        logging.getLogger('liquid_paint.core').info("file only")
        for handler in logger.handlers:
            handler.flush()
        with open(log_file, encoding='utf-8') as f:
            assert 'file only' in f.read()

        # 重复配置替换旧处理器
        logger = setup_logging('INFO', use_colors=False)
        assert len(logger.handlers) == 1
        print("  ✓ 日志处理器配置正确")


def test_command_line_arguments():
    """
    测试命令行参数写入配置
    """
    print("\n测试命令行参数...")
    from main import build_parser, apply_arguments
    from liquid_paint.config import Config

    args = build_parser().parse_args(['--variant', 'ambient', '--texture-strength', '2.5',
                                      '--duration', '3', '--reduced-motion', '--debug'])
    config = apply_arguments(Config(), args)
    assert config.get('rendering', 'variant') == 'ambient'
    assert config.get('texture', 'strength') == 1.0
    assert config.get('rendering', 'total_duration') == 3.0
    assert config.get('rendering', 'reduced_motion') is True
    assert config.get('logging', 'level') == 'DEBUG'

    args = build_parser().parse_args(['--texture', 'paper.png'])
    config = apply_arguments(Config(), args)
    assert config.get('texture', 'path') == 'paper.png'
    assert config.get('texture', 'strength') == 1.0
    print("  ✓ 参数解析正确")


def main():
    """
    主测试函数
    """
    print("=" * 60)
    print("液态笔触动画渲染器 - 系统测试")
    print("=" * 60)

    tests = [
        ("目录结构", test_directory_structure),
        ("依赖包", test_dependencies),
        ("模块导入", test_imports),
        ("配置", test_config),
        ("日志配置", test_logging_setup),
        ("命令行参数", test_command_line_arguments),
    ]

    passed = 0
    total = len(tests)

    for test_name, test_func in tests:
        try:
            test_func()
            passed += 1
        except AssertionError as e:
            print(f"\n❌ {test_name} 测试失败: {e}")
        except Exception as e:
            print(f"\n❌ {test_name} 测试出错: {e}")
            traceback.print_exc()

    print("\n" + "=" * 60)
    print(f"测试结果: {passed}/{total} 通过")

    if passed == total:
        print("🎉 所有测试通过！系统准备就绪。")
        return 0
    else:
        print("⚠️  部分测试失败，请检查上述错误信息。")
        return 1


if __name__ == "__main__":
    sys.exit(main())
