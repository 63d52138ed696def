# -*- coding: utf-8 -*-
"""
核心算法模块

包含液态笔触动画的数据模型、随机数源、绘图表面与动画实现
"""

# 导入主要模块
from .random_source import RandomSource
from .stroke_model import (
    StrokePhase, StrokeDefinition, StrokeRuntime, Bristle, FrameGeometry, DEFAULT_STROKES
)
from .surface import DrawingSurface, SurfaceError, BlendMode, Shadow, RadialGradient
from .texture_loader import TextureLoader, load_texture

__all__ = [
    'RandomSource',
    'StrokePhase',
    'StrokeDefinition',
    'StrokeRuntime',
    'Bristle',
    'FrameGeometry',
    'DEFAULT_STROKES',
    'DrawingSurface',
    'SurfaceError',
    'BlendMode',
    'Shadow',
    'RadialGradient',
    'TextureLoader',
    'load_texture',
]
