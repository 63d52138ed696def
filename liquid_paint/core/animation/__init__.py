# -*- coding: utf-8 -*-
"""
动态绘制与动画生成模块

实现液态笔触动画：
1. 路径采样与法线计算
2. 边缘噪声与笔毛烘焙
3. 逐帧几何构建
4. 多层液态材质合成
5. 场景渲染与帧调度
"""

from .path_sampler import sample_bezier, compute_normals, stroke_direction
from .texture_baker import bake_noise, build_bristles, bake_grain, tile_grain, bake_vignette
from .geometry_builder import (
    GeometryBuilder, GeometryConfig, ease_out_cubic, raw_progress, stroke_progress,
    stroke_phase, revealed_count, width_profile
)
from .layer_compositor import LayerCompositor, CompositorConfig, TextureConfig, LayerFlags
from .ambient_scene import AmbientScene, AmbientConfig, build_scene_data, swayed_path
from .scene_renderer import SceneRenderer, RenderConfig
from .animation_scheduler import (
    AnimationScheduler, SchedulerConfig, RenderContext, FrameSource, FrameStats,
    scheduler_config_for
)

__all__ = [
    'sample_bezier',
    'compute_normals',
    'stroke_direction',
    'bake_noise',
    'build_bristles',
    'bake_grain',
    'tile_grain',
    'bake_vignette',
    'GeometryBuilder',
    'GeometryConfig',
    'ease_out_cubic',
    'raw_progress',
    'stroke_progress',
    'stroke_phase',
    'revealed_count',
    'width_profile',
    'LayerCompositor',
    'CompositorConfig',
    'TextureConfig',
    'LayerFlags',
    'AmbientScene',
    'AmbientConfig',
    'build_scene_data',
    'swayed_path',
    'SceneRenderer',
    'RenderConfig',
    'AnimationScheduler',
    'SchedulerConfig',
    'RenderContext',
    'FrameSource',
    'FrameStats',
    'scheduler_config_for',
]
