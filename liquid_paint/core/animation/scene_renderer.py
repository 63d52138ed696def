# -*- coding: utf-8 -*-
"""
场景渲染器

每帧：填充背景，按创作顺序遍历笔触，跳过尚未开始的笔触，
调用图层合成器绘制；环境变体则委托给 AmbientScene
渲染结果只取决于 (时间, 尺寸, 像素比, 指针)
"""

import logging
import numpy as np
from typing import List, Optional, Sequence, Tuple
from dataclasses import dataclass

from ...config.settings import Config
from ..stroke_model import StrokeDefinition, StrokeRuntime, FrameGeometry, DEFAULT_STROKES, hex_to_rgb
from ..surface import DrawingSurface
from ..texture_loader import TextureLoader
from .geometry_builder import GeometryBuilder, GeometryConfig, stroke_progress
from .layer_compositor import LayerCompositor, CompositorConfig, TextureConfig
from .ambient_scene import AmbientScene, AmbientConfig

VARIANTS = ('liquid', 'ambient')


@dataclass(frozen=True)
class RenderConfig:
    """
    渲染配置

    Attributes:
        variant (str): liquid / ambient
        background_color (str): 背景色 #RRGGBB
        total_duration (float, optional): 覆盖动画总时长
        texture_path (str, optional): 纹理图像路径
        texture_strength (float): 纹理强度，超出 [0,1] 时截断
    """
    variant: str = 'liquid'
    background_color: str = '#F7F1E7'
    total_duration: Optional[float] = None
    texture_path: Optional[str] = None
    texture_strength: float = 0.0

    def __post_init__(self):
        if self.variant not in VARIANTS:
            raise ValueError(f"Unknown variant '{self.variant}', expected one of {VARIANTS}")
        hex_to_rgb(self.background_color)
        if self.total_duration is not None and self.total_duration <= 0:
            raise ValueError(f"total_duration must be positive, got {self.total_duration}")
        strength = min(1.0, max(0.0, float(self.texture_strength)))
        object.__setattr__(self, 'texture_strength', strength)

    @classmethod
    def from_config(cls, config) -> 'RenderConfig':
        """由 Config 的 rendering 与 texture 段构建"""
        rendering = config.get('rendering') or {}
        texture = config.get('texture') or {}
        return cls(
            variant=rendering.get('variant', 'liquid'),
            background_color=rendering.get('background_color', '#F7F1E7'),
            total_duration=rendering.get('total_duration'),
            texture_path=texture.get('path'),
            texture_strength=texture.get('strength', 0.0),
        )


class SceneRenderer:
    """
    场景渲染器

    持有绘图表面、笔触运行时数据与逐帧几何缓冲区
    """

    def __init__(self, config=None, render_config: Optional[RenderConfig] = None,
                 definitions: Sequence[StrokeDefinition] = DEFAULT_STROKES,
                 surface: Optional[DrawingSurface] = None):
        """
        初始化场景渲染器

        Args:
            config: Config 对象，为空时使用默认配置
            render_config (RenderConfig, optional): 渲染配置，为空时从 config 读取
            definitions: 笔触定义
            surface (DrawingSurface, optional): 绘图表面
        """
        if config is None:
            config = Config()
        self.logger = logging.getLogger(__name__)
        self.render_config = render_config or RenderConfig.from_config(config)
        self.surface = surface or DrawingSurface()

        animation = config.get('animation') or {}
        texture_section = dict(config.get('texture') or {})
        texture_section['path'] = self.render_config.texture_path
        texture_section['strength'] = self.render_config.texture_strength

        self.geometry_builder = GeometryBuilder(GeometryConfig.from_section(animation))
        self.compositor = LayerCompositor(CompositorConfig(**config.get('compositor')),
                                          TextureConfig(**texture_section))
        self._background = self.render_config.background_color
        self._animation_duration = float(animation.get('total_duration', 4.4))

        self.runtimes: List[StrokeRuntime] = []
        self._scratch: List[FrameGeometry] = []
        self.ambient: Optional[AmbientScene] = None
        if self.is_ambient:
            self.ambient = AmbientScene(AmbientConfig(**config.get('ambient')), self.compositor)
        else:
            self.runtimes = self.geometry_builder.build_runtimes(definitions)
            self._scratch = [self.geometry_builder.allocate(r) for r in self.runtimes]

        self.texture_loader = TextureLoader(self.render_config.texture_path)
        if not self.is_ambient and self.render_config.texture_strength > 0:
            self.texture_loader.start()

        self.logger.info(f"Scene renderer ready: variant={self.render_config.variant}, "
                         f"strokes={len(self.runtimes)}")

    @property
    def is_ambient(self) -> bool:
        return self.render_config.variant == 'ambient'

    @property
    def total_duration(self) -> Optional[float]:
        """有限场景的总时长；环境变体无限循环，返回 None"""
        if self.is_ambient:
            return None
        if self.render_config.total_duration is not None:
            return self.render_config.total_duration
        return self._animation_duration

    @property
    def static_elapsed(self) -> float:
        """减少动态效果时静态帧使用的时间"""
        if self.is_ambient:
            return self.ambient.config.static_elapsed
        return self.total_duration

    @property
    def size(self) -> Tuple[float, float]:
        return self.surface.width, self.surface.height

    def resize(self, width: float, height: float, pixel_ratio: float = 1.0):
        """
        调整尺寸并重建与尺寸相关的资源

        Raises:
            SurfaceError: 无法分配后备缓冲区
        """
        self.surface.resize(width, height, pixel_ratio)
        if self.ambient is not None:
            self.ambient.resize(self.surface)

    def render(self, elapsed: float, pointer: Optional[Tuple[float, float]] = None) -> bool:
        """
        渲染一帧

        Args:
            elapsed (float): 场景时间(秒)
            pointer: 平滑后的指针位置，仅环境变体使用

        Returns:
            bool: 是否实际绘制
        """
        surface = self.surface
        if surface.width <= 0 or surface.height <= 0 or surface.is_empty:
            return False

        surface.fill(self._background)
        if self.ambient is not None:
            if pointer is None:
                pointer = (surface.width / 2.0, surface.height / 2.0)
            self.ambient.draw(surface, elapsed, pointer)
            return True

        texture = self.texture_loader.poll()
        strength = self.render_config.texture_strength
        width, height = surface.width, surface.height
        for runtime, scratch in zip(self.runtimes, self._scratch):
            if elapsed <= runtime.start_time:
                continue
            progress = stroke_progress(elapsed, runtime.start_time, runtime.duration)
            geometry = self.geometry_builder.build_frame(runtime, progress, width, height, scratch)
            if geometry is None:
                continue
            self.compositor.composite(surface, runtime, geometry, texture, strength)
        return True

    def pixels(self) -> np.ndarray:
        """当前帧的 8 位 RGB 图像"""
        return self.surface.to_rgb8()

    def close(self):
        """释放后台资源"""
        self.texture_loader.shutdown()
