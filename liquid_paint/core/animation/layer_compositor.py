# -*- coding: utf-8 -*-
"""
图层合成器

按从后到前的顺序为单条笔触绘制液态材质：
阴影、主体、体积层、纹理投影、弯月面、笔毛、镜面高光、湿润笔尖
"""

import math
import numpy as np
from typing import Optional, Tuple, Sequence
import logging
from dataclasses import dataclass, field

from ..stroke_model import StrokeRuntime, FrameGeometry, RGB, band, shade, darken
from ..surface import DrawingSurface, BlendMode, Shadow, RadialGradient
from .path_sampler import stroke_direction

Rgba = Tuple[int, int, int, float]


@dataclass(frozen=True)
class LayerFlags:
    """
    各合成层开关
    """
    shadow: bool = True
    body: bool = True
    depth: bool = True
    texture: bool = True
    meniscus: bool = True
    bristles: bool = True
    specular: bool = True
    blob: bool = True


@dataclass(frozen=True)
class CompositorConfig:
    """
    合成参数表
    """
    shadow_fill_alpha: float = 0.01
    shadow_alpha: float = 0.32
    shadow_darken: Tuple[int, int, int] = (70, 64, 56)
    shadow_blur: float = 0.72
    shadow_offset_y: float = 0.14
    shadow_opaque_caster: bool = True
    body_alpha: float = 0.74
    depth_bands: Tuple[Tuple[float, float], ...] = ((0.62, 0.12), (0.26, 0.07))
    meniscus_inset: float = 0.78
    meniscus_alpha: float = 0.30
    meniscus_darken: Tuple[int, int, int] = (32, 26, 20)
    ridge_lighten: Tuple[int, int, int] = (28, 22, 16)
    valley_darken: Tuple[int, int, int] = (24, 19, 14)
    specular_halo_scale: float = 0.80
    specular_halo_width: float = 6.0
    specular_halo_color: Rgba = (255, 244, 228, 0.16)
    specular_glint_width: float = 1.7
    specular_glint_color: Rgba = (255, 252, 248, 0.86)
    blob_live_threshold: float = 0.96
    blob_base_alpha: float = 0.64
    blob_fade_progress: float = 0.92
    blob_fade_power: float = 2.4
    blob_min_alpha: float = 0.015
    blob_radius: float = 1.20
    blob_highlight_offset: float = 0.24
    blob_highlight_radius: float = 0.04
    blob_highlight_factor: float = 1.18
    blob_meniscus_factor: float = 0.82
    blob_highlight_lighten: Tuple[int, int, int] = (35, 28, 20)
    blob_meniscus_darken: Tuple[int, int, int] = (14, 10, 7)
    blob_shadow_darken: Tuple[int, int, int] = (65, 58, 50)
    blob_shadow_alpha: float = 0.30
    blob_glint_radius: float = 0.30
    blob_glint_alpha: float = 0.80
    blob_glint_color: Tuple[int, int, int] = (255, 251, 244)
    feather_passes: Tuple[Tuple[float, float], ...] = ((2.0, 0.28), (1.1, 0.55), (0.35, 0.30))
    flags: LayerFlags = field(default_factory=LayerFlags)

    def __post_init__(self):
        for name in ('shadow_alpha', 'body_alpha', 'meniscus_alpha', 'blob_base_alpha',
                     'blob_shadow_alpha', 'blob_glint_alpha'):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be in [0, 1], got {value}")
        if self.blob_fade_progress <= 0:
            raise ValueError("blob_fade_progress must be positive")
        if not 0.0 <= self.blob_live_threshold <= 1.0:
            raise ValueError(f"blob_live_threshold must be in [0, 1], got {self.blob_live_threshold}")
        # YAML 读入的列表统一为元组，保持不可变
        for name in ('depth_bands', 'feather_passes'):
            object.__setattr__(self, name, tuple(tuple(p) for p in getattr(self, name)))
        if isinstance(self.flags, dict):
            object.__setattr__(self, 'flags', LayerFlags(**self.flags))


@dataclass(frozen=True)
class TextureConfig:
    """
    纹理投影参数

    Attributes:
        path (str): 纹理图像路径，None 表示不使用纹理
        strength (float): 强度 [0,1]
        margin (float): 覆盖边界框的额外比例
        blend_passes: (混合模式, 基础不透明度) 序列
    """
    path: Optional[str] = None
    strength: float = 0.0
    margin: float = 0.15
    blend_passes: Tuple[Tuple[str, float], ...] = (
        ('multiply', 0.55), ('soft_light', 0.45), ('overlay', 0.25))

    def __post_init__(self):
        if not 0.0 <= self.strength <= 1.0:
            raise ValueError(f"Texture strength must be in [0, 1], got {self.strength}")
        if self.margin < 0:
            raise ValueError(f"Texture margin must be non-negative, got {self.margin}")
        # 提前解析混合模式，未知名称在配置阶段即报错
        passes = tuple((BlendMode.from_name(mode), float(alpha)) for mode, alpha in self.blend_passes)
        object.__setattr__(self, 'blend_passes', passes)


class LayerCompositor:
    """
    图层合成器

    所有绘制都经过 DrawingSurface，合成器本身不持有像素
    """

    def __init__(self, config: Optional[CompositorConfig] = None,
                 texture_config: Optional[TextureConfig] = None):
        """
        初始化图层合成器

        Args:
            config: 合成参数
            texture_config: 纹理投影参数
        """
        self.config = config or CompositorConfig()
        self.texture_config = texture_config or TextureConfig()
        self.logger = logging.getLogger(__name__)

    def composite(self, surface: DrawingSurface, runtime: StrokeRuntime,
                  geometry: FrameGeometry, texture: Optional[np.ndarray] = None,
                  strength: Optional[float] = None):
        """
        绘制一条笔触的所有图层

        Args:
            surface (DrawingSurface): 绘图表面
            runtime (StrokeRuntime): 笔触运行时数据
            geometry (FrameGeometry): 本帧几何
            texture (np.ndarray, optional): RGB 浮点纹理
            strength (float, optional): 纹理强度，默认取配置
        """
        if geometry is None or geometry.count < 2:
            return
        cfg = self.config
        flags = cfg.flags
        rgb = runtime.rgb
        ribbon = geometry.ribbon()

        surface.save()

        if flags.shadow:
            self._shadow_pass(surface, ribbon, rgb, geometry.max_half_width)
        if flags.body:
            surface.fill_polygon(ribbon, rgb, cfg.body_alpha)
        if flags.depth:
            for fraction, alpha in cfg.depth_bands:
                surface.fill_polygon(band(geometry.inset(fraction), geometry.inset(-fraction)),
                                     rgb, alpha)
        if flags.texture and texture is not None:
            if strength is None:
                strength = self.texture_config.strength
            self._texture_pass(surface, runtime, geometry, ribbon, texture, strength)
        if flags.meniscus:
            self._meniscus_pass(surface, geometry, rgb)
        if flags.bristles:
            self._bristle_pass(surface, runtime, geometry)
        if flags.specular:
            self._specular_pass(surface, runtime, geometry)
        if flags.blob and geometry.progress < cfg.blob_live_threshold:
            self._blob_pass(surface, geometry, rgb)

        surface.restore()

    def composite_feathered(self, surface: DrawingSurface, points: np.ndarray,
                            color: RGB, color_alpha: float, base_width: float):
        """
        羽化笔触：同一路径由宽到窄描边三次，形成柔和外晕与致密内芯

        Args:
            surface (DrawingSurface): 绘图表面
            points (np.ndarray): (n, 2) 像素空间路径
            color (RGB): 颜色
            color_alpha (float): 颜色自带不透明度
            base_width (float): 基础线宽（像素）
        """
        for width_scale, alpha in self.config.feather_passes:
            surface.stroke_polyline(points, color, color_alpha * alpha, base_width * width_scale)

    def blob_alpha(self, progress: float) -> float:
        """湿润笔尖随进度淡出的不透明度"""
        cfg = self.config
        fade = (progress / cfg.blob_fade_progress) ** cfg.blob_fade_power
        return cfg.blob_base_alpha * max(0.0, 1.0 - fade)

    def _shadow_pass(self, surface: DrawingSurface, ribbon: np.ndarray, rgb: RGB,
                     max_half_width: float):
        cfg = self.config
        shadow = Shadow(color=darken(rgb, cfg.shadow_darken), alpha=cfg.shadow_alpha,
                        blur=max_half_width * cfg.shadow_blur,
                        offset_y=max_half_width * cfg.shadow_offset_y,
                        opaque_caster=cfg.shadow_opaque_caster)
        surface.fill_polygon(ribbon, rgb, cfg.shadow_fill_alpha, shadow=shadow)

    def _texture_pass(self, surface: DrawingSurface, runtime: StrokeRuntime,
                      geometry: FrameGeometry, ribbon: np.ndarray, texture: np.ndarray,
                      strength: float):
        strength = min(1.0, max(0.0, strength))
        if strength <= 0 or texture.size == 0:
            return
        bounds = geometry.bounds()
        if bounds is None:
            return

        x0, y0, x1, y1 = bounds
        cover = math.hypot(x1 - x0, y1 - y0) * (1.0 + self.texture_config.margin)
        if cover <= 0:
            return
        dx, dy = stroke_direction(runtime.points[:geometry.count], surface.width, surface.height)
        matrix = _cover_matrix(texture.shape[1], texture.shape[0], cover,
                               ((x0 + x1) / 2.0, (y0 + y1) / 2.0), math.atan2(dy, dx))

        surface.save()
        surface.clip(ribbon)
        for mode, alpha in self.texture_config.blend_passes:
            surface.draw_image(texture, matrix, alpha * strength, blend=mode)
        surface.restore()

    def _meniscus_pass(self, surface: DrawingSurface, geometry: FrameGeometry, rgb: RGB):
        cfg = self.config
        tint = darken(rgb, cfg.meniscus_darken)
        surface.fill_polygon(band(geometry.left, geometry.inset(cfg.meniscus_inset)),
                             tint, cfg.meniscus_alpha)
        surface.fill_polygon(band(geometry.inset(-cfg.meniscus_inset), geometry.right),
                             tint, cfg.meniscus_alpha)

    def _bristle_pass(self, surface: DrawingSurface, runtime: StrokeRuntime,
                      geometry: FrameGeometry):
        cfg = self.config
        ridge = shade(runtime.rgb, cfg.ridge_lighten)
        valley = darken(runtime.rgb, cfg.valley_darken)
        for bristle in runtime.bristles:
            surface.stroke_polyline(geometry.inset(bristle.frac),
                                    ridge if bristle.is_ridge else valley,
                                    bristle.alpha, bristle.line_width)

    def _specular_pass(self, surface: DrawingSurface, runtime: StrokeRuntime,
                       geometry: FrameGeometry):
        cfg = self.config
        halo = geometry.inset(runtime.spec_frac * cfg.specular_halo_scale)
        surface.stroke_polyline(halo, cfg.specular_halo_color[:3], cfg.specular_halo_color[3],
                                cfg.specular_halo_width, blend=BlendMode.SCREEN)
        glint = geometry.inset(runtime.spec_frac)
        surface.stroke_polyline(glint, cfg.specular_glint_color[:3], cfg.specular_glint_color[3],
                                cfg.specular_glint_width, blend=BlendMode.SCREEN)

    def _blob_pass(self, surface: DrawingSurface, geometry: FrameGeometry, rgb: RGB):
        cfg = self.config
        alpha = self.blob_alpha(geometry.progress)
        if alpha <= cfg.blob_min_alpha:
            return

        tx, ty = geometry.tip
        tip_hw = geometry.tip_half_width
        radius = tip_hw * cfg.blob_radius
        if radius <= 0:
            return
        hx = tx - tip_hw * cfg.blob_highlight_offset
        hy = ty - tip_hw * cfg.blob_highlight_offset

        gradient = RadialGradient(hx, hy, tip_hw * cfg.blob_highlight_radius, tx, ty, radius)
        gradient.add_color_stop(0.00, shade(rgb, cfg.blob_highlight_lighten),
                                round(alpha * cfg.blob_highlight_factor, 3))
        gradient.add_color_stop(0.40, rgb, round(alpha, 3))
        gradient.add_color_stop(0.80, darken(rgb, cfg.blob_meniscus_darken),
                                round(alpha * cfg.blob_meniscus_factor, 3))
        gradient.add_color_stop(1.00, rgb, 0.0)

        shadow = Shadow(color=darken(rgb, cfg.blob_shadow_darken), alpha=cfg.blob_shadow_alpha,
                        blur=tip_hw)
        surface.fill_circle(tx, ty, radius, gradient, 1.0, shadow=shadow)
        surface.fill_circle(hx, hy, tip_hw * cfg.blob_glint_radius, cfg.blob_glint_color,
                            round(alpha * cfg.blob_glint_alpha, 3), blend=BlendMode.SCREEN)


def _cover_matrix(image_width: int, image_height: int, cover: float,
                  center: Sequence[float], angle: float) -> np.ndarray:
    """
    将图像等比缩放到至少覆盖 cover×cover 的方形，按 angle 旋转并居中于 center

    Returns:
        np.ndarray: 2x3 仿射矩阵（图像像素 -> 逻辑坐标）
    """
    scale = cover / max(1, min(image_width, image_height))
    cos_a = math.cos(angle) * scale
    sin_a = math.sin(angle) * scale
    cx, cy = center
    ox = image_width / 2.0
    oy = image_height / 2.0
    return np.array([
        [cos_a, -sin_a, cx - (cos_a * ox - sin_a * oy)],
        [sin_a, cos_a, cy - (sin_a * ox + cos_a * oy)],
    ], dtype=np.float64)

