# -*- coding: utf-8 -*-
"""
环境背景场景

液态场景的轻量变体：摇摆的羽化笔触、脉动的露珠光斑、
上浮闪烁的微粒、跟随指针的柔光，以及颗粒与暗角覆盖层
"""

import math
import numpy as np
from typing import List, Optional, Tuple
import logging
from dataclasses import dataclass

from ..random_source import RandomSource
from ..surface import DrawingSurface, RadialGradient, Shadow
from .path_sampler import sample_bezier
from .texture_baker import bake_grain, tile_grain, bake_vignette
from .layer_compositor import LayerCompositor

Rgba = Tuple[int, int, int, float]

STROKE_PALETTE: List[Rgba] = [
    (214, 186, 163, 0.25),
    (196, 164, 140, 0.30),
    (199, 155, 148, 0.22),
    (183, 133, 137, 0.20),
    (228, 210, 186, 0.28),
    (237, 224, 206, 0.20),
    (176, 146, 154, 0.18),
]

BLOB_PALETTE: List[Rgba] = [
    (210, 180, 165, 0.12),
    (220, 195, 175, 0.10),
    (215, 185, 160, 0.13),
    (205, 175, 155, 0.11),
    (225, 200, 180, 0.09),
]

PARTICLE_PALETTE: List[Rgba] = [
    (255, 248, 235, 0.50),
    (220, 195, 180, 0.40),
    (245, 235, 220, 0.45),
]

# 控制点随摇摆位移的权重：起点、控制点1、控制点2、终点
SWAY_WEIGHTS = (0.4, 1.0, 0.8, 0.3)
SWAY_SAMPLES = 48
TWO_PI = math.pi * 2.0


@dataclass(frozen=True)
class AmbientConfig:
    """
    环境场景参数
    """
    seed: int = 0xa4c2e971
    stroke_sway_speed: float = 0.18
    blob_pulse_speed: float = 0.22
    particle_speed: float = 0.025
    particle_glow: float = 6.0
    light_radius: float = 0.25
    light_color: Rgba = (255, 250, 240, 0.15)
    grain_size: int = 256
    grain_alpha: int = 13
    grain_seed: int = 0x5eed
    vignette_color: Tuple[int, int, int] = (59, 47, 42)
    vignette_alpha: float = 0.14
    vignette_inner: float = 0.28
    static_elapsed: float = 2.5

    def __post_init__(self):
        if self.grain_size < 1:
            raise ValueError(f"grain_size must be >= 1, got {self.grain_size}")
        if not 0 <= self.grain_alpha <= 255:
            raise ValueError(f"grain_alpha must be in [0, 255], got {self.grain_alpha}")
        if self.static_elapsed < 0:
            raise ValueError("static_elapsed must be non-negative")


@dataclass
class AmbientStroke:
    """摇摆的羽化笔触（归一化坐标）"""
    p0: Tuple[float, float]
    c1: Tuple[float, float]
    c2: Tuple[float, float]
    p3: Tuple[float, float]
    color: Rgba
    base_width: float
    sway_phase: float
    sway_amp_x: float
    sway_amp_y: float


@dataclass
class DewyBlob:
    """脉动的露珠光斑"""
    cx: float
    cy: float
    radius: float
    pulse_phase: float
    drift_phase: float
    drift_amp: float
    color: Rgba


@dataclass
class ShimmerParticle:
    """上浮闪烁的微粒"""
    x: float
    y: float
    radius: float
    opacity_phase: float
    drift_phase: float
    speed: float
    color: Rgba


@dataclass
class AmbientSceneData:
    strokes: List[AmbientStroke]
    blobs: List[DewyBlob]
    particles: List[ShimmerParticle]


def build_scene_data(seed: int = 0xa4c2e971, particle_speed: float = 0.025) -> AmbientSceneData:
    """
    由固定种子构建环境场景数据

    笔触、光斑、微粒共用同一个随机数源，生成顺序即消耗顺序

    Args:
        seed (int): 种子
        particle_speed (float): 微粒基础上浮速度（画布高度/秒）

    Returns:
        AmbientSceneData: 场景数据
    """
    rng = RandomSource(seed)

    strokes = []
    for _ in range(5 + int(rng() * 4)):
        # 前三个随机数只推进序列
        rng(), rng(), rng()
        p0x = -0.05 + rng() * 0.25 if rng() < 0.6 else rng() * 0.3
        p0y = 0.05 + rng() * 0.9
        p3x = 0.7 + rng() * 0.35
        p3y = 0.05 + rng() * 0.9
        perp_x = -(p3y - p0y)
        perp_y = p3x - p0x
        perp_len = math.hypot(perp_x, perp_y) or 1.0
        bow = (rng() - 0.5) * 0.35
        bow_x = perp_x / perp_len * bow
        bow_y = perp_y / perp_len * bow

        c1x = p0x + (p3x - p0x) * 0.3 + bow_x + (rng() - 0.5) * 0.12
        c1y = p0y + (p3y - p0y) * 0.3 + bow_y + (rng() - 0.5) * 0.12
        c2x = p0x + (p3x - p0x) * 0.7 + bow_x + (rng() - 0.5) * 0.12
        c2y = p0y + (p3y - p0y) * 0.7 + bow_y + (rng() - 0.5) * 0.12
        strokes.append(AmbientStroke(
            p0=(p0x, p0y), c1=(c1x, c1y), c2=(c2x, c2y), p3=(p3x, p3y),
            color=rng.choice(STROKE_PALETTE),
            base_width=0.025 + rng() * 0.045,
            sway_phase=rng() * TWO_PI,
            sway_amp_x=0.012 + rng() * 0.02,
            sway_amp_y=0.008 + rng() * 0.015,
        ))

    blobs = []
    for _ in range(10 + int(rng() * 6)):
        blobs.append(DewyBlob(
            cx=rng(),
            cy=rng(),
            radius=0.06 + rng() * 0.12,
            pulse_phase=rng() * TWO_PI,
            drift_phase=rng() * TWO_PI,
            drift_amp=0.008 + rng() * 0.012,
            color=rng.choice(BLOB_PALETTE),
        ))

    particles = []
    for _ in range(30 + int(rng() * 21)):
        particles.append(ShimmerParticle(
            x=rng(),
            y=rng(),
            radius=0.5 + rng() * 2.5,
            opacity_phase=rng() * TWO_PI,
            drift_phase=rng() * TWO_PI,
            speed=particle_speed * (0.4 + rng() * 0.8),
            color=rng.choice(PARTICLE_PALETTE),
        ))

    return AmbientSceneData(strokes, blobs, particles)


def swayed_path(stroke: AmbientStroke, elapsed: float, width: float, height: float,
                sway_speed: float = 0.18, samples: int = SWAY_SAMPLES) -> np.ndarray:
    """
    在像素空间采样加入摇摆位移后的笔触路径

    Args:
        stroke (AmbientStroke): 笔触
        elapsed (float): 场景时间
        width (float): 逻辑宽度
        height (float): 逻辑高度
        sway_speed (float): 摇摆速度
        samples (int): 分段数

    Returns:
        np.ndarray: (samples+1, 2) 像素坐标
    """
    sway = elapsed * sway_speed
    dx = math.sin(sway + stroke.sway_phase) * stroke.sway_amp_x * width
    dy = math.cos(sway * 0.7 + stroke.sway_phase + 1.2) * stroke.sway_amp_y * height
    controls = [
        (x * width + dx * k, y * height + dy * k)
        for (x, y), k in zip((stroke.p0, stroke.c1, stroke.c2, stroke.p3), SWAY_WEIGHTS)
    ]
    return sample_bezier(*controls, samples)


class AmbientScene:
    """
    环境背景场景

    场景数据在构建时一次性生成；颗粒与暗角图层依赖尺寸，在 resize 时重新烘焙
    """

    def __init__(self, config: Optional[AmbientConfig] = None,
                 compositor: Optional[LayerCompositor] = None):
        """
        初始化环境场景

        Args:
            config: 环境场景参数
            compositor: 图层合成器（用于羽化笔触）
        """
        self.config = config or AmbientConfig()
        self.compositor = compositor or LayerCompositor()
        self.logger = logging.getLogger(__name__)

        self.data = build_scene_data(self.config.seed, self.config.particle_speed)
        self._grain_tile = bake_grain(self.config.grain_size, self.config.grain_seed)
        self._grain_layer: Optional[np.ndarray] = None
        self._grain_alpha: Optional[np.ndarray] = None
        self._vignette: Optional[Tuple[np.ndarray, np.ndarray]] = None

        self.logger.info(f"Ambient scene: {len(self.data.strokes)} strokes, "
                         f"{len(self.data.blobs)} blobs, {len(self.data.particles)} particles")

    def resize(self, surface: DrawingSurface):
        """
        重新烘焙与尺寸相关的覆盖层

        Args:
            surface (DrawingSurface): 已调整尺寸的绘图表面
        """
        if surface.is_empty:
            self._grain_layer = None
            self._vignette = None
            return
        cfg = self.config
        self._grain_layer = tile_grain(self._grain_tile, surface.device_size, surface.pixel_ratio)
        self._grain_alpha = np.full(self._grain_layer.shape, cfg.grain_alpha / 255.0, dtype=np.float32)
        xs, ys = surface.pixel_grid()
        self._vignette = bake_vignette(xs, ys, surface.width, surface.height,
                                       cfg.vignette_color, cfg.vignette_alpha, cfg.vignette_inner)
        self.logger.debug(f"Ambient overlays rebaked for {surface.device_size}")

    def draw(self, surface: DrawingSurface, elapsed: float, pointer: Tuple[float, float]):
        """
        绘制一帧（背景填充由调用方完成）

        Args:
            surface (DrawingSurface): 绘图表面
            elapsed (float): 场景时间(秒)
            pointer: 平滑后的指针位置（逻辑像素）
        """
        if self._vignette is None:
            self.resize(surface)
        width, height = surface.width, surface.height

        self._draw_strokes(surface, elapsed, width, height)
        self._draw_blobs(surface, elapsed, width, height)
        self._draw_particles(surface, elapsed, width, height)
        self._draw_light(surface, pointer, width, height)
        self._draw_overlays(surface)

    def _draw_strokes(self, surface: DrawingSurface, elapsed: float, width: float, height: float):
        for stroke in self.data.strokes:
            path = swayed_path(stroke, elapsed, width, height, self.config.stroke_sway_speed)
            self.compositor.composite_feathered(surface, path, stroke.color[:3], stroke.color[3],
                                                stroke.base_width * width)

    def _draw_blobs(self, surface: DrawingSurface, elapsed: float, width: float, height: float):
        pulse_speed = self.config.blob_pulse_speed
        for blob in self.data.blobs:
            pulse = 1.0 + 0.08 * math.sin(elapsed * pulse_speed * TWO_PI + blob.pulse_phase)
            drift = math.sin(elapsed * 0.15 + blob.drift_phase) * blob.drift_amp
            cx = (blob.cx + drift) * width
            cy = (blob.cy + drift * 0.6) * height
            radius = blob.radius * min(width, height) * pulse

            gradient = RadialGradient(cx, cy, 0.0, cx, cy, radius)
            gradient.add_color_stop(0.0, blob.color[:3], blob.color[3])
            gradient.add_color_stop(1.0, (247, 241, 231), 0.0)
            surface.fill_circle(cx, cy, radius, gradient)

    def _draw_particles(self, surface: DrawingSurface, elapsed: float, width: float, height: float):
        glow = self.config.particle_glow
        for particle in self.data.particles:
            rise = (elapsed * particle.speed) % 1.0
            drift = math.sin(elapsed * 0.4 + particle.drift_phase) * 0.02 * width
            px = particle.x * width + drift
            py = ((particle.y - rise + 1.0) % 1.0) * height

            opacity = 0.3 + 0.7 * (0.5 + 0.5 * math.sin(elapsed * 1.2 + particle.opacity_phase))
            rgb, alpha = particle.color[:3], particle.color[3] * opacity
            surface.fill_circle(px, py, particle.radius, rgb, alpha,
                                shadow=Shadow(color=rgb, alpha=alpha, blur=glow))

    def _draw_light(self, surface: DrawingSurface, pointer: Tuple[float, float],
                    width: float, height: float):
        cfg = self.config
        px, py = pointer
        color, alpha = cfg.light_color[:3], cfg.light_color[3]
        gradient = RadialGradient(px, py, 0.0, px, py, width * cfg.light_radius)
        gradient.add_color_stop(0.0, color, alpha)
        gradient.add_color_stop(1.0, color, 0.0)
        surface.fill_rect(0, 0, width, height, gradient)

    def _draw_overlays(self, surface: DrawingSurface):
        if self._grain_layer is not None and self._grain_layer.shape == surface.pixels.shape[:2]:
            surface.composite_layer(self._grain_layer[..., None], self._grain_alpha)
        if self._vignette is not None:
            rgb, alpha = self._vignette
            if alpha.shape == surface.pixels.shape[:2]:
                surface.composite_layer(rgb, alpha)
