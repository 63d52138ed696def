# -*- coding: utf-8 -*-
"""
几何构建器

动画核心：
1. 由固定种子一次性构建笔触运行时数据
2. 时间缓动与笔触阶段
3. 宽度轮廓（入笔渐宽、收笔渐细）
4. 逐帧生成像素空间的带状几何
"""

import math
import numpy as np
from typing import Dict, List, Optional, Any, Sequence
import logging
from dataclasses import dataclass

from ..random_source import RandomSource
from ..stroke_model import (
    StrokeDefinition, StrokeRuntime, FrameGeometry, StrokePhase, hex_to_rgb
)
from .path_sampler import sample_bezier, compute_normals
from .texture_baker import bake_noise, build_bristles

ENTRY_LENGTH = 0.04
ENTRY_POWER = 0.55
LIVE_EXIT_LENGTH = 0.07
LIVE_EXIT_POWER = 0.45
SETTLED_EXIT_LENGTH = 0.20
SETTLED_EXIT_POWER = 1.15
MIN_REVEALED = 3


def ease_out_cubic(t: float) -> float:
    """快速展开、减速收尾"""
    return 1.0 - (1.0 - t) ** 3


def raw_progress(elapsed: float, start_time: float, duration: float) -> float:
    """
    线性时间进度

    Args:
        elapsed (float): 场景已过时间
        start_time (float): 笔触开始时间
        duration (float): 笔触时长

    Returns:
        float: [0,1] 进度
    """
    if duration <= 0:
        return 1.0 if elapsed >= start_time else 0.0
    return min(1.0, max(0.0, (elapsed - start_time) / duration))


def stroke_progress(elapsed: float, start_time: float, duration: float) -> float:
    """缓动后的笔触进度"""
    return ease_out_cubic(raw_progress(elapsed, start_time, duration))


def stroke_phase(elapsed: float, start_time: float, progress: float,
                 live_threshold: float = 0.96) -> StrokePhase:
    """
    判断笔触所处阶段

    Args:
        elapsed (float): 场景已过时间
        start_time (float): 笔触开始时间
        progress (float): 缓动进度
        live_threshold (float): 湿润笔尖阈值

    Returns:
        StrokePhase: 阶段
    """
    if elapsed <= start_time:
        return StrokePhase.NOT_STARTED
    if progress >= 1.0:
        return StrokePhase.COMPLETE
    if progress >= live_threshold:
        return StrokePhase.SETTLING
    return StrokePhase.REVEALING


def revealed_count(progress: float, total_samples: int) -> int:
    """
    当前可见的样本数

    Args:
        progress (float): 缓动进度
        total_samples (int): 样本总数 (N+1)

    Returns:
        int: 可见样本数
    """
    # 四舍五入取半数向上
    count = max(MIN_REVEALED, int(math.floor(progress * (total_samples - 1) + 0.5)) + 1)
    return min(count, total_samples)


def width_profile(t: float, is_live: bool) -> float:
    """
    沿已绘制部分的宽度乘数

    仍在动画中的笔尖保持短而圆润的湿润尖端，
    完成后换成较长的自然提笔收尖

    Args:
        t (float): 归一化位置 [0,1]
        is_live (bool): 笔触是否仍在展开

    Returns:
        float: [0,1] 乘数
    """
    entry = (t / ENTRY_LENGTH) ** ENTRY_POWER if t < ENTRY_LENGTH else 1.0
    exit_length = LIVE_EXIT_LENGTH if is_live else SETTLED_EXIT_LENGTH
    exit_power = LIVE_EXIT_POWER if is_live else SETTLED_EXIT_POWER
    exit_ = ((1.0 - t) / exit_length) ** exit_power if t > 1.0 - exit_length else 1.0
    return entry * exit_


def width_profile_array(t: np.ndarray, is_live: bool) -> np.ndarray:
    """width_profile 的向量化版本"""
    t = np.clip(np.asarray(t, dtype=np.float64), 0.0, 1.0)
    entry = np.where(t < ENTRY_LENGTH, (t / ENTRY_LENGTH) ** ENTRY_POWER, 1.0)
    exit_length = LIVE_EXIT_LENGTH if is_live else SETTLED_EXIT_LENGTH
    exit_power = LIVE_EXIT_POWER if is_live else SETTLED_EXIT_POWER
    tail = np.maximum(0.0, 1.0 - t) / exit_length
    exit_ = np.where(t > 1.0 - exit_length, tail ** exit_power, 1.0)
    return entry * exit_


@dataclass(frozen=True)
class GeometryConfig:
    """
    几何配置
    """
    seed: int = 0xd3a7f1c9
    sample_count: int = 200
    noise_step: int = 7
    noise_amplitude: float = 0.11
    live_threshold: float = 0.96
    bristle_base_count: int = 28
    bristle_extra_count: int = 11

    def __post_init__(self):
        if self.sample_count < 2:
            raise ValueError("sample_count must be >= 2")
        if self.noise_step < 1:
            raise ValueError("noise_step must be >= 1")

    @classmethod
    def from_section(cls, section: Dict[str, Any]) -> 'GeometryConfig':
        """从配置段构建，忽略无关键"""
        fields = cls.__dataclass_fields__
        return cls(**{k: v for k, v in section.items() if k in fields})


class GeometryBuilder:
    """
    几何构建器

    负责一次性构建笔触运行时数据，以及逐帧生成带状几何
    """

    def __init__(self, config: Optional[GeometryConfig] = None):
        """
        初始化几何构建器

        Args:
            config: 几何配置
        """
        self.config = config or GeometryConfig()
        self.logger = logging.getLogger(__name__)

    def build_runtimes(self, definitions: Sequence[StrokeDefinition]) -> List[StrokeRuntime]:
        """
        由固定种子构建所有笔触的运行时数据

        随机数消耗顺序固定：左噪声、右噪声、笔毛数、笔毛、高光位置

        Args:
            definitions: 笔触定义列表

        Returns:
            List[StrokeRuntime]: 运行时数据
        """
        rng = RandomSource(self.config.seed)
        runtimes = []
        for definition in definitions:
            n = definition.sample_count
            points = sample_bezier(definition.p0, definition.c1, definition.c2, definition.p3, n)
            noise_left = bake_noise(n + 1, rng, self.config.noise_step)
            noise_right = bake_noise(n + 1, rng, self.config.noise_step)

            bristle_count = self.config.bristle_base_count + int(rng() * self.config.bristle_extra_count)
            bristles = build_bristles(bristle_count, rng)

            runtimes.append(StrokeRuntime(
                definition=definition,
                rgb=hex_to_rgb(definition.color),
                points=points,
                noise_left=noise_left,
                noise_right=noise_right,
                bristles=bristles,
                spec_frac=-(0.34 + rng() * 0.10),
            ))

        self.logger.info(f"Built {len(runtimes)} stroke runtimes from seed {self.config.seed:#010x}")
        return runtimes

    def allocate(self, runtime: StrokeRuntime) -> FrameGeometry:
        """为笔触预分配逐帧几何缓冲区"""
        return FrameGeometry(runtime.sample_count)

    def build_frame(self, runtime: StrokeRuntime, progress: float, width: float, height: float,
                    out: Optional[FrameGeometry] = None) -> Optional[FrameGeometry]:
        """
        生成一帧的像素空间带状几何

        Args:
            runtime (StrokeRuntime): 笔触运行时数据
            progress (float): 缓动进度
            width (float): 画布逻辑宽度
            height (float): 画布逻辑高度
            out (FrameGeometry, optional): 复用的缓冲区

        Returns:
            Optional[FrameGeometry]: 几何；可见样本不足2个时返回 None
        """
        total = runtime.sample_count
        if total < 2:
            return None
        count = revealed_count(progress, total)
        if count < 2:
            return None

        geometry = out if out is not None and out.capacity >= total else FrameGeometry(total)
        geometry.count = count
        geometry.progress = progress
        geometry.is_live = progress < self.config.live_threshold
        geometry.max_half_width = runtime.definition.max_half_width * width

        pts = runtime.points[:count]
        spine = geometry._spine[:count]
        np.multiply(pts, (width, height), out=spine)
        geometry._normals[:count] = compute_normals(pts, width, height)

        t = np.arange(count, dtype=np.float64) / (count - 1)
        hw = geometry._half_width[:count]
        np.multiply(width_profile_array(t, geometry.is_live), geometry.max_half_width, out=hw)

        # 噪声随局部半宽缩放，零宽笔尖处噪声随之消失
        amp = self.config.noise_amplitude
        offset_left = hw + runtime.noise_left[:count] * hw * amp
        offset_right = hw + runtime.noise_right[:count] * hw * amp
        normals = geometry._normals[:count]
        geometry._left[:count] = spine + normals * offset_left[:, None]
        geometry._right[:count] = spine - normals * offset_right[:, None]
        return geometry

    def phase(self, runtime: StrokeRuntime, elapsed: float) -> StrokePhase:
        """笔触在给定时刻的阶段"""
        progress = stroke_progress(elapsed, runtime.start_time, runtime.duration)
        return stroke_phase(elapsed, runtime.start_time, progress, self.config.live_threshold)
