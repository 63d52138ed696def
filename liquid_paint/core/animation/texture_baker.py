# -*- coding: utf-8 -*-
"""
纹理烘焙器

预先烘焙低频边缘噪声、笔毛描述，以及环境变体使用的颗粒与暗角覆盖层
"""

import math
import cv2
import numpy as np
from typing import List, Tuple

from ..random_source import RandomSource
from ..stroke_model import Bristle
from ..surface import RadialGradient

RIDGE_THRESHOLD = 0.40
BRISTLE_SPREAD = 0.93


def bake_noise(count: int, rng: RandomSource, step: int = 8) -> np.ndarray:
    """
    Hermite 平滑的低频噪声

    在 ⌈count/step⌉+2 个控制值之间做 smoothstep 插值，得到 C¹ 连续的噪声，
    避免笔触边缘出现可见的折点

    Args:
        count (int): 输出长度
        rng (RandomSource): 随机数源
        step (int): 控制点间距

    Returns:
        np.ndarray: (count,) 噪声，范围 [-0.5, 0.5)
    """
    if step < 1:
        raise ValueError(f"Noise step must be >= 1, got {step}")
    control_count = math.ceil(count / step) + 2
    ctrl = np.array([rng() - 0.5 for _ in range(control_count)], dtype=np.float64)

    fi = np.arange(count, dtype=np.float64) / step
    lo = np.floor(fi).astype(np.int64)
    hi = np.minimum(lo + 1, control_count - 1)
    f = fi - lo
    s = f * f * (3.0 - 2.0 * f)
    return ctrl[lo] + (ctrl[hi] - ctrl[lo]) * s


def build_bristles(count: int, rng: RandomSource) -> List[Bristle]:
    """
    生成笔毛描述

    约60%为亮脊、40%为暗谷；亮脊更亮且透明度范围更宽

    Args:
        count (int): 笔毛数量
        rng (RandomSource): 随机数源

    Returns:
        List[Bristle]: 笔毛列表
    """
    bristles = []
    for _ in range(count):
        is_ridge = rng() > RIDGE_THRESHOLD
        frac = (rng() * 2.0 - 1.0) * BRISTLE_SPREAD
        if is_ridge:
            alpha = 0.06 + rng() * 0.10
        else:
            alpha = 0.04 + rng() * 0.06
        line_width = 0.45 + rng() * 1.30
        bristles.append(Bristle(frac=frac, alpha=alpha, line_width=line_width, is_ridge=is_ridge))
    return bristles


def bake_grain(size: int, seed: int) -> np.ndarray:
    """
    烘焙灰度颗粒图块

    Args:
        size (int): 图块边长
        seed (int): 种子，保证重绘结果一致

    Returns:
        np.ndarray: (size, size) 灰度 [0,1]
    """
    generator = np.random.default_rng(seed)
    values = generator.integers(0, 256, size=(size, size), dtype=np.uint8)
    return values.astype(np.float32) / 255.0


def tile_grain(tile: np.ndarray, device_size: Tuple[int, int], pixel_ratio: float) -> np.ndarray:
    """
    将颗粒图块按像素比放大后平铺到整个后备缓冲区

    Args:
        tile (np.ndarray): 灰度图块
        device_size (Tuple[int, int]): (宽, 高) 设备像素
        pixel_ratio (float): 设备像素比

    Returns:
        np.ndarray: (h, w) 灰度
    """
    width, height = device_size
    if width == 0 or height == 0:
        return np.zeros((height, width), dtype=np.float32)
    scaled_size = max(1, int(round(tile.shape[0] * pixel_ratio)))
    scaled = cv2.resize(tile, (scaled_size, scaled_size), interpolation=cv2.INTER_NEAREST)
    reps_y = height // scaled_size + 1
    reps_x = width // scaled_size + 1
    return np.tile(scaled, (reps_y, reps_x))[:height, :width]


def bake_vignette(xs: np.ndarray, ys: np.ndarray, width: float, height: float,
                  color: Tuple[int, int, int], alpha: float,
                  inner: float = 0.28) -> Tuple[np.ndarray, np.ndarray]:
    """
    烘焙与尺寸相关的暗角覆盖层

    Args:
        xs (np.ndarray): 像素中心逻辑 x 坐标网格
        ys (np.ndarray): 像素中心逻辑 y 坐标网格
        width (float): 逻辑宽度
        height (float): 逻辑高度
        color: 暗角颜色
        alpha (float): 边缘不透明度
        inner (float): 内圈半径（相对短边）

    Returns:
        Tuple[np.ndarray, np.ndarray]: (RGB, alpha)
    """
    cx, cy = width / 2.0, height / 2.0
    gradient = RadialGradient(cx, cy, min(width, height) * inner,
                              cx, cy, math.hypot(width, height) / 2.0)
    gradient.add_color_stop(0.0, color, 0.0)
    gradient.add_color_stop(1.0, color, alpha)
    return gradient.evaluate(xs, ys)
