#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
笔触建模核心模块
定义液态笔触的基础数据结构：创作定义、运行时数据、逐帧几何
"""

import numpy as np
from typing import List, Tuple, Sequence, Optional
from dataclasses import dataclass, field
from enum import Enum

Point = Tuple[float, float]
RGB = Tuple[int, int, int]


class StrokePhase(Enum):
    """笔触阶段枚举"""
    NOT_STARTED = "not_started"  # 尚未开始
    REVEALING = "revealing"      # 正在展开
    SETTLING = "settling"        # 收笔沉淀
    COMPLETE = "complete"        # 已完成


def clamp_channel(value: float) -> int:
    """将颜色通道限制在 [0,255]"""
    return int(min(255, max(0, round(value))))


def hex_to_rgb(hex_color: str) -> RGB:
    """#RRGGBB -> (r, g, b)"""
    value = hex_color.lstrip('#')
    if len(value) != 6:
        raise ValueError(f"Invalid hex colour: {hex_color}")
    return (int(value[0:2], 16), int(value[2:4], 16), int(value[4:6], 16))


def shade(rgb: Sequence[int], delta: Sequence[int]) -> RGB:
    """按通道偏移颜色并截断到有效字节范围"""
    return tuple(clamp_channel(c + d) for c, d in zip(rgb, delta))


def darken(rgb: Sequence[int], amount: Sequence[int]) -> RGB:
    return shade(rgb, [-a for a in amount])


@dataclass(frozen=True)
class StrokeDefinition:
    """
    创作的笔触定义（不可变）

    控制点位于归一化单位正方形内，可略微越界以便笔触从画面外进入
    """
    color: str                  # 基础颜色 #RRGGBB
    p0: Point                   # 起点
    c1: Point                   # 控制点1
    c2: Point                   # 控制点2
    p3: Point                   # 终点
    max_half_width: float       # 最大半宽（相对画布逻辑宽度）
    start_time: float           # 开始时间(秒)
    duration: float             # 持续时间(秒)
    sample_count: int = 200     # 采样数

    def __post_init__(self):
        if self.duration <= 0:
            raise ValueError(f"Stroke duration must be positive, got {self.duration}")
        if self.sample_count < 2:
            raise ValueError(f"Sample count must be >= 2, got {self.sample_count}")
        if self.max_half_width < 0:
            raise ValueError("Half-width factor must be non-negative")


@dataclass
class Bristle:
    """
    笔毛描述

    Attributes:
        frac (float): 垂直偏移（相对半宽），范围 [-0.93, 0.93]
        alpha (float): 不透明度
        line_width (float): 线宽(像素)
        is_ridge (bool): True 为亮脊, False 为暗谷
    """
    frac: float
    alpha: float
    line_width: float
    is_ridge: bool


@dataclass
class StrokeRuntime:
    """
    由固定种子派生的笔触运行时数据，每个场景只构建一次
    """
    definition: StrokeDefinition
    rgb: RGB
    points: np.ndarray                  # (N+1, 2) 归一化采样点
    noise_left: np.ndarray              # (N+1,)
    noise_right: np.ndarray             # (N+1,)
    bristles: List[Bristle] = field(default_factory=list)
    spec_frac: float = -0.39            # 高光侧向位置（负值为受光侧）

    @property
    def sample_count(self) -> int:
        return len(self.points)

    @property
    def start_time(self) -> float:
        return self.definition.start_time

    @property
    def duration(self) -> float:
        return self.definition.duration


class FrameGeometry:
    """
    逐帧几何（像素空间）

    缓冲区按笔触预先分配并在每帧复用，只有前 count 个样本有效
    """

    def __init__(self, capacity: int):
        self.capacity = capacity
        self.count = 0
        self.progress = 0.0
        self.is_live = False
        self.max_half_width = 0.0
        self._spine = np.zeros((capacity, 2), dtype=np.float64)
        self._normals = np.zeros((capacity, 2), dtype=np.float64)
        self._half_width = np.zeros(capacity, dtype=np.float64)
        self._left = np.zeros((capacity, 2), dtype=np.float64)
        self._right = np.zeros((capacity, 2), dtype=np.float64)

    @property
    def spine(self) -> np.ndarray:
        return self._spine[:self.count]

    @property
    def normals(self) -> np.ndarray:
        return self._normals[:self.count]

    @property
    def half_width(self) -> np.ndarray:
        return self._half_width[:self.count]

    @property
    def left(self) -> np.ndarray:
        return self._left[:self.count]

    @property
    def right(self) -> np.ndarray:
        return self._right[:self.count]

    @property
    def tip(self) -> Point:
        x, y = self._spine[self.count - 1]
        return float(x), float(y)

    @property
    def tip_half_width(self) -> float:
        return float(self._half_width[self.count - 1])

    def inset(self, fraction: float) -> np.ndarray:
        """
        距中心线 fraction × 半宽 处的内侧折线（正值为左侧）

        Args:
            fraction (float): 半宽比例

        Returns:
            np.ndarray: (count, 2) 点列
        """
        return self.spine + self.normals * (fraction * self.half_width)[:, None]

    def ribbon(self) -> np.ndarray:
        """左右边界围成的闭合多边形"""
        return band(self.left, self.right)

    def bounds(self) -> Optional[Tuple[float, float, float, float]]:
        """带状多边形的包围盒 (x0, y0, x1, y1)"""
        if self.count == 0:
            return None
        pts = np.concatenate([self.left, self.right])
        x0, y0 = pts.min(axis=0)
        x1, y1 = pts.max(axis=0)
        return float(x0), float(y0), float(x1), float(y1)


def band(edge_a: np.ndarray, edge_b: np.ndarray) -> np.ndarray:
    """两条平行边之间的闭合多边形"""
    return np.concatenate([edge_a, edge_b[::-1]])


# 默认液态场景：暖米色/棕褐色的粉底液色调
DEFAULT_STROKES: List[StrokeDefinition] = [
    # 1 · 左下到右上的大对角弧
    StrokeDefinition('#C8956A', (-0.03, 0.86), (0.12, 0.26), (0.52, 0.04), (1.03, 0.18), 0.050, 0.00, 1.10),
    # 2 · 横穿中部的S形曲线
    StrokeDefinition('#BE8A5E', (-0.03, 0.52), (0.28, 0.18), (0.64, 0.80), (1.03, 0.44), 0.042, 0.38, 1.00),
    # 3 · 上方对角线
    StrokeDefinition('#D9BEA0', (0.04, 0.06), (0.26, 0.00), (0.50, 0.18), (0.88, 0.42), 0.036, 0.76, 0.90),
    # 4 · 下方宽阔的底部扫笔
    StrokeDefinition('#AD7A52', (-0.03, 0.88), (0.26, 0.96), (0.64, 0.76), (1.03, 0.72), 0.046, 1.12, 0.94),
    # 5 · 右上角点缀
    StrokeDefinition('#D0B296', (0.54, 0.00), (0.74, 0.04), (0.88, 0.22), (1.03, 0.48), 0.033, 1.50, 0.78),
    # 6 · 左侧下行笔触
    StrokeDefinition('#BC8A62', (0.00, 0.10), (0.04, 0.36), (0.12, 0.62), (0.28, 1.02), 0.034, 1.82, 0.84),
    # 7 · 底部稳定笔触
    StrokeDefinition('#C8956A', (0.14, 1.03), (0.40, 0.82), (0.70, 0.94), (1.03, 0.96), 0.040, 2.12, 0.88),
    # 8 · 画面中部点缀
    StrokeDefinition('#BE8A5E', (0.30, 0.30), (0.46, 0.12), (0.66, 0.28), (0.82, 0.54), 0.029, 2.42, 0.72),
]
