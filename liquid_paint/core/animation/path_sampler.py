# -*- coding: utf-8 -*-
"""
路径采样器

将三次贝塞尔控制点转换为稠密有序的路径样本，并计算逐样本法线
"""

import numpy as np
from typing import Sequence, Tuple

Point = Tuple[float, float]


def sample_bezier(p0: Point, c1: Point, c2: Point, p3: Point, n: int) -> np.ndarray:
    """
    按曲线参数均匀采样三次贝塞尔曲线

    参数空间均匀而非弧长均匀，曲线上的速度本身就不均匀

    Args:
        p0 (Point): 起点
        c1 (Point): 控制点1
        c2 (Point): 控制点2
        p3 (Point): 终点
        n (int): 分段数

    Returns:
        np.ndarray: (n+1, 2) 采样点
    """
    if n < 1:
        raise ValueError(f"Sample count must be >= 1, got {n}")
    t = np.arange(n + 1, dtype=np.float64) / n
    u = 1.0 - t
    b0 = u * u * u
    b1 = 3.0 * u * u * t
    b2 = 3.0 * u * t * t
    b3 = t * t * t

    ctrl = np.array([p0, c1, c2, p3], dtype=np.float64)
    points = (b0[:, None] * ctrl[0] + b1[:, None] * ctrl[1]
              + b2[:, None] * ctrl[2] + b3[:, None] * ctrl[3])
    # 端点精确等于控制点
    points[0] = ctrl[0]
    points[-1] = ctrl[3]
    return points


def compute_normals(points: np.ndarray, width: float, height: float) -> np.ndarray:
    """
    计算逐样本左手单位法线

    切线由相邻样本的中心差分得到，并先换算到像素空间，
    避免宽高比扭曲垂直方向；端点使用截断的单侧邻居

    Args:
        points (np.ndarray): (n, 2) 归一化样本
        width (float): 画布逻辑宽度
        height (float): 画布逻辑高度

    Returns:
        np.ndarray: (n, 2) 单位法线
    """
    points = np.asarray(points, dtype=np.float64)
    count = len(points)
    if count == 0:
        return np.zeros((0, 2), dtype=np.float64)

    idx = np.arange(count)
    prev = points[np.maximum(0, idx - 1)]
    nxt = points[np.minimum(count - 1, idx + 1)]
    dx = (nxt[:, 0] - prev[:, 0]) * width
    dy = (nxt[:, 1] - prev[:, 1]) * height
    length = np.hypot(dx, dy)
    length[length == 0] = 1.0
    return np.stack([-dy / length, dx / length], axis=1)


def stroke_direction(points: Sequence, width: float, height: float) -> Tuple[float, float]:
    """
    像素空间中从首样本指向末样本的单位方向

    Args:
        points: 归一化样本
        width (float): 画布逻辑宽度
        height (float): 画布逻辑高度

    Returns:
        Tuple[float, float]: 单位方向向量
    """
    points = np.asarray(points, dtype=np.float64)
    if len(points) < 2:
        return 1.0, 0.0
    dx = (points[-1, 0] - points[0, 0]) * width
    dy = (points[-1, 1] - points[0, 1]) * height
    length = float(np.hypot(dx, dy))
    if length == 0:
        return 1.0, 0.0
    return float(dx / length), float(dy / length)
