#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
绘图表面模块
提供像素比感知的栅格画布：填充/描边路径、径向渐变、混合模式、
任意闭合路径裁剪、阴影模糊以及仿射图像绘制
"""

import cv2
import numpy as np
import logging
from typing import List, Tuple, Optional, Sequence, Union
from dataclasses import dataclass
from enum import Enum

from .stroke_model import RGB, hex_to_rgb

# cv2 亚像素精度位数
SUBPIXEL_SHIFT = 4
SUBPIXEL_SCALE = 1 << SUBPIXEL_SHIFT


class SurfaceError(RuntimeError):
    """绘图表面获取失败"""


class BlendMode(Enum):
    """
    混合模式枚举
    """
    NORMAL = "source-over"
    MULTIPLY = "multiply"
    SCREEN = "screen"
    SOFT_LIGHT = "soft-light"
    OVERLAY = "overlay"
    LIGHTER = "lighter"

    @classmethod
    def from_name(cls, name: Union[str, 'BlendMode']) -> 'BlendMode':
        """
        按名称解析混合模式，接受 soft_light / soft-light / normal 等写法

        Args:
            name: 模式名称

        Returns:
            BlendMode: 混合模式
        """
        if isinstance(name, BlendMode):
            return name
        key = str(name).strip().lower().replace('_', '-')
        if key == 'normal':
            return cls.NORMAL
        for mode in cls:
            if mode.value == key or mode.name.lower().replace('_', '-') == key:
                return mode
        raise ValueError(f"Unknown blend mode: {name}")


@dataclass
class Shadow:
    """
    阴影参数（逻辑像素）

    Attributes:
        color (RGB): 阴影颜色
        alpha (float): 阴影不透明度
        blur (float): 模糊量，高斯 sigma = blur / 2
        offset_x (float): 水平偏移
        offset_y (float): 垂直偏移
        opaque_caster (bool): 为 True 时按不透明形状投影，不乘以形状自身的不透明度
    """
    color: RGB
    alpha: float
    blur: float
    offset_x: float = 0.0
    offset_y: float = 0.0
    opaque_caster: bool = False


class RadialGradient:
    """
    双圆径向渐变

    对每个像素求最大的 ω 使其落在圆 (c0 + ω(c1-c0), r0 + ω(r1-r0)) 上，
    超出 [0,1] 的部分按端点颜色延伸
    """

    def __init__(self, x0: float, y0: float, r0: float,
                 x1: float, y1: float, r1: float):
        self.c0 = np.array([x0, y0], dtype=np.float64)
        self.c1 = np.array([x1, y1], dtype=np.float64)
        self.r0 = float(r0)
        self.r1 = float(r1)
        self.stops: List[Tuple[float, RGB, float]] = []

    def add_color_stop(self, offset: float, color: Sequence[int], alpha: float):
        """
        添加色标

        Args:
            offset (float): 位置 [0,1]
            color: RGB 颜色
            alpha (float): 不透明度
        """
        offset = min(1.0, max(0.0, float(offset)))
        self.stops.append((offset, tuple(color), float(alpha)))
        self.stops.sort(key=lambda s: s[0])
        return self

    def evaluate(self, xs: np.ndarray, ys: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        计算给定逻辑坐标处的颜色

        Args:
            xs (np.ndarray): x 坐标
            ys (np.ndarray): y 坐标

        Returns:
            Tuple[np.ndarray, np.ndarray]: (RGB [0,1] 数组 (...,3), alpha 数组)
        """
        shape = np.broadcast(xs, ys).shape
        if not self.stops:
            return np.zeros(shape + (3,), np.float32), np.zeros(shape, np.float32)

        cdx, cdy = self.c1 - self.c0
        dr = self.r1 - self.r0
        pdx = xs - self.c0[0]
        pdy = ys - self.c0[1]

        a = cdx * cdx + cdy * cdy - dr * dr
        b = pdx * cdx + pdy * cdy + self.r0 * dr
        c = pdx * pdx + pdy * pdy - self.r0 * self.r0

        with np.errstate(divide='ignore', invalid='ignore'):
            if abs(a) < 1e-12:
                omega = np.where(np.abs(b) > 1e-12, c / (2.0 * b), np.nan)
                valid = np.isfinite(omega) & (self.r0 + omega * dr >= 0)
            else:
                disc = b * b - a * c
                root = np.sqrt(np.maximum(disc, 0.0))
                w1 = (b + root) / a
                w2 = (b - root) / a
                hi = np.maximum(w1, w2)
                lo = np.minimum(w1, w2)
                omega = np.where(self.r0 + hi * dr >= 0, hi, lo)
                valid = (disc >= 0) & (self.r0 + omega * dr >= 0)

        t = np.clip(np.nan_to_num(omega, nan=0.0), 0.0, 1.0)

        offsets = np.array([s[0] for s in self.stops])
        colors = np.array([s[1] for s in self.stops], dtype=np.float64) / 255.0
        alphas = np.array([s[2] for s in self.stops], dtype=np.float64)

        rgb = np.empty(shape + (3,), dtype=np.float32)
        for ch in range(3):
            rgb[..., ch] = np.interp(t, offsets, colors[:, ch])
        alpha = np.where(valid, np.interp(t, offsets, alphas), 0.0).astype(np.float32)
        return rgb, alpha


Paint = Union[RadialGradient, Tuple[int, int, int]]


@dataclass
class _SurfaceState:
    blend: BlendMode
    clip: Optional[np.ndarray]


def _blend(mode: BlendMode, cb: np.ndarray, cs: np.ndarray) -> np.ndarray:
    """
    可分离混合函数 B(Cb, Cs)

    Args:
        mode (BlendMode): 混合模式
        cb (np.ndarray): 背景颜色
        cs (np.ndarray): 源颜色

    Returns:
        np.ndarray: 混合结果
    """
    if mode == BlendMode.MULTIPLY:
        return cb * cs
    if mode == BlendMode.SCREEN:
        return cb + cs - cb * cs
    if mode == BlendMode.OVERLAY:
        return np.where(cb <= 0.5, 2.0 * cb * cs, 1.0 - 2.0 * (1.0 - cb) * (1.0 - cs))
    if mode == BlendMode.SOFT_LIGHT:
        d = np.where(cb <= 0.25, ((16.0 * cb - 12.0) * cb + 4.0) * cb, np.sqrt(cb))
        return np.where(cs <= 0.5,
                        cb - (1.0 - 2.0 * cs) * cb * (1.0 - cb),
                        cb + (2.0 * cs - 1.0) * (d - cb))
    return np.broadcast_to(cs, cb.shape)


class DrawingSurface:
    """
    绘图表面

    后备缓冲区尺寸 = 逻辑尺寸 × 设备像素比，所有绘图接口使用逻辑坐标
    """

    def __init__(self, width: float = 0, height: float = 0, pixel_ratio: float = 1.0):
        """
        初始化绘图表面

        Args:
            width (float): 逻辑宽度
            height (float): 逻辑高度
            pixel_ratio (float): 设备像素比
        """
        self.logger = logging.getLogger(__name__)
        self.width = 0.0
        self.height = 0.0
        self.pixel_ratio = 1.0
        self.pixels = np.zeros((0, 0, 3), dtype=np.float32)
        self.blend_mode = BlendMode.NORMAL
        self._clip: Optional[np.ndarray] = None
        self._stack: List[_SurfaceState] = []
        self.resize(width, height, pixel_ratio)

    # ------------------------------------------------------------------
    # 尺寸与状态
    # ------------------------------------------------------------------

    def resize(self, width: float, height: float, pixel_ratio: float = 1.0):
        """
        调整后备缓冲区尺寸

        Args:
            width (float): 逻辑宽度
            height (float): 逻辑高度
            pixel_ratio (float): 设备像素比

        Raises:
            SurfaceError: 无法分配缓冲区
        """
        self.width = max(0.0, float(width))
        self.height = max(0.0, float(height))
        self.pixel_ratio = float(pixel_ratio) if pixel_ratio and pixel_ratio > 0 else 1.0

        device_w = int(self.width * self.pixel_ratio)
        device_h = int(self.height * self.pixel_ratio)
        try:
            self.pixels = np.zeros((device_h, device_w, 3), dtype=np.float32)
        except (MemoryError, ValueError) as e:
            raise SurfaceError(f"Cannot allocate {device_w}x{device_h} surface: {e}") from e

        self._clip = None
        self._stack.clear()
        self.blend_mode = BlendMode.NORMAL
        self.logger.debug(f"Surface resized to {self.width}x{self.height} @{self.pixel_ratio}x "
                          f"({device_w}x{device_h} px)")

    @property
    def device_size(self) -> Tuple[int, int]:
        return self.pixels.shape[1], self.pixels.shape[0]

    @property
    def is_empty(self) -> bool:
        return self.pixels.shape[0] == 0 or self.pixels.shape[1] == 0

    def save(self):
        """保存混合模式与裁剪区域"""
        clip = None if self._clip is None else self._clip.copy()
        self._stack.append(_SurfaceState(self.blend_mode, clip))

    def restore(self):
        """恢复上一次保存的状态"""
        if not self._stack:
            return
        state = self._stack.pop()
        self.blend_mode = state.blend
        self._clip = state.clip

    def clip(self, polygon: np.ndarray):
        """
        将后续绘制裁剪到闭合多边形内（与现有裁剪求交）

        Args:
            polygon (np.ndarray): (n, 2) 逻辑坐标
        """
        if self.is_empty:
            return
        h, w = self.pixels.shape[:2]
        mask = np.zeros((h, w), dtype=np.uint8)
        pts = self._to_device_int(polygon, 0, 0)
        if len(pts) >= 3:
            cv2.fillPoly(mask, [pts], 255, lineType=cv2.LINE_AA, shift=SUBPIXEL_SHIFT)
        coverage = mask.astype(np.float32) / 255.0
        self._clip = coverage if self._clip is None else self._clip * coverage

    # ------------------------------------------------------------------
    # 绘图接口
    # ------------------------------------------------------------------

    def fill(self, color: Union[str, Sequence[int]], alpha: float = 1.0):
        """
        填充整个表面

        Args:
            color: 颜色（#RRGGBB 或 RGB）
            alpha (float): 不透明度
        """
        if self.is_empty:
            return
        rgb = hex_to_rgb(color) if isinstance(color, str) else tuple(color)
        h, w = self.pixels.shape[:2]
        coverage = np.ones((h, w), dtype=np.float32)
        self._composite((0, 0, w, h), coverage, rgb, alpha, self.blend_mode)

    def fill_rect(self, x: float, y: float, width: float, height: float,
                  paint: Paint, alpha: float = 1.0, blend: Optional[BlendMode] = None):
        """填充矩形"""
        polygon = np.array([[x, y], [x + width, y], [x + width, y + height], [x, y + height]],
                           dtype=np.float64)
        self.fill_polygon(polygon, paint, alpha, blend=blend)

    def fill_polygon(self, polygon: np.ndarray, paint: Paint, alpha: float = 1.0,
                     shadow: Optional[Shadow] = None, blend: Optional[BlendMode] = None):
        """
        填充闭合多边形

        Args:
            polygon (np.ndarray): (n, 2) 逻辑坐标
            paint: RGB 颜色或径向渐变
            alpha (float): 不透明度
            shadow (Shadow, optional): 阴影
            blend (BlendMode, optional): 混合模式，默认使用当前状态
        """
        polygon = np.asarray(polygon, dtype=np.float64)
        if self.is_empty or len(polygon) < 3 or alpha <= 0:
            return

        def raster(mask, ox, oy, dx=0.0, dy=0.0):
            pts = self._to_device_int(polygon + (dx, dy), ox, oy)
            cv2.fillPoly(mask, [pts], 255, lineType=cv2.LINE_AA, shift=SUBPIXEL_SHIFT)

        self._draw(polygon, 1.0, raster, paint, alpha, shadow, blend)

    def stroke_polyline(self, points: np.ndarray, color: Sequence[int], alpha: float,
                        line_width: float, blend: Optional[BlendMode] = None,
                        shadow: Optional[Shadow] = None):
        """
        描边开放折线（圆形线帽）

        Args:
            points (np.ndarray): (n, 2) 逻辑坐标
            color: RGB 颜色
            alpha (float): 不透明度
            line_width (float): 线宽（逻辑像素）
            blend (BlendMode, optional): 混合模式
            shadow (Shadow, optional): 阴影
        """
        points = np.asarray(points, dtype=np.float64)
        if self.is_empty or len(points) < 2 or alpha <= 0 or line_width <= 0:
            return

        device_width = line_width * self.pixel_ratio
        thickness = max(1, int(round(device_width)))
        # 亚像素线宽通过降低覆盖率近似
        alpha = alpha * min(1.0, device_width)

        def raster(mask, ox, oy, dx=0.0, dy=0.0):
            pts = self._to_device_int(points + (dx, dy), ox, oy)
            cv2.polylines(mask, [pts], False, 255, thickness=thickness,
                          lineType=cv2.LINE_AA, shift=SUBPIXEL_SHIFT)

        self._draw(points, line_width / 2.0 + 1.0, raster, tuple(color), alpha, shadow, blend)

    def fill_circle(self, cx: float, cy: float, radius: float, paint: Paint,
                    alpha: float = 1.0, shadow: Optional[Shadow] = None,
                    blend: Optional[BlendMode] = None):
        """
        填充圆形

        Args:
            cx (float): 圆心 x
            cy (float): 圆心 y
            radius (float): 半径（逻辑像素）
            paint: RGB 颜色或径向渐变
            alpha (float): 不透明度
            shadow (Shadow, optional): 阴影
            blend (BlendMode, optional): 混合模式
        """
        if self.is_empty or radius <= 0 or alpha <= 0:
            return
        center = np.array([[cx, cy]], dtype=np.float64)
        device_radius = int(round(radius * self.pixel_ratio * SUBPIXEL_SCALE))

        def raster(mask, ox, oy, dx=0.0, dy=0.0):
            pts = self._to_device_int(center + (dx, dy), ox, oy)
            cv2.circle(mask, (int(pts[0][0]), int(pts[0][1])), max(1, device_radius), 255,
                       thickness=-1, lineType=cv2.LINE_AA, shift=SUBPIXEL_SHIFT)

        self._draw(center, radius + 1.0, raster, paint, alpha, shadow, blend)

    def draw_image(self, image: np.ndarray, matrix: np.ndarray, alpha: float = 1.0,
                   blend: Optional[BlendMode] = None):
        """
        经仿射变换绘制图像

        Args:
            image (np.ndarray): (H, W, 3) RGB 浮点图像 [0,1]
            matrix (np.ndarray): 2x3 矩阵，将图像像素坐标映射到逻辑坐标
            alpha (float): 不透明度
            blend (BlendMode, optional): 混合模式
        """
        if self.is_empty or alpha <= 0 or image.size == 0:
            return
        h_img, w_img = image.shape[:2]
        device = np.asarray(matrix, dtype=np.float64) * self.pixel_ratio

        corners = np.array([[0, 0, 1], [w_img, 0, 1], [w_img, h_img, 1], [0, h_img, 1]],
                           dtype=np.float64)
        mapped = corners @ device.T
        roi = self._roi_from_bounds(mapped[:, 0].min(), mapped[:, 1].min(),
                                    mapped[:, 0].max(), mapped[:, 1].max(), 1)
        if roi is None:
            return
        x0, y0, x1, y1 = roi

        local = device.copy()
        # 缓冲区像素中心位于 +0.5
        local[0, 2] -= x0 + 0.5
        local[1, 2] -= y0 + 0.5
        size = (x1 - x0, y1 - y0)
        warped = cv2.warpAffine(image.astype(np.float32), local, size,
                                flags=cv2.INTER_LINEAR, borderMode=cv2.BORDER_CONSTANT)
        coverage = cv2.warpAffine(np.ones((h_img, w_img), dtype=np.float32), local, size,
                                  flags=cv2.INTER_LINEAR, borderMode=cv2.BORDER_CONSTANT)
        self._composite(roi, coverage, warped, alpha, blend or self.blend_mode)

    def composite_layer(self, rgb: np.ndarray, alpha: np.ndarray,
                        blend: Optional[BlendMode] = None):
        """
        合成一张与后备缓冲区同尺寸的图层

        Args:
            rgb (np.ndarray): (h, w, 3) 或 (3,) 颜色 [0,1]
            alpha (np.ndarray): (h, w) 不透明度
            blend (BlendMode, optional): 混合模式
        """
        if self.is_empty:
            return
        h, w = self.pixels.shape[:2]
        if alpha.shape != (h, w):
            raise ValueError(f"Layer shape {alpha.shape} does not match surface {(h, w)}")
        self._composite((0, 0, w, h), alpha.astype(np.float32, copy=False), rgb, 1.0,
                        blend or self.blend_mode, rgb_is_unit=True)

    def pixel_grid(self) -> Tuple[np.ndarray, np.ndarray]:
        """后备缓冲区像素中心对应的逻辑坐标网格"""
        h, w = self.pixels.shape[:2]
        xs = (np.arange(w, dtype=np.float64) + 0.5) / self.pixel_ratio
        ys = (np.arange(h, dtype=np.float64) + 0.5) / self.pixel_ratio
        return np.meshgrid(xs, ys)

    def to_rgb8(self) -> np.ndarray:
        """
        导出 8 位 RGB 图像

        Returns:
            np.ndarray: (h, w, 3) uint8
        """
        return np.clip(self.pixels * 255.0 + 0.5, 0, 255).astype(np.uint8)

    # ------------------------------------------------------------------
    # 内部实现
    # ------------------------------------------------------------------

    def _to_device_int(self, points: np.ndarray, ox: int, oy: int) -> np.ndarray:
        # cv2 以整数坐标为像素中心，逻辑坐标需减去半个像素
        device = np.asarray(points, dtype=np.float64) * self.pixel_ratio - 0.5
        device[:, 0] -= ox
        device[:, 1] -= oy
        return np.round(device * SUBPIXEL_SCALE).astype(np.int32)

    def _roi_from_bounds(self, x0: float, y0: float, x1: float, y1: float,
                         pad: float) -> Optional[Tuple[int, int, int, int]]:
        h, w = self.pixels.shape[:2]
        rx0 = max(0, int(np.floor(x0 - pad)))
        ry0 = max(0, int(np.floor(y0 - pad)))
        rx1 = min(w, int(np.ceil(x1 + pad)) + 1)
        ry1 = min(h, int(np.ceil(y1 + pad)) + 1)
        if rx1 <= rx0 or ry1 <= ry0:
            return None
        return rx0, ry0, rx1, ry1

    def _draw(self, points: np.ndarray, extent: float, raster, paint: Paint, alpha: float,
              shadow: Optional[Shadow], blend: Optional[BlendMode]):
        mode = blend or self.blend_mode
        ratio = self.pixel_ratio
        device = points * ratio
        bx0, by0 = device.min(axis=0)
        bx1, by1 = device.max(axis=0)
        pad = extent * ratio + 1.0

        if shadow is not None and shadow.alpha > 0:
            self._draw_shadow(raster, shadow, (bx0, by0, bx1, by1), pad, mode, paint, alpha)

        roi = self._roi_from_bounds(bx0, by0, bx1, by1, pad)
        if roi is None:
            return
        x0, y0, x1, y1 = roi
        mask = np.zeros((y1 - y0, x1 - x0), dtype=np.uint8)
        raster(mask, x0, y0)
        coverage = mask.astype(np.float32) / 255.0

        if isinstance(paint, RadialGradient):
            xs = (np.arange(x0, x1, dtype=np.float64) + 0.5) / ratio
            ys = (np.arange(y0, y1, dtype=np.float64) + 0.5) / ratio
            gx, gy = np.meshgrid(xs, ys)
            rgb, grad_alpha = paint.evaluate(gx, gy)
            self._composite(roi, coverage * grad_alpha, rgb, alpha, mode, rgb_is_unit=True)
        else:
            self._composite(roi, coverage, paint, alpha, mode)

    def _draw_shadow(self, raster, shadow: Shadow, bounds, pad: float, mode: BlendMode,
                     paint: Paint, alpha: float):
        # 阴影不透明度 = 阴影颜色不透明度 × 形状逐像素不透明度
        ratio = self.pixel_ratio
        sigma = max(0.0, shadow.blur * ratio / 2.0)
        dx = shadow.offset_x * ratio
        dy = shadow.offset_y * ratio
        bx0, by0, bx1, by1 = bounds
        roi = self._roi_from_bounds(bx0 + min(0.0, dx), by0 + min(0.0, dy),
                                    bx1 + max(0.0, dx), by1 + max(0.0, dy),
                                    pad + 3.0 * sigma)
        if roi is None:
            return
        x0, y0, x1, y1 = roi
        mask = np.zeros((y1 - y0, x1 - x0), dtype=np.uint8)
        raster(mask, x0, y0, shadow.offset_x, shadow.offset_y)
        coverage = mask.astype(np.float32) / 255.0
        if not shadow.opaque_caster:
            if isinstance(paint, RadialGradient):
                xs = (np.arange(x0, x1, dtype=np.float64) + 0.5) / ratio - shadow.offset_x
                ys = (np.arange(y0, y1, dtype=np.float64) + 0.5) / ratio - shadow.offset_y
                gx, gy = np.meshgrid(xs, ys)
                coverage = coverage * paint.evaluate(gx, gy)[1]
            coverage = coverage * np.float32(min(1.0, max(0.0, alpha)))
        if sigma > 0.05:
            coverage = cv2.GaussianBlur(coverage, (0, 0), sigmaX=sigma, sigmaY=sigma)
        self._composite(roi, coverage, shadow.color, shadow.alpha, mode)

    def _composite(self, roi: Tuple[int, int, int, int], coverage: np.ndarray,
                   color, alpha: float, mode: BlendMode, rgb_is_unit: bool = False):
        x0, y0, x1, y1 = roi
        if self._clip is not None:
            coverage = coverage * self._clip[y0:y1, x0:x1]
        weight = coverage * np.float32(alpha)
        if not np.any(weight > 0):
            return

        if rgb_is_unit:
            src = np.asarray(color, dtype=np.float32)
        else:
            src = np.asarray(color, dtype=np.float32) / 255.0

        dst = self.pixels[y0:y1, x0:x1]
        weight = np.clip(weight, 0.0, 1.0)[..., None]
        if mode == BlendMode.LIGHTER:
            dst += src * weight
            np.clip(dst, 0.0, 1.0, out=dst)
            return
        blended = _blend(mode, dst, src)
        dst += (blended - dst) * weight
        np.clip(dst, 0.0, 1.0, out=dst)
