# -*- coding: utf-8 -*-
"""
动画调度器

协作式帧调度：
1. 以首次回调时间戳为起点计算场景时间，挂起后起点保留
2. 帧间隔节流（桌面 60fps / 受限设备 30fps）与相位、指针变化阈值
3. 有限场景到达总时长后绘制最终帧并休眠
4. 宿主不可见或文档隐藏时挂起；减少动态效果时只绘制静态帧
5. 尺寸变化后立即按当前进度重绘
"""

import math
import logging
from collections import deque
from typing import Any, Callable, Optional, Protocol, Tuple
from dataclasses import dataclass, field

from ..surface import SurfaceError
from ...utils.performance import Timer

FrameCallback = Callable[[float], None]


class FrameSource(Protocol):
    """
    帧回调来源

    request_frame 注册一次性回调，回调参数为毫秒时间戳
    """

    def request_frame(self, callback: FrameCallback) -> Any:
        ...

    def cancel_frame(self, handle: Any) -> None:
        ...

    def now(self) -> float:
        ...


class Renderer(Protocol):
    def resize(self, width: float, height: float, pixel_ratio: float = 1.0) -> None:
        ...

    def render(self, elapsed: float, pointer: Optional[Tuple[float, float]] = None) -> bool:
        ...


@dataclass(frozen=True)
class SchedulerConfig:
    """
    调度参数
    """
    total_duration: Optional[float] = 4.4
    static_elapsed: Optional[float] = None
    desktop_frame_ms: float = 1000.0 / 60.0
    constrained_frame_ms: float = 1000.0 / 30.0
    phase_epsilon: float = 0.0004
    pointer_epsilon: float = 0.5
    pointer_reactive: bool = False
    smooth_factor: float = 0.055
    nominal_frame_ms: float = 16.67
    max_frame_dt_ms: float = 50.0
    touch_sway_idle_ms: float = 2000.0
    touch_sway_freq_x: float = 0.35
    touch_sway_freq_y: float = 0.22
    touch_sway_amp_x: float = 0.06
    touch_sway_amp_y: float = 0.04
    max_pixel_ratio: float = 2.0

    def __post_init__(self):
        if self.total_duration is not None and self.total_duration <= 0:
            raise ValueError(f"total_duration must be positive, got {self.total_duration}")
        if self.desktop_frame_ms <= 0 or self.constrained_frame_ms <= 0:
            raise ValueError("Frame intervals must be positive")
        if not 0.0 < self.smooth_factor <= 1.0:
            raise ValueError(f"smooth_factor must be in (0, 1], got {self.smooth_factor}")
        if self.max_pixel_ratio <= 0:
            raise ValueError("max_pixel_ratio must be positive")

    @property
    def final_elapsed(self) -> float:
        """静态帧时间"""
        if self.static_elapsed is not None:
            return self.static_elapsed
        return self.total_duration if self.total_duration is not None else 0.0


@dataclass
class RenderContext:
    """
    调度器唯一持有的动画状态记录
    """
    width: float = 0.0
    height: float = 0.0
    pixel_ratio: float = 1.0
    host_visible: bool = True
    document_hidden: bool = False
    reduced_motion: bool = False
    pointer_target: Tuple[float, float] = (0.0, 0.0)
    pointer: Tuple[float, float] = (0.0, 0.0)
    last_touch_ms: Optional[float] = None
    start_timestamp: Optional[float] = None
    elapsed: float = 0.0


@dataclass
class FrameStats:
    """
    帧统计
    """
    painted: int = 0
    skipped: int = 0
    last_render_ms: float = 0.0
    total_render_ms: float = 0.0
    elapsed_history: deque = field(default_factory=lambda: deque(maxlen=1000))

    @property
    def average_render_ms(self) -> float:
        return self.total_render_ms / self.painted if self.painted else 0.0


class AnimationScheduler:
    """
    动画调度器

    无线程、无锁：所有状态只在帧回调与宿主事件中修改
    """

    def __init__(self, renderer: Renderer, frame_source: FrameSource,
                 config: Optional[SchedulerConfig] = None,
                 reduced_motion: bool = False, constrained: bool = False):
        """
        初始化动画调度器

        Args:
            renderer: 场景渲染器
            frame_source (FrameSource): 帧回调来源
            config (SchedulerConfig, optional): 调度参数
            reduced_motion (bool): 是否减少动态效果
            constrained (bool): 受限/触摸设备，使用较低帧率并启用触摸摇摆
        """
        self.renderer = renderer
        self.frame_source = frame_source
        self.config = config or SchedulerConfig()
        self.constrained = constrained
        self.context = RenderContext(reduced_motion=reduced_motion)
        self.stats = FrameStats()
        self.logger = logging.getLogger(__name__)
        # 每次实际绘制后调用，宿主据此刷新显示
        self.on_present: Optional[Callable[[], None]] = None

        self._handle: Any = None
        self._mounted = False
        self._done = False
        self._last_frame_ts: Optional[float] = None
        self._last_paint_ts: Optional[float] = None
        self._last_paint_elapsed = 0.0
        self._last_paint_pointer: Tuple[float, float] = (0.0, 0.0)

    # ------------------------------------------------------------------
    # 状态
    # ------------------------------------------------------------------

    @property
    def frame_interval_ms(self) -> float:
        if self.constrained:
            return self.config.constrained_frame_ms
        return self.config.desktop_frame_ms

    @property
    def is_running(self) -> bool:
        return self._handle is not None

    @property
    def is_done(self) -> bool:
        return self._done

    @property
    def is_mounted(self) -> bool:
        return self._mounted

    def _should_run(self) -> bool:
        ctx = self.context
        return (self._mounted and not self._done and not ctx.reduced_motion
                and ctx.host_visible and not ctx.document_hidden)

    # ------------------------------------------------------------------
    # 生命周期
    # ------------------------------------------------------------------

    def mount(self, width: float, height: float, pixel_ratio: float = 1.0) -> bool:
        """
        挂载：获取绘图表面并开始动画

        Args:
            width (float): 逻辑宽度
            height (float): 逻辑高度
            pixel_ratio (float): 设备像素比

        Returns:
            bool: 是否挂载成功；表面获取失败时静默放弃
        """
        if self._mounted:
            return True
        if not self._apply_size(width, height, pixel_ratio):
            self.logger.debug("Surface unavailable, animation not started")
            return False

        self._mounted = True
        self.logger.info(f"Mounted at {width}x{height} @{self.context.pixel_ratio}x "
                         f"(reduced_motion={self.context.reduced_motion})")
        if self.context.reduced_motion:
            self._paint_static()
        else:
            self.start()
        return True

    def unmount(self):
        """卸载：取消挂起的帧并释放状态，再次挂载时从头播放"""
        self.stop()
        self._mounted = False
        self._reset_playback()
        self.logger.info("Unmounted")

    def start(self):
        """开始或恢复帧循环（已在运行时不重复调度）"""
        if self._handle is not None or not self._should_run():
            return
        # 起点时间戳保留，恢复后场景时间继续递增
        self._last_frame_ts = None
        self._handle = self.frame_source.request_frame(self._on_frame)

    def stop(self):
        """取消挂起的帧回调"""
        if self._handle is not None:
            self.frame_source.cancel_frame(self._handle)
            self._handle = None

    def restart(self):
        """从头重新播放"""
        self.stop()
        self._reset_playback()
        if self.context.reduced_motion and self._mounted:
            self._paint_static()
            return
        self.start()

    def _reset_playback(self):
        self._done = False
        self.context.start_timestamp = None
        self.context.elapsed = 0.0
        self._last_frame_ts = None
        self._last_paint_ts = None
        self._last_paint_elapsed = 0.0

    # ------------------------------------------------------------------
    # 宿主事件
    # ------------------------------------------------------------------

    def set_visible(self, visible: bool):
        """宿主可见性变化"""
        self.context.host_visible = visible
        self._sync_loop()

    def set_document_hidden(self, hidden: bool):
        """文档隐藏状态变化"""
        self.context.document_hidden = hidden
        self._sync_loop()

    def set_reduced_motion(self, reduced: bool):
        """切换减少动态效果"""
        if reduced == self.context.reduced_motion:
            return
        self.context.reduced_motion = reduced
        if reduced and self._mounted:
            self.stop()
            self._paint_static()
        else:
            self._sync_loop()

    def resize(self, width: float, height: float, pixel_ratio: float = 1.0):
        """
        尺寸变化：重建资源并立即按当前进度重绘，避免出现空白帧
        """
        if not self._mounted:
            return
        if not self._apply_size(width, height, pixel_ratio):
            self.logger.warning("Surface lost on resize, animation stopped")
            self.stop()
            self._mounted = False
            self._reset_playback()
            return

        if self.context.reduced_motion:
            self._paint_static()
        elif self._done:
            self._paint(self.config.total_duration, self.frame_source.now())
        else:
            self._paint(self._current_elapsed(), self.frame_source.now())

    def pointer_move(self, x: float, y: float, touch: bool = False):
        """
        记录最新的指针目标（限制在表面范围内）

        Args:
            x (float): 逻辑 x
            y (float): 逻辑 y
            touch (bool): 是否为触摸事件
        """
        ctx = self.context
        if ctx.reduced_motion:
            return
        ctx.pointer_target = (min(max(x, 0.0), ctx.width), min(max(y, 0.0), ctx.height))
        if touch:
            ctx.last_touch_ms = self.frame_source.now()

    # ------------------------------------------------------------------
    # 帧循环
    # ------------------------------------------------------------------

    def _on_frame(self, timestamp: float):
        self._handle = None
        if not self._should_run():
            return

        ctx = self.context
        if ctx.start_timestamp is None:
            ctx.start_timestamp = timestamp
        elapsed = (timestamp - ctx.start_timestamp) / 1000.0

        total = self.config.total_duration
        if total is not None and elapsed >= total:
            self._paint(total, timestamp)
            self._done = True
            self.logger.info(f"Animation complete after {self.stats.painted} frames "
                             f"(avg {self.stats.average_render_ms:.2f} ms)")
            return

        if self.config.pointer_reactive:
            self._smooth_pointer(timestamp, elapsed)

        since_paint = math.inf if self._last_paint_ts is None else timestamp - self._last_paint_ts
        if since_paint >= self.frame_interval_ms and self._has_changed(elapsed):
            self._paint(elapsed, timestamp)
        else:
            self.stats.skipped += 1

        self._handle = self.frame_source.request_frame(self._on_frame)

    def _has_changed(self, elapsed: float) -> bool:
        if self._last_paint_ts is None:
            return True
        eps = self.config.pointer_epsilon
        px, py = self.context.pointer
        lx, ly = self._last_paint_pointer
        return (abs(elapsed - self._last_paint_elapsed) > self.config.phase_epsilon
                or abs(px - lx) > eps or abs(py - ly) > eps)

    def _smooth_pointer(self, timestamp: float, elapsed: float):
        cfg = self.config
        ctx = self.context
        if self._last_frame_ts is None:
            dt = cfg.nominal_frame_ms
        else:
            dt = min(timestamp - self._last_frame_ts, cfg.max_frame_dt_ms)
        self._last_frame_ts = timestamp
        alpha = 1.0 - (1.0 - cfg.smooth_factor) ** (dt / cfg.nominal_frame_ms)

        if self.constrained and (ctx.last_touch_ms is None
                                 or timestamp - ctx.last_touch_ms > cfg.touch_sway_idle_ms):
            # 无触摸时柔光目标围绕中心缓慢摇摆
            ctx.pointer_target = (
                ctx.width / 2.0 + math.sin(elapsed * cfg.touch_sway_freq_x) * ctx.width * cfg.touch_sway_amp_x,
                ctx.height / 2.0 + math.cos(elapsed * cfg.touch_sway_freq_y) * ctx.height * cfg.touch_sway_amp_y,
            )

        sx, sy = ctx.pointer
        tx, ty = ctx.pointer_target
        ctx.pointer = (sx + (tx - sx) * alpha, sy + (ty - sy) * alpha)

    def _current_elapsed(self) -> float:
        ctx = self.context
        if ctx.start_timestamp is None:
            return 0.0
        elapsed = (self.frame_source.now() - ctx.start_timestamp) / 1000.0
        if self.config.total_duration is not None:
            elapsed = min(elapsed, self.config.total_duration)
        return max(0.0, elapsed)

    def _paint_static(self):
        ctx = self.context
        ctx.pointer = ctx.pointer_target = (ctx.width / 2.0, ctx.height / 2.0)
        self._paint(self.config.final_elapsed, self.frame_source.now())

    def _paint(self, elapsed: float, timestamp: float) -> bool:
        ctx = self.context
        pointer = ctx.pointer if self.config.pointer_reactive else None
        with Timer('frame') as timer:
            painted = self.renderer.render(elapsed, pointer)
        if not painted:
            self.stats.skipped += 1
            return False

        ctx.elapsed = elapsed
        self._last_paint_ts = timestamp
        self._last_paint_elapsed = elapsed
        self._last_paint_pointer = ctx.pointer
        self.stats.painted += 1
        self.stats.last_render_ms = timer.elapsed_ms
        self.stats.total_render_ms += timer.elapsed_ms
        self.stats.elapsed_history.append(elapsed)
        self.logger.debug(f"Frame {self.stats.painted}: t={elapsed:.3f}s "
                          f"render={timer.elapsed_ms:.2f}ms")
        if self.on_present is not None:
            self.on_present()
        return True

    def _apply_size(self, width: float, height: float, pixel_ratio: float) -> bool:
        ctx = self.context
        ratio = min(pixel_ratio or 1.0, self.config.max_pixel_ratio)
        try:
            self.renderer.resize(width, height, ratio)
        except SurfaceError as e:
            self.logger.debug(f"Surface acquisition failed: {e}")
            return False
        ctx.width, ctx.height, ctx.pixel_ratio = float(width), float(height), ratio
        ctx.pointer = ctx.pointer_target = (ctx.width / 2.0, ctx.height / 2.0)
        self._last_paint_pointer = ctx.pointer
        return True

    def _sync_loop(self):
        if self._should_run():
            self.start()
        else:
            self.stop()


def scheduler_config_for(renderer, section: dict) -> SchedulerConfig:
    """
    按渲染器变体调整调度参数：环境变体无限循环并跟踪指针

    Args:
        renderer: SceneRenderer
        section (dict): Config 的 scheduler 段

    Returns:
        SchedulerConfig: 调度参数
    """
    values = dict(section or {})
    values['total_duration'] = renderer.total_duration
    values['static_elapsed'] = renderer.static_elapsed
    if renderer.is_ambient:
        values['pointer_reactive'] = True
    return SchedulerConfig(**values)
