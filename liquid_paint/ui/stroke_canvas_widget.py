# -*- coding: utf-8 -*-
"""
笔触画布部件

将 Qt 的显示/隐藏、尺寸、鼠标与触摸事件转交给动画调度器，
并通过 QImage 呈现绘图表面的像素
"""

import time
import logging
from typing import Any, Callable, Dict, Optional
from PyQt5.QtWidgets import QWidget
from PyQt5.QtCore import Qt, QObject, QTimer, QEvent
from PyQt5.QtGui import QImage, QPainter, QColor

from ..core.animation.scene_renderer import SceneRenderer
from ..core.animation.animation_scheduler import AnimationScheduler, SchedulerConfig


class QtFrameSource(QObject):
    """
    基于单次 QTimer 的帧回调来源

    时间戳取自单调时钟（毫秒）
    """

    def __init__(self, interval_ms: int = 8, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.interval_ms = interval_ms
        self._timers: Dict[int, QTimer] = {}
        self._next_handle = 0

    def request_frame(self, callback: Callable[[float], None]) -> int:
        self._next_handle += 1
        handle = self._next_handle
        timer = QTimer(self)
        timer.setSingleShot(True)
        timer.setTimerType(Qt.PreciseTimer)
        timer.timeout.connect(lambda: self._fire(handle, callback))
        self._timers[handle] = timer
        timer.start(self.interval_ms)
        return handle

    def cancel_frame(self, handle: Any):
        timer = self._timers.pop(handle, None)
        if timer is not None:
            timer.stop()
            timer.deleteLater()

    def now(self) -> float:
        return time.perf_counter() * 1000.0

    def _fire(self, handle: int, callback: Callable[[float], None]):
        timer = self._timers.pop(handle, None)
        if timer is None:
            return
        timer.deleteLater()
        callback(self.now())


class StrokeCanvasWidget(QWidget):
    """
    笔触画布部件
    """

    def __init__(self, renderer: SceneRenderer, scheduler_config: Optional[SchedulerConfig] = None,
                 reduced_motion: bool = False, constrained: bool = False,
                 parent: Optional[QWidget] = None):
        """
        初始化画布部件

        Args:
            renderer (SceneRenderer): 场景渲染器
            scheduler_config (SchedulerConfig, optional): 调度参数
            reduced_motion (bool): 减少动态效果
            constrained (bool): 受限/触摸设备
            parent (QWidget, optional): 父部件
        """
        super().__init__(parent)
        self.logger = logging.getLogger(__name__)
        self.renderer = renderer
        self.frame_source = QtFrameSource(parent=self)
        self.scheduler = AnimationScheduler(renderer, self.frame_source, scheduler_config,
                                            reduced_motion=reduced_motion, constrained=constrained)
        self.scheduler.on_present = self.update
        self._image: Optional[QImage] = None
        self._pixels = None
        self._background = QColor(renderer.render_config.background_color)

        self.setMouseTracking(True)
        self.setAttribute(Qt.WA_AcceptTouchEvents)
        self.setAttribute(Qt.WA_OpaquePaintEvent)
        self.setMinimumSize(160, 100)

    def _pixel_ratio(self) -> float:
        return float(self.devicePixelRatioF())

    def showEvent(self, event):
        super().showEvent(event)
        if not self.scheduler.is_mounted:
            if not self.scheduler.mount(self.width(), self.height(), self._pixel_ratio()):
                self.logger.debug("Canvas surface unavailable, showing background only")
        else:
            self.scheduler.set_visible(True)

    def hideEvent(self, event):
        super().hideEvent(event)
        self.scheduler.set_visible(False)

    def resizeEvent(self, event):
        super().resizeEvent(event)
        self.scheduler.resize(self.width(), self.height(), self._pixel_ratio())

    def changeEvent(self, event):
        super().changeEvent(event)
        if event.type() == QEvent.WindowStateChange:
            self.scheduler.set_document_hidden(self.window().isMinimized())

    def mouseMoveEvent(self, event):
        pos = event.pos()
        self.scheduler.pointer_move(pos.x(), pos.y())
        super().mouseMoveEvent(event)

    def event(self, event):
        if event.type() in (QEvent.TouchBegin, QEvent.TouchUpdate):
            points = event.touchPoints()
            if points:
                pos = points[0].pos()
                self.scheduler.pointer_move(pos.x(), pos.y(), touch=True)
            event.accept()
            return True
        return super().event(event)

    def paintEvent(self, event):
        painter = QPainter(self)
        surface = self.renderer.surface
        if surface.is_empty or not self.scheduler.stats.painted:
            painter.fillRect(self.rect(), self._background)
            painter.end()
            return

        pixels = surface.to_rgb8()
        height, width = pixels.shape[:2]
        # QImage 不复制数据，需持有数组引用
        self._pixels = pixels
        self._image = QImage(pixels.data, width, height, 3 * width, QImage.Format_RGB888)
        self._image.setDevicePixelRatio(surface.pixel_ratio)
        painter.drawImage(0, 0, self._image)
        painter.end()

    def restart(self):
        """重新播放动画"""
        self.scheduler.restart()

    def shutdown(self):
        """卸载调度器并释放渲染资源"""
        self.scheduler.unmount()
        self.renderer.close()
