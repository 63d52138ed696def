# -*- coding: utf-8 -*-
"""
预览窗口

承载笔触画布，提供重新播放按钮与帧统计显示
"""

import logging
from typing import Optional
from PyQt5.QtWidgets import (
    QMainWindow, QWidget, QVBoxLayout, QHBoxLayout, QPushButton, QLabel
)
from PyQt5.QtCore import QTimer

from ..config.settings import Config
from ..core.animation.scene_renderer import SceneRenderer, RenderConfig
from ..core.animation.animation_scheduler import scheduler_config_for
from .stroke_canvas_widget import StrokeCanvasWidget


class PreviewWindow(QMainWindow):
    """
    预览窗口
    """

    def __init__(self, config: Optional[Config] = None,
                 render_config: Optional[RenderConfig] = None):
        super().__init__()
        self.config = config or Config()
        self.logger = logging.getLogger(__name__)

        rendering = self.config.get('rendering') or {}
        self.renderer = SceneRenderer(self.config, render_config)
        scheduler_config = scheduler_config_for(self.renderer, self.config.get('scheduler'))

        self.canvas = StrokeCanvasWidget(
            self.renderer, scheduler_config,
            reduced_motion=bool(rendering.get('reduced_motion', False)),
            constrained=bool(rendering.get('constrained_device', False)),
        )

        self._init_ui(rendering)

        # 统计信息刷新
        self._stats_timer = QTimer(self)
        self._stats_timer.timeout.connect(self._update_stats)
        self._stats_timer.start(500)

    def _init_ui(self, rendering: dict):
        """
        初始化界面
        """
        variant = self.renderer.render_config.variant
        self.setWindowTitle(f"液态笔触动画 - {variant}")
        self.resize(int(rendering.get('width', 960)), int(rendering.get('height', 600)) + 40)

        main_widget = QWidget()
        self.setCentralWidget(main_widget)
        layout = QVBoxLayout(main_widget)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addWidget(self.canvas, 1)

        controls = QHBoxLayout()
        controls.setContentsMargins(8, 4, 8, 4)
        self.restart_btn = QPushButton("重新播放")
        self.restart_btn.clicked.connect(self.canvas.restart)
        self.restart_btn.setEnabled(not self.renderer.is_ambient)
        controls.addWidget(self.restart_btn)

        self.stats_label = QLabel()
        controls.addWidget(self.stats_label, 1)
        layout.addLayout(controls)

    def _update_stats(self):
        stats = self.canvas.scheduler.stats
        elapsed = self.canvas.scheduler.context.elapsed
        self.stats_label.setText(
            f"t = {elapsed:.2f}s    已绘制 {stats.painted} 帧    跳过 {stats.skipped} 帧    "
            f"平均 {stats.average_render_ms:.1f} ms"
        )

    def closeEvent(self, event):
        self._stats_timer.stop()
        self.canvas.shutdown()
        super().closeEvent(event)
