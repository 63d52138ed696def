# -*- coding: utf-8 -*-
"""
界面模块

基于 PyQt5 的画布部件与预览窗口
"""

from .stroke_canvas_widget import QtFrameSource, StrokeCanvasWidget
from .main_window import PreviewWindow

__all__ = ['QtFrameSource', 'StrokeCanvasWidget', 'PreviewWindow']
