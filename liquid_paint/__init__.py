# -*- coding: utf-8 -*-
"""
液态笔触动画渲染器

以固定种子生成有机笔触几何，并逐帧以多层液态材质合成笔触展开动画
"""

__version__ = '1.0.0'
