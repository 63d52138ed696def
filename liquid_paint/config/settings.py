# -*- coding: utf-8 -*-
"""
配置设置模块

定义液态笔触动画渲染器的各种参数和配置
所有视觉常数均为经验值，按原样保留在配置表中
"""

import os
import yaml
from typing import Dict, Any, Optional


class Config:
    """
    配置管理类

    管理渲染器的所有参数配置，支持从YAML文件加载和默认值
    """

    SECTIONS = ('animation', 'scheduler', 'compositor', 'texture',
                'ambient', 'rendering', 'logging')

    def __init__(self, config_path: Optional[str] = None):
        """
        初始化配置

        Args:
            config_path (str, optional): 配置文件路径
        """
        # 设置默认配置
        self._set_default_config()

        # 如果提供了配置文件路径，则加载配置
        if config_path and os.path.exists(config_path):
            self._load_config_file(config_path)

    def _set_default_config(self):
        """
        设置默认配置参数
        """
        # 动画参数
        self.animation = {
            'seed': 0xd3a7f1c9,           # 笔触生成种子
            'sample_count': 200,          # 贝塞尔采样数
            'total_duration': 4.4,        # 动画总时长(秒)
            'noise_step': 7,              # 边缘噪声控制点间距
            'noise_amplitude': 0.11,      # 边缘噪声幅度(相对半宽)
            'live_threshold': 0.96,       # 笔尖仍处于湿润状态的进度阈值
            'bristle_base_count': 28,     # 最少笔毛数
            'bristle_extra_count': 11,    # 额外笔毛数范围
        }

        # 调度参数
        self.scheduler = {
            'total_duration': 4.4,          # None 表示无限循环(环境变体)
            'static_elapsed': None,         # 静态帧时间, None 时取 total_duration
            'desktop_frame_ms': 1000.0 / 60.0,
            'constrained_frame_ms': 1000.0 / 30.0,
            'phase_epsilon': 0.0004,        # 相位变化阈值(秒)
            'pointer_epsilon': 0.5,         # 指针变化阈值(像素)
            'pointer_reactive': False,      # 是否跟踪指针
            'smooth_factor': 0.055,         # 指针平滑系数
            'nominal_frame_ms': 16.67,
            'max_frame_dt_ms': 50.0,
            'touch_sway_idle_ms': 2000.0,   # 无触摸多久后开始摇摆
            'touch_sway_freq_x': 0.35,
            'touch_sway_freq_y': 0.22,
            'touch_sway_amp_x': 0.06,
            'touch_sway_amp_y': 0.04,
            'max_pixel_ratio': 2.0,
        }

        # 图层合成参数
        self.compositor = {
            'shadow_fill_alpha': 0.01,
            'shadow_alpha': 0.32,
            'shadow_darken': (70, 64, 56),
            'shadow_blur': 0.72,          # 相对最大半宽
            'shadow_offset_y': 0.14,
            'shadow_opaque_caster': True,  # 条带阴影不乘以近乎透明的投射填充
            'body_alpha': 0.74,
            'depth_bands': ((0.62, 0.12), (0.26, 0.07)),
            'meniscus_inset': 0.78,
            'meniscus_alpha': 0.30,
            'meniscus_darken': (32, 26, 20),
            'ridge_lighten': (28, 22, 16),
            'valley_darken': (24, 19, 14),
            'specular_halo_scale': 0.80,
            'specular_halo_width': 6.0,
            'specular_halo_color': (255, 244, 228, 0.16),
            'specular_glint_width': 1.7,
            'specular_glint_color': (255, 252, 248, 0.86),
            'blob_live_threshold': 0.96,  # 进度低于该值时绘制湿润笔尖
            'blob_base_alpha': 0.64,
            'blob_fade_progress': 0.92,
            'blob_fade_power': 2.4,
            'blob_min_alpha': 0.015,
            'blob_radius': 1.20,
            'blob_highlight_offset': 0.24,
            'blob_highlight_radius': 0.04,
            'blob_highlight_factor': 1.18,
            'blob_meniscus_factor': 0.82,
            'blob_highlight_lighten': (35, 28, 20),
            'blob_meniscus_darken': (14, 10, 7),
            'blob_shadow_darken': (65, 58, 50),
            'blob_shadow_alpha': 0.30,
            'blob_glint_radius': 0.30,
            'blob_glint_alpha': 0.80,
            'blob_glint_color': (255, 251, 244),
            'feather_passes': ((2.0, 0.28), (1.1, 0.55), (0.35, 0.30)),
        }

        # 纹理投影参数
        self.texture = {
            'path': None,                 # 纹理图像路径
            'strength': 0.0,              # 纹理强度 [0,1]
            'margin': 0.15,               # 覆盖边界框的额外边距
            'blend_passes': (('multiply', 0.55), ('soft_light', 0.45), ('overlay', 0.25)),
        }

        # 环境背景变体参数
        self.ambient = {
            'seed': 0xa4c2e971,
            'stroke_sway_speed': 0.18,
            'blob_pulse_speed': 0.22,
            'particle_speed': 0.025,
            'particle_glow': 6.0,
            'light_radius': 0.25,
            'light_color': (255, 250, 240, 0.15),
            'grain_size': 256,
            'grain_alpha': 13,
            'grain_seed': 0x5eed,
            'vignette_color': (59, 47, 42),
            'vignette_alpha': 0.14,
            'vignette_inner': 0.28,
            'static_elapsed': 2.5,
        }

        # 渲染参数
        self.rendering = {
            'variant': 'liquid',          # liquid / ambient
            'background_color': '#F7F1E7',
            'total_duration': None,       # 覆盖动画总时长, None 时取 animation.total_duration
            'width': 960,
            'height': 600,
            'reduced_motion': False,
            'constrained_device': False,
        }

        # 日志参数
        self.logging = {
            'level': 'INFO',
            'use_colors': True,
            'log_file': None,
        }

    def _load_config_file(self, config_path: str):
        """
        从文件加载配置

        Args:
            config_path (str): 配置文件路径
        """
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config_data = yaml.safe_load(f) or {}

            # 更新配置
            self._update_config(config_data)

        except (OSError, yaml.YAMLError) as e:
            print(f"警告: 加载配置文件失败 {config_path}: {str(e)}")
            print("使用默认配置")

    def _update_config(self, config_data: Dict[str, Any]):
        """
        更新配置数据

        Args:
            config_data (dict): 新的配置数据
        """
        for section, values in config_data.items():
            if hasattr(self, section) and isinstance(getattr(self, section), dict):
                getattr(self, section).update(values or {})
            else:
                setattr(self, section, values)

    def get(self, section: str, key: str = None, default=None):
        """
        获取配置值

        Args:
            section (str): 配置段名
            key (str, optional): 配置键名
            default: 默认值

        Returns:
            配置值
        """
        if not hasattr(self, section):
            return default

        section_config = getattr(self, section)

        if key is None:
            return section_config

        if isinstance(section_config, dict):
            return section_config.get(key, default)
        else:
            return default

    def set(self, section: str, key: str, value):
        """
        设置配置值

        Args:
            section (str): 配置段名
            key (str): 配置键名
            value: 配置值
        """
        if not hasattr(self, section):
            setattr(self, section, {})

        section_config = getattr(self, section)
        if isinstance(section_config, dict):
            section_config[key] = value
        else:
            setattr(self, section, {key: value})

    def to_dict(self) -> Dict[str, Any]:
        """
        导出所有配置段
        """
        return {section: dict(getattr(self, section)) for section in self.SECTIONS}

    def save_config(self, output_path: str):
        """
        保存配置到文件

        Args:
            output_path (str): 输出文件路径
        """
        try:
            with open(output_path, 'w', encoding='utf-8') as f:
                yaml.safe_dump(_plain(self.to_dict()), f, default_flow_style=False,
                               allow_unicode=True, indent=2)
            print(f"配置已保存到: {output_path}")
        except OSError as e:
            print(f"保存配置失败: {str(e)}")

    def __str__(self):
        """
        返回配置的字符串表示
        """
        config_str = "Configuration Settings:\n"
        for section in self.SECTIONS:
            config_str += f"\n{section}:\n"
            for key, value in getattr(self, section).items():
                config_str += f"  {key}: {value}\n"
        return config_str


def _plain(value):
    # YAML safe_dump 不支持元组
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


# 创建默认配置实例
default_config = Config()
