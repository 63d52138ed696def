#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
渲染测试
验证绘图表面、图层合成、纹理加载与场景渲染器
"""

import sys
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import cv2
import numpy as np
import pytest

# 添加项目根目录到Python路径
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from liquid_paint.core.stroke_model import DEFAULT_STROKES
from liquid_paint.core.surface import DrawingSurface, BlendMode, RadialGradient, Shadow, _blend
from liquid_paint.core.texture_loader import TextureLoader, load_texture
from liquid_paint.core.animation.geometry_builder import GeometryBuilder
from liquid_paint.core.animation.layer_compositor import (
    LayerCompositor, CompositorConfig, TextureConfig, LayerFlags
)
from liquid_paint.core.animation.scene_renderer import SceneRenderer, RenderConfig

BACKGROUND = (247, 241, 231)


def _wait_for(loader, timeout=5.0):
    deadline = time.time() + timeout
    while time.time() < deadline:
        loader.poll()
        if loader.ready or loader.failed:
            return
        time.sleep(0.01)


def _stripes(size=64):
    image = np.zeros((size, size, 3), dtype=np.float32)
    image[:, ::4] = 1.0
    image[:, 1::4] = 0.6
    return image


# ----------------------------------------------------------------------
# 绘图表面
# ----------------------------------------------------------------------

def test_blend_mode_from_name():
    assert BlendMode.from_name('soft_light') == BlendMode.SOFT_LIGHT
    assert BlendMode.from_name('soft-light') == BlendMode.SOFT_LIGHT
    assert BlendMode.from_name('Multiply') == BlendMode.MULTIPLY
    assert BlendMode.from_name('normal') == BlendMode.NORMAL
    assert BlendMode.from_name(BlendMode.SCREEN) == BlendMode.SCREEN
    with pytest.raises(ValueError):
        BlendMode.from_name('dissolve')


def test_separable_blend_functions():
    cb = np.array([0.5], dtype=np.float32)
    cs = np.array([0.5], dtype=np.float32)
    assert _blend(BlendMode.MULTIPLY, cb, cs)[0] == pytest.approx(0.25)
    assert _blend(BlendMode.SCREEN, cb, cs)[0] == pytest.approx(0.75)
    assert _blend(BlendMode.OVERLAY, cb, cs)[0] == pytest.approx(0.5)
    # 源为 0.5 时柔光不改变背景
    assert _blend(BlendMode.SOFT_LIGHT, cb, cs)[0] == pytest.approx(0.5)


def test_radial_gradient_concentric():
    gradient = RadialGradient(0, 0, 0, 0, 0, 10)
    gradient.add_color_stop(0.0, (255, 0, 0), 1.0)
    gradient.add_color_stop(1.0, (0, 0, 255), 0.0)
    rgb, alpha = gradient.evaluate(np.array([0.0, 5.0, 20.0]), np.array([0.0, 0.0, 0.0]))
    np.testing.assert_allclose(rgb[0], [1.0, 0.0, 0.0], atol=1e-6)
    assert alpha[0] == pytest.approx(1.0)
    assert alpha[1] == pytest.approx(0.5)
    # 超出外圆按末端色标延伸
    assert alpha[2] == pytest.approx(0.0)
    np.testing.assert_allclose(rgb[2], [0.0, 0.0, 1.0], atol=1e-6)


def test_surface_pixel_ratio():
    surface = DrawingSurface(10, 5, 2.0)
    assert surface.device_size == (20, 10)
    assert not surface.is_empty

    empty = DrawingSurface()
    assert empty.is_empty
    empty.fill('#FFFFFF')


def test_fill_polygon_and_clip():
    surface = DrawingSurface(20, 20)
    surface.fill((255, 255, 255))
    square = np.array([[5, 5], [15, 5], [15, 15], [5, 15]], dtype=np.float64)
    surface.fill_polygon(square, (255, 0, 0))
    np.testing.assert_allclose(surface.pixels[10, 10], [1.0, 0.0, 0.0], atol=1e-6)
    np.testing.assert_allclose(surface.pixels[2, 2], [1.0, 1.0, 1.0], atol=1e-6)

    surface.save()
    surface.clip(np.array([[0, 0], [10, 0], [10, 20], [0, 20]], dtype=np.float64))
    surface.fill((0, 0, 0))
    surface.restore()
    np.testing.assert_allclose(surface.pixels[2, 3], [0.0, 0.0, 0.0], atol=1e-6)
    np.testing.assert_allclose(surface.pixels[2, 17], [1.0, 1.0, 1.0], atol=1e-6)

    # 恢复后裁剪失效
    surface.fill((0, 255, 0))
    np.testing.assert_allclose(surface.pixels[2, 17], [0.0, 1.0, 0.0], atol=1e-6)


def test_shadow_follows_caster_alpha():
    surface = DrawingSurface(40, 40)
    surface.fill((255, 255, 255))
    gradient = RadialGradient(20, 20, 0, 20, 20, 10)
    gradient.add_color_stop(0.0, (0, 0, 0), 0.0)
    gradient.add_color_stop(1.0, (0, 0, 0), 0.0)
    surface.fill_circle(20, 20, 10, gradient, 1.0, shadow=Shadow((0, 0, 0), 0.3, 4.0))
    # 完全透明的形状不投下阴影
    assert surface.to_rgb8().min() == 255


def test_opaque_caster_shadow_ignores_fill_alpha():
    def offset_shadow(opaque):
        surface = DrawingSurface(40, 40)
        surface.fill((255, 255, 255))
        shadow = Shadow((0, 0, 0), 0.3, 0.0, offset_x=14.0, opaque_caster=opaque)
        surface.fill_circle(12, 20, 5, (0, 0, 0), 0.01, shadow=shadow)
        return int(surface.to_rgb8()[20, 26, 0])

    assert offset_shadow(False) >= 250
    assert offset_shadow(True) < 200


def test_composite_layer_rejects_wrong_shape():
    surface = DrawingSurface(8, 8)
    with pytest.raises(ValueError):
        surface.composite_layer(np.zeros(3, dtype=np.float32), np.zeros((4, 4), dtype=np.float32))


def test_to_rgb8_round_trips_background():
    surface = DrawingSurface(4, 4)
    surface.fill('#F7F1E7')
    assert tuple(surface.to_rgb8()[0, 0]) == BACKGROUND


# ----------------------------------------------------------------------
# 图层合成
# ----------------------------------------------------------------------

def _stroke_frame(width=120, height=80, progress=1.0):
    builder = GeometryBuilder()
    runtime = builder.build_runtimes(DEFAULT_STROKES[:1])[0]
    geometry = builder.build_frame(runtime, progress, width, height)
    return runtime, geometry


def _composite(compositor, texture=None, strength=None, progress=1.0):
    surface = DrawingSurface(120, 80)
    surface.fill('#F7F1E7')
    runtime, geometry = _stroke_frame(progress=progress)
    compositor.composite(surface, runtime, geometry, texture, strength)
    return surface.to_rgb8()


def test_texture_pass_modulates_stroke():
    compositor = LayerCompositor(texture_config=TextureConfig(strength=1.0))
    plain = _composite(compositor)
    textured = _composite(compositor, _stripes(), 1.0)
    assert not np.array_equal(plain, textured)

    # 强度为零时纹理层不产生任何效果
    assert np.array_equal(plain, _composite(compositor, _stripes(), 0.0))


def test_texture_pass_stays_inside_ribbon():
    compositor = LayerCompositor(CompositorConfig(flags=LayerFlags(
        shadow=False, body=False, depth=False, meniscus=False,
        bristles=False, specular=False, blob=False)))
    plain = _composite(compositor)
    textured = _composite(compositor, _stripes(), 1.0)
    assert np.all(plain == BACKGROUND)

    runtime, geometry = _stroke_frame()
    mask = np.zeros((80, 120), dtype=np.uint8)
    cv2.fillPoly(mask, [np.round(geometry.ribbon()).astype(np.int32)], 255)
    mask = cv2.dilate(mask, np.ones((5, 5), np.uint8))
    changed = np.any(textured != plain, axis=2)
    assert changed.any()
    assert not np.any(changed & (mask == 0))


def test_texture_config_validation():
    with pytest.raises(ValueError):
        TextureConfig(strength=1.5)
    with pytest.raises(ValueError):
        TextureConfig(blend_passes=(('dissolve', 0.5),))
    config = TextureConfig()
    assert config.blend_passes[1][0] == BlendMode.SOFT_LIGHT


def test_compositor_config_accepts_yaml_lists():
    config = CompositorConfig(depth_bands=[[0.5, 0.1]], flags={'shadow': False})
    assert config.depth_bands == ((0.5, 0.1),)
    assert config.flags.shadow is False
    with pytest.raises(ValueError):
        CompositorConfig(body_alpha=1.4)


def test_blob_alpha_fades_out():
    compositor = LayerCompositor()
    assert compositor.blob_alpha(0.0) == pytest.approx(0.64)
    assert compositor.blob_alpha(0.92) == pytest.approx(0.0)
    assert compositor.blob_alpha(0.99) == 0.0
    assert compositor.blob_alpha(0.3) > compositor.blob_alpha(0.6)


def test_blob_gated_by_live_threshold():
    live = _composite(LayerCompositor(), progress=0.5)
    gated = _composite(LayerCompositor(CompositorConfig(blob_live_threshold=0.0)), progress=0.5)
    assert not np.array_equal(live, gated)

    # 笔尖关闭时阈值不影响输出
    no_blob = LayerCompositor(CompositorConfig(flags=LayerFlags(blob=False)))
    assert np.array_equal(gated, _composite(no_blob, progress=0.5))

    with pytest.raises(ValueError):
        CompositorConfig(blob_live_threshold=1.5)


def test_feathered_stroke_draws_path():
    surface = DrawingSurface(100, 60)
    surface.fill('#F7F1E7')
    path = np.array([[10.0, 30.0], [50.0, 20.0], [90.0, 30.0]])
    LayerCompositor().composite_feathered(surface, path, (120, 80, 60), 0.3, 4.0)
    assert not np.all(surface.to_rgb8() == BACKGROUND)


# ----------------------------------------------------------------------
# 纹理加载
# ----------------------------------------------------------------------

def test_load_texture_reads_rgb(tmp_path):
    image_path = tmp_path / 'paper.png'
    bgr = np.zeros((16, 24, 3), dtype=np.uint8)
    bgr[..., 2] = 255
    cv2.imwrite(str(image_path), bgr)

    texture = load_texture(str(image_path))
    assert texture.shape == (16, 24, 3)
    assert texture.dtype == np.float32
    np.testing.assert_allclose(texture[0, 0], [1.0, 0.0, 0.0])


def test_texture_loader_becomes_ready(tmp_path):
    image_path = tmp_path / 'paper.png'
    cv2.imwrite(str(image_path), np.full((8, 8, 3), 128, dtype=np.uint8))
    loader = TextureLoader(str(image_path))
    assert loader.poll() is None
    loader.start()
    loader.start()
    _wait_for(loader)
    assert loader.ready
    assert loader.image.shape == (8, 8, 3)
    loader.shutdown()


def test_texture_loader_failure_disables_texture(tmp_path):
    missing = TextureLoader(str(tmp_path / 'missing.png'))
    missing.start()
    _wait_for(missing)
    assert missing.failed
    assert missing.poll() is None
    missing.shutdown()

    broken_path = tmp_path / 'broken.png'
    broken_path.write_bytes(b'not an image')
    broken = TextureLoader(str(broken_path))
    broken.start()
    _wait_for(broken)
    assert broken.failed
    assert broken.image is None
    broken.shutdown()


def test_texture_loader_without_path_is_inert():
    loader = TextureLoader()
    loader.start()
    assert loader.poll() is None
    assert not loader.ready and not loader.failed
    loader.shutdown()


# ----------------------------------------------------------------------
# 场景渲染器
# ----------------------------------------------------------------------

def test_render_config_validation():
    assert RenderConfig(texture_strength=3.0).texture_strength == 1.0
    assert RenderConfig(texture_strength=-1.0).texture_strength == 0.0
    with pytest.raises(ValueError):
        RenderConfig(variant='watercolour')
    with pytest.raises(ValueError):
        RenderConfig(total_duration=0.0)


def test_renderer_durations():
    renderer = SceneRenderer()
    assert renderer.total_duration == pytest.approx(4.4)
    assert renderer.static_elapsed == pytest.approx(4.4)

    short = SceneRenderer(render_config=RenderConfig(total_duration=3.0))
    assert short.total_duration == pytest.approx(3.0)

    ambient = SceneRenderer(render_config=RenderConfig(variant='ambient'))
    assert ambient.total_duration is None
    assert ambient.static_elapsed == pytest.approx(2.5)


def test_render_zero_size_does_nothing():
    renderer = SceneRenderer()
    assert renderer.render(1.0) is False
    renderer.resize(0, 100)
    assert renderer.render(1.0) is False


def test_render_before_first_stroke_is_background():
    renderer = SceneRenderer()
    renderer.resize(160, 100)
    assert renderer.render(0.0) is True
    assert np.all(renderer.pixels() == BACKGROUND)


def test_render_is_idempotent():
    renderer = SceneRenderer()
    renderer.resize(160, 100)
    renderer.render(2.0)
    first = renderer.pixels().copy()
    renderer.render(3.3)
    renderer.render(2.0)
    assert np.array_equal(first, renderer.pixels())


def test_final_frame_differs_from_background():
    renderer = SceneRenderer()
    renderer.resize(160, 100, 2.0)
    renderer.render(renderer.total_duration)
    pixels = renderer.pixels()
    assert pixels.shape == (200, 320, 3)
    assert not np.all(pixels == BACKGROUND)


def test_ambient_render_is_deterministic():
    renderer = SceneRenderer(render_config=RenderConfig(variant='ambient'))
    renderer.resize(120, 80)
    renderer.render(1.0, (60.0, 40.0))
    first = renderer.pixels().copy()
    renderer.render(6.0, (60.0, 40.0))
    moved = renderer.pixels().copy()
    renderer.render(1.0, (60.0, 40.0))
    assert np.array_equal(first, renderer.pixels())
    assert not np.array_equal(first, moved)


def _write_stripes(path):
    cv2.imwrite(str(path), (_stripes() * 255).astype(np.uint8))
    return str(path)


def test_texture_upgrades_after_async_load(tmp_path):
    image_path = _write_stripes(tmp_path / 'paper.png')
    plain = SceneRenderer()
    plain.resize(160, 100)
    plain.render(3.0)
    baseline = plain.pixels().copy()

    renderer = SceneRenderer(render_config=RenderConfig(texture_path=image_path,
                                                        texture_strength=1.0))
    renderer.close()
    # 单线程池先被阻塞，纹理加载保持挂起
    gate = threading.Event()
    executor = ThreadPoolExecutor(max_workers=1)
    executor.submit(gate.wait)
    renderer.texture_loader = TextureLoader(image_path, executor)
    renderer.texture_loader.start()
    renderer.resize(160, 100)

    renderer.render(3.0)
    assert not renderer.texture_loader.ready
    assert np.array_equal(baseline, renderer.pixels())

    gate.set()
    _wait_for(renderer.texture_loader)
    assert renderer.texture_loader.ready
    renderer.render(3.0)
    assert not np.array_equal(baseline, renderer.pixels())
    executor.shutdown(wait=True)


def test_failed_texture_renders_like_no_texture(tmp_path):
    plain = SceneRenderer()
    plain.resize(160, 100)
    plain.render(3.0)

    renderer = SceneRenderer(render_config=RenderConfig(texture_path=str(tmp_path / 'missing.png'),
                                                        texture_strength=1.0))
    _wait_for(renderer.texture_loader)
    assert renderer.texture_loader.failed
    renderer.resize(160, 100)
    renderer.render(3.0)
    assert np.array_equal(plain.pixels(), renderer.pixels())
    renderer.close()
