#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
动画调度器测试
使用可手动推进的帧来源与记录调用的渲染器，验证节流、结束、挂起与重绘行为
"""

import sys
from pathlib import Path

import pytest

# 添加项目根目录到Python路径
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from liquid_paint.core.surface import SurfaceError
from liquid_paint.core.animation.animation_scheduler import (
    AnimationScheduler, SchedulerConfig, scheduler_config_for
)
from liquid_paint.core.animation.scene_renderer import SceneRenderer, RenderConfig


class FakeFrameSource:
    """手动推进的帧来源，时间单位为毫秒"""

    def __init__(self, start_ms=1000.0):
        self.time = start_ms
        self.pending = {}
        self.requests = 0
        self._next_handle = 0

    def request_frame(self, callback):
        self._next_handle += 1
        self.requests += 1
        self.pending[self._next_handle] = callback
        return self._next_handle

    def cancel_frame(self, handle):
        self.pending.pop(handle, None)

    def now(self):
        return self.time

    def tick(self, ms=16.67):
        self.time += ms
        callbacks = list(self.pending.values())
        self.pending.clear()
        for callback in callbacks:
            callback(self.time)


class FakeRenderer:
    """记录 resize/render 调用的渲染器"""

    def __init__(self, fail_resize=False):
        self.fail_resize = fail_resize
        self.sizes = []
        self.renders = []
        self.width = 0.0

    def resize(self, width, height, pixel_ratio=1.0):
        if self.fail_resize:
            raise SurfaceError("no context")
        self.width = width
        self.sizes.append((width, height, pixel_ratio))

    def render(self, elapsed, pointer=None):
        if self.width <= 0:
            return False
        self.renders.append((elapsed, pointer))
        return True

    @property
    def elapsed(self):
        return [e for e, _ in self.renders]


def make_scheduler(config=None, **kwargs):
    renderer = FakeRenderer()
    source = FakeFrameSource()
    scheduler = AnimationScheduler(renderer, source, config or SchedulerConfig(), **kwargs)
    return scheduler, renderer, source


def run_until_idle(scheduler, source, ms=16.67, limit=2000):
    for _ in range(limit):
        if not scheduler.is_running:
            return
        source.tick(ms)


def test_reduced_motion_paints_single_static_frame():
    scheduler, renderer, source = make_scheduler(reduced_motion=True)
    assert scheduler.mount(800, 500)
    assert renderer.elapsed == [pytest.approx(4.4)]
    assert source.pending == {}
    assert not scheduler.is_running

    source.tick()
    assert len(renderer.renders) == 1

    # 尺寸变化只追加一次静态重绘
    scheduler.resize(640, 400)
    assert renderer.elapsed == [pytest.approx(4.4), pytest.approx(4.4)]
    assert source.pending == {}


def test_resize_repaints_at_current_progress():
    scheduler, renderer, source = make_scheduler()
    scheduler.mount(800, 500)
    source.tick(16.0)
    start = source.time

    source.time = start + 1200.0
    scheduler.resize(1024, 640, 1.5)
    assert renderer.sizes[-1] == (1024, 640, 1.5)
    assert renderer.elapsed[-1] == pytest.approx(1.2)


def test_resize_before_first_frame_paints_start():
    scheduler, renderer, source = make_scheduler()
    scheduler.mount(800, 500)
    scheduler.resize(400, 300)
    assert renderer.elapsed == [0.0]


def test_frame_interval_throttles_painting():
    scheduler, renderer, source = make_scheduler()
    scheduler.mount(800, 500)
    for _ in range(10):
        source.tick(8.0)
    # 1008 / 1032 / 1056 / 1080 绘制，其余帧跳过
    assert scheduler.stats.painted == 4
    assert scheduler.stats.skipped == 6


def test_constrained_device_uses_lower_frame_rate():
    scheduler, _, _ = make_scheduler(constrained=True)
    assert scheduler.frame_interval_ms == pytest.approx(1000.0 / 30.0)
    desktop, _, _ = make_scheduler()
    assert desktop.frame_interval_ms == pytest.approx(1000.0 / 60.0)


def test_finite_scene_ends_with_one_final_frame():
    scheduler, renderer, source = make_scheduler()
    scheduler.mount(800, 500)
    run_until_idle(scheduler, source)

    assert scheduler.is_done
    assert not scheduler.is_running
    assert source.pending == {}
    assert renderer.elapsed[-1] == 4.4
    assert renderer.elapsed.count(4.4) == 1

    # 时间戳单调时场景时间也单调
    history = list(scheduler.stats.elapsed_history)
    assert history == sorted(history)

    # 结束后尺寸变化以最终帧重绘
    scheduler.resize(400, 300)
    assert renderer.elapsed[-1] == 4.4
    assert source.pending == {}


def test_infinite_scene_never_finishes():
    scheduler, renderer, source = make_scheduler(SchedulerConfig(total_duration=None))
    scheduler.mount(800, 500)
    for _ in range(600):
        source.tick()
    assert not scheduler.is_done
    assert scheduler.is_running
    assert renderer.elapsed[-1] > 9.0


def test_start_does_not_double_schedule():
    scheduler, _, source = make_scheduler()
    scheduler.mount(800, 500)
    scheduler.start()
    scheduler.start()
    assert len(source.pending) == 1
    assert scheduler.mount(800, 500)
    assert len(source.pending) == 1


def test_restart_replays_from_zero():
    scheduler, renderer, source = make_scheduler()
    scheduler.mount(800, 500)
    run_until_idle(scheduler, source)
    assert scheduler.is_done

    scheduler.restart()
    assert scheduler.is_running
    assert not scheduler.is_done
    source.tick()
    assert renderer.elapsed[-1] == 0.0
    assert len(source.pending) == 1


def test_remount_after_completion_replays():
    scheduler, renderer, source = make_scheduler()
    scheduler.mount(800, 500)
    run_until_idle(scheduler, source)
    assert scheduler.is_done

    scheduler.unmount()
    assert not scheduler.is_done
    assert scheduler.context.elapsed == 0.0
    painted = len(renderer.renders)

    assert scheduler.mount(640, 400)
    assert scheduler.is_running
    for _ in range(5):
        source.tick()
    replay = renderer.elapsed[painted:]
    assert len(replay) >= 3
    assert replay[0] == 0.0
    assert replay[-1] < 0.2


def test_surface_loss_on_resize_allows_fresh_mount():
    scheduler, renderer, source = make_scheduler()
    scheduler.mount(800, 500)
    run_until_idle(scheduler, source)

    renderer.fail_resize = True
    scheduler.resize(640, 400)
    assert not scheduler.is_mounted
    assert not scheduler.is_done

    renderer.fail_resize = False
    assert scheduler.mount(640, 400)
    source.tick()
    assert renderer.elapsed[-1] == 0.0


def test_hidden_host_suspends_and_keeps_start():
    scheduler, renderer, source = make_scheduler()
    scheduler.mount(800, 500)
    source.tick()
    source.tick()
    start = scheduler.context.start_timestamp

    scheduler.set_visible(False)
    assert not scheduler.is_running
    assert source.pending == {}
    painted = scheduler.stats.painted
    source.time += 1000.0
    source.tick()
    assert scheduler.stats.painted == painted

    scheduler.set_visible(True)
    assert scheduler.is_running
    source.tick()
    assert scheduler.context.start_timestamp == start
    assert renderer.elapsed[-1] > 1.0


def test_document_hidden_suspends_loop():
    scheduler, _, source = make_scheduler()
    scheduler.mount(800, 500)
    scheduler.set_document_hidden(True)
    assert source.pending == {}
    scheduler.set_visible(True)
    assert not scheduler.is_running
    scheduler.set_document_hidden(False)
    assert scheduler.is_running


def test_switching_to_reduced_motion_stops_loop():
    scheduler, renderer, source = make_scheduler()
    scheduler.mount(800, 500)
    source.tick()
    scheduler.set_reduced_motion(True)
    assert source.pending == {}
    assert renderer.elapsed[-1] == pytest.approx(4.4)

    scheduler.set_reduced_motion(False)
    assert scheduler.is_running


def test_surface_failure_on_mount_is_silent():
    renderer = FakeRenderer(fail_resize=True)
    source = FakeFrameSource()
    scheduler = AnimationScheduler(renderer, source)
    assert scheduler.mount(800, 500) is False
    assert not scheduler.is_mounted
    assert source.pending == {}
    assert renderer.renders == []


def test_zero_size_frames_are_skipped():
    scheduler, renderer, source = make_scheduler()
    assert scheduler.mount(0, 0)
    for _ in range(5):
        source.tick()
    assert scheduler.stats.painted == 0
    assert scheduler.stats.skipped == 5
    assert scheduler.is_running


def test_pixel_ratio_is_capped():
    scheduler, renderer, _ = make_scheduler()
    scheduler.mount(300, 200, 3.0)
    assert renderer.sizes[-1] == (300, 200, 2.0)
    assert scheduler.context.pixel_ratio == 2.0


def test_on_present_called_after_paint():
    scheduler, _, source = make_scheduler()
    presented = []
    scheduler.on_present = lambda: presented.append(True)
    scheduler.mount(800, 500)
    source.tick()
    assert presented == [True]


def test_pointer_is_clamped_and_smoothed():
    config = SchedulerConfig(total_duration=None, pointer_reactive=True)
    scheduler, renderer, source = make_scheduler(config)
    scheduler.mount(200, 100)

    scheduler.pointer_move(500, -20)
    assert scheduler.context.pointer_target == (200.0, 0.0)

    scheduler.pointer_move(200, 50)
    source.tick()
    x, y = renderer.renders[-1][1]
    assert x == pytest.approx(100.0 + 100.0 * 0.055)
    assert y == pytest.approx(50.0)


def test_pointer_ignored_without_reactivity():
    scheduler, renderer, source = make_scheduler()
    scheduler.mount(200, 100)
    scheduler.pointer_move(10, 10)
    source.tick()
    assert renderer.renders[-1][1] is None


def test_touch_sway_on_constrained_devices():
    config = SchedulerConfig(total_duration=None, pointer_reactive=True)
    scheduler, _, source = make_scheduler(config, constrained=True)
    scheduler.mount(200, 100)
    source.tick()
    assert scheduler.context.pointer_target == (pytest.approx(100.0), pytest.approx(54.0))

    scheduler.pointer_move(20, 30, touch=True)
    source.tick()
    assert scheduler.context.pointer_target == (20.0, 30.0)


def test_scheduler_config_validation():
    with pytest.raises(ValueError):
        SchedulerConfig(total_duration=0)
    with pytest.raises(ValueError):
        SchedulerConfig(smooth_factor=0.0)
    assert SchedulerConfig().final_elapsed == pytest.approx(4.4)
    assert SchedulerConfig(total_duration=None).final_elapsed == 0.0
    assert SchedulerConfig(total_duration=None, static_elapsed=2.5).final_elapsed == 2.5


def test_scheduler_config_follows_variant():
    liquid = scheduler_config_for(SceneRenderer(), {})
    assert liquid.total_duration == pytest.approx(4.4)
    assert not liquid.pointer_reactive

    ambient = scheduler_config_for(SceneRenderer(render_config=RenderConfig(variant='ambient')), {})
    assert ambient.total_duration is None
    assert ambient.static_elapsed == pytest.approx(2.5)
    assert ambient.pointer_reactive
