"""
Tests for promoreel.services.zoom_detector
"""

import pytest

from promoreel.models.config import ZoomDetectionConfig
from promoreel.models.recording import CursorEvent, CursorEventType, ZoomPoint
from promoreel.services.zoom_detector import (
    detect_zoom_points,
    get_cursor_at_time,
    get_zoom_at_time,
    insert_manual_zoom_point,
)


def click(ts, x=960, y=540):
    return CursorEvent(type=CursorEventType.CLICK, x=x, y=y, timestamp=ts)


def move(ts, x, y):
    return CursorEvent(type=CursorEventType.MOVE, x=x, y=y, timestamp=ts)


class TestDetectZoomPoints:

    def test_empty_input(self):
        assert detect_zoom_points([]) == []

    def test_moves_only_produce_nothing(self):
        assert detect_zoom_points([move(0, 10, 10), move(100, 500, 500)]) == []

    def test_clicks_within_cooldown_collapse(self):
        points = detect_zoom_points([click(0), click(4900)])
        assert len(points) == 1
        assert points[0].time == 0

    def test_clicks_past_cooldown_both_count(self):
        points = detect_zoom_points([click(0), click(5100)])
        assert [p.time for p in points] == [0, 5.1]

    def test_click_followed_by_large_move_is_discarded(self):
        events = [click(1000, 100, 100), move(1200, 200, 100)]
        assert detect_zoom_points(events) == []

    def test_click_followed_by_small_move_is_kept(self):
        events = [click(1000, 100, 100), move(1200, 130, 100)]
        assert len(detect_zoom_points(events)) == 1

    def test_move_after_lookahead_is_ignored(self):
        events = [click(1000, 100, 100), move(1600, 900, 900)]
        assert len(detect_zoom_points(events)) == 1

    def test_suppressed_click_does_not_start_cooldown(self):
        events = [click(0, 100, 100), move(100, 400, 400), click(2000)]
        points = detect_zoom_points(events)
        assert [p.time for p in points] == [2.0]

    def test_input_events_are_candidates(self):
        events = [CursorEvent(type=CursorEventType.INPUT, x=480, y=270, timestamp=3000)]
        points = detect_zoom_points(events)
        assert len(points) == 1
        assert points[0].x == pytest.approx(0.25)
        assert points[0].y == pytest.approx(0.25)

    def test_truncates_to_max_points(self):
        events = [click(i * 6000) for i in range(8)]
        assert len(detect_zoom_points(events)) == 5

    def test_normalises_and_clamps(self):
        points = detect_zoom_points([click(0, 960, 540), click(6000, 4000, -20)])
        assert (points[0].x, points[0].y) == (0.5, 0.5)
        assert (points[1].x, points[1].y) == (1.0, 0.0)
        assert points[0].scale == 1.5
        assert points[0].duration == 2.0

    def test_unsorted_input_is_ordered(self):
        points = detect_zoom_points([click(12000), click(0), click(6000)])
        assert [p.time for p in points] == [0, 6, 12]

    def test_config_overrides(self):
        config = ZoomDetectionConfig(cooldown_ms=1000, max_points=2, scale=2.0)
        points = detect_zoom_points([click(0), click(1500), click(3000)], config)
        assert len(points) == 2
        assert all(p.scale == 2.0 for p in points)


class TestManualZoomPoints:

    def test_insert_keeps_time_order(self):
        points = [ZoomPoint(time=1, x=0.5, y=0.5), ZoomPoint(time=8, x=0.5, y=0.5)]
        result = insert_manual_zoom_point(points, ZoomPoint(time=4, x=0.2, y=0.3))
        assert [p.time for p in result] == [1, 4, 8]
        assert len(points) == 2


class TestPlaybackHelpers:

    def test_zoom_outside_any_point_is_identity(self):
        points = [ZoomPoint(time=2, x=0.3, y=0.4)]
        assert get_zoom_at_time(points, 0.5) == (1.0, 0.5, 0.5)

    def test_zoom_holds_full_scale_mid_point(self):
        points = [ZoomPoint(time=2, x=0.3, y=0.4, scale=1.5, duration=2)]
        assert get_zoom_at_time(points, 3) == (1.5, 0.3, 0.4)

    def test_zoom_eases_in(self):
        points = [ZoomPoint(time=2, x=0.3, y=0.4, scale=1.5, duration=2)]
        scale, _, _ = get_zoom_at_time(points, 2.1)
        assert 1.0 < scale < 1.5

    def test_cursor_interpolates_between_events(self):
        events = [move(0, 0, 0), move(1000, 100, 200)]
        cursor = get_cursor_at_time(events, 500)
        assert (cursor.x, cursor.y) == (50, 100)

    def test_cursor_exact_and_empty(self):
        events = [move(0, 0, 0), move(1000, 100, 200)]
        assert get_cursor_at_time(events, 1000).x == 100
        assert get_cursor_at_time([], 10) is None
