"""
Tests for promoreel.models.script (scene mutations keep frames contiguous)
"""

import pytest

from promoreel.models.script import Scene, SceneType, Transition, VideoScript


def make_script(*lengths):
    scenes = []
    frame = 0
    for i, length in enumerate(lengths):
        scenes.append(Scene(id=f"s{i}", start_frame=frame, end_frame=frame + length))
        frame += length
    return VideoScript(total_duration=frame, scenes=scenes)


def lengths(script):
    return [s.length for s in script.scenes]


class TestRepack:

    def test_repack_closes_gaps_and_overlaps(self):
        script = VideoScript(scenes=[
            Scene(id="a", start_frame=10, end_frame=40),
            Scene(id="b", start_frame=20, end_frame=80),
            Scene(id="c", start_frame=200, end_frame=230),
        ])
        script.repack()
        assert script.is_contiguous()
        assert lengths(script) == [30, 60, 30]
        assert script.total_duration == 120

    def test_repack_fixes_empty_scenes(self):
        script = VideoScript(scenes=[Scene(id="a", start_frame=5, end_frame=5)])
        script.repack(min_length=30)
        assert script.scenes[0].end_frame == 30
        assert script.is_contiguous()


class TestMutations:

    def test_add_scene_at_index(self):
        script = make_script(30, 60)
        script.add_scene(Scene(id="new", type=SceneType.CTA), index=1, length=45)
        assert [s.id for s in script.scenes] == ["s0", "new", "s1"]
        assert lengths(script) == [30, 45, 60]
        assert script.is_contiguous()
        assert script.total_duration == 135

    def test_remove_scene_drops_its_transitions(self):
        script = make_script(30, 60, 90)
        script.transitions = [Transition(after_scene="s1"), Transition(after_scene="s0")]
        script.remove_scene("s1")
        assert [s.id for s in script.scenes] == ["s0", "s2"]
        assert [t.after_scene for t in script.transitions] == ["s0"]
        assert script.is_contiguous()
        assert script.total_duration == 120

    def test_move_scene_preserves_lengths(self):
        script = make_script(30, 60, 90)
        script.move_scene("s2", 0)
        assert [s.id for s in script.scenes] == ["s2", "s0", "s1"]
        assert lengths(script) == [90, 30, 60]
        assert script.scenes[0].start_frame == 0
        assert script.is_contiguous()

    def test_resize_scene_shifts_followers(self):
        script = make_script(30, 60, 90)
        script.resize_scene("s0", 50)
        assert script.scenes[1].start_frame == 50
        assert script.total_duration == 200
        assert script.is_contiguous()

    def test_resize_rejects_non_positive(self):
        script = make_script(30)
        with pytest.raises(ValueError):
            script.resize_scene("s0", 0)

    def test_reorder_requires_same_ids(self):
        script = make_script(30, 60)
        with pytest.raises(ValueError):
            script.reorder_scenes(["s0"])
        script.reorder_scenes(["s1", "s0"])
        assert lengths(script) == [60, 30]

    def test_unknown_scene_raises(self):
        with pytest.raises(KeyError):
            make_script(30).remove_scene("missing")


class TestScaleTo:

    def test_scales_to_exact_total(self):
        script = make_script(100, 100, 100)
        script.scale_to(900)
        assert script.total_duration == 900
        assert script.is_contiguous()
        assert lengths(script) == [300, 300, 300]

    def test_rounding_remainder_is_absorbed(self):
        script = make_script(10, 10, 10)
        script.scale_to(100)
        assert script.total_duration == 100
        assert script.is_contiguous()

    def test_shrinking_never_empties_a_scene(self):
        script = make_script(1, 1, 500)
        script.scale_to(10)
        assert script.total_duration == 10
        assert all(length >= 1 for length in lengths(script))

    def test_too_few_frames(self):
        with pytest.raises(ValueError):
            make_script(10, 10, 10).scale_to(2)


def test_wire_format_round_trips_camel_case():
    script = make_script(30)
    wire = script.to_wire()
    assert wire["totalDuration"] == 30
    assert wire["scenes"][0]["startFrame"] == 0
    assert VideoScript.model_validate(wire).scenes[0].end_frame == 30
