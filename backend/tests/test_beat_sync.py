"""
Tests for promoreel.services.beat_sync
"""

import pytest

from promoreel.models.config import BeatConfig, MusicMood
from promoreel.services.beat_sync import (
    bpm_for_mood,
    closest_beat,
    create_beat_map,
    estimate_bpm,
    is_on_beat,
    is_on_measure,
    next_beat,
    previous_beat,
)


class TestCreateBeatMap:

    @pytest.mark.parametrize("bpm", [60, 90, 120, 128, 140, 175, 200])
    def test_beats_are_evenly_spaced(self, bpm):
        beat_map = create_beat_map(bpm, 45, fps=30)
        gaps = {b - a for a, b in zip(beat_map.beats, beat_map.beats[1:])}
        assert gaps == {beat_map.frames_per_beat}
        assert beat_map.beats[0] == 0
        assert beat_map.beats[-1] < beat_map.total_duration

    @pytest.mark.parametrize("bpm", [60, 100, 120, 200])
    def test_downbeats_are_every_fourth_beat(self, bpm):
        beat_map = create_beat_map(bpm, 30, fps=30)
        assert set(beat_map.downbeats) <= set(beat_map.beats)
        for i, downbeat in enumerate(beat_map.downbeats):
            assert downbeat == beat_map.beats[4 * i]
        assert beat_map.measures == beat_map.downbeats

    def test_frames_per_beat_rounds(self):
        assert create_beat_map(120, 10, fps=30).frames_per_beat == 15
        assert create_beat_map(140, 10, fps=30).frames_per_beat == 13
        assert create_beat_map(90, 10, fps=30).frames_per_beat == 20

    def test_total_duration_and_energy_length(self):
        beat_map = create_beat_map(120, 30, fps=30)
        assert beat_map.total_duration == 900
        assert len(beat_map.energy) == 900
        assert len(beat_map.beats) == 60

    def test_energy_peaks_on_beats(self):
        config = BeatConfig(energy_jitter=0)
        beat_map = create_beat_map(120, 10, fps=30, config=config)
        assert beat_map.energy[0] == pytest.approx(0.7)
        assert beat_map.energy[15] == pytest.approx(0.7)
        assert beat_map.energy[7] < beat_map.energy[0]
        assert all(0.2 <= e <= 0.7 + 1e-9 for e in beat_map.energy)

    def test_drops_every_sixteen_measures(self):
        beat_map = create_beat_map(120, 120, fps=30)
        # 15 frames/beat * 4 beats * 16 measures
        assert beat_map.drops == [0, 960, 1920, 2880]

    def test_is_deterministic(self):
        first = create_beat_map(128, 20, fps=30)
        second = create_beat_map(128, 20, fps=30)
        assert first.energy == second.energy

    def test_explicit_seed_changes_jitter(self):
        first = create_beat_map(128, 20, fps=30, seed=1)
        second = create_beat_map(128, 20, fps=30, seed=2)
        assert first.beats == second.beats
        assert first.energy != second.energy

    @pytest.mark.parametrize("bpm, duration, fps", [(0, 10, 30), (-5, 10, 30), (120, 0, 30), (120, 10, 0)])
    def test_rejects_non_positive_inputs(self, bpm, duration, fps):
        with pytest.raises(ValueError):
            create_beat_map(bpm, duration, fps)

    def test_wire_format_is_camel_case(self):
        wire = create_beat_map(120, 2, fps=30).to_wire()
        assert wire["framesPerBeat"] == 15
        assert wire["totalDuration"] == 60


class TestBeatQueries:

    @pytest.fixture
    def beat_map(self):
        return create_beat_map(120, 10, fps=30)

    def test_closest_beat(self, beat_map):
        assert closest_beat(16, beat_map) == 15
        assert closest_beat(29, beat_map) == 30

    def test_next_and_previous_beat(self, beat_map):
        assert next_beat(15, beat_map) == 30
        assert previous_beat(15, beat_map) == 0
        assert previous_beat(0, beat_map) is None
        assert next_beat(beat_map.beats[-1], beat_map) is None

    def test_on_beat_tolerance(self, beat_map):
        assert is_on_beat(17, beat_map)
        assert not is_on_beat(22, beat_map)

    def test_on_measure(self, beat_map):
        assert is_on_measure(61, beat_map)
        assert not is_on_measure(30, beat_map)


class TestEstimateBpm:

    def _pulse_train(self, interval_ms, seconds=10, sample_rate=1000):
        samples = [0.0] * (seconds * sample_rate)
        for pos in range(interval_ms // 2, len(samples), interval_ms):
            samples[pos] = 1.0
        return samples

    def test_recovers_pulse_tempo(self):
        assert estimate_bpm(self._pulse_train(500), 1000) == 120

    def test_silence_falls_back_to_default(self):
        assert estimate_bpm([0.0] * 5000, 1000) == 120

    def test_clamps_to_range(self):
        assert estimate_bpm(self._pulse_train(100), 1000) == 200
        assert estimate_bpm(self._pulse_train(2000, seconds=20), 1000) == 60


class TestBpmForMood:

    def test_known_moods(self):
        assert bpm_for_mood(MusicMood.ENERGETIC) == 140
        assert bpm_for_mood(MusicMood.CALM) == 90
        assert bpm_for_mood(MusicMood.DRAMATIC) == 110
        assert bpm_for_mood("playful") == 125

    def test_missing_mood_uses_default(self):
        assert bpm_for_mood(None) == 120
        assert bpm_for_mood(None, default=100) == 100
