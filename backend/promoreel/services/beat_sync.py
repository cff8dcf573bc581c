"""
Serviço de sincronização por batidas.

Gera um mapa de batidas determinístico a partir do BPM, sem análise real de
áudio no momento da renderização. A estimativa de BPM a partir de amostras é
uma heurística leve (envelope de energia + espaçamento entre picos).
"""

import logging
import math
import random
from pathlib import Path
from typing import Optional, Sequence

from ..models.beat import BeatMap
from ..models.config import BeatConfig, MusicMood

logger = logging.getLogger(__name__)


MOOD_BPM = {
    MusicMood.ENERGETIC: 140,
    MusicMood.CALM: 90,
    MusicMood.DRAMATIC: 110,
    MusicMood.PLAYFUL: 125,
}


def create_beat_map(
    bpm: int,
    duration_seconds: float,
    fps: int = 30,
    config: Optional[BeatConfig] = None,
    seed: Optional[int] = None,
) -> BeatMap:
    """
    Cria o mapa de batidas a partir do BPM.

    Args:
        bpm: Batidas por minuto
        duration_seconds: Duração da trilha em segundos
        fps: Frames por segundo do vídeo
        config: Parâmetros de compasso, energia e drops
        seed: Semente do jitter de energia (padrão derivado das entradas)

    Returns:
        BeatMap com todos os tempos em frames
    """
    if bpm <= 0:
        raise ValueError(f"BPM must be positive, got {bpm}")
    if duration_seconds <= 0:
        raise ValueError(f"Duration must be positive, got {duration_seconds}")
    if fps <= 0:
        raise ValueError(f"FPS must be positive, got {fps}")

    config = config or BeatConfig()
    frames_per_beat = max(1, round((60 / bpm) * fps))
    total_frames = round(duration_seconds * fps)
    per_measure = config.beats_per_measure

    beats = list(range(0, total_frames, frames_per_beat))
    # Batidas 1, 5, 9... (contagem a partir de 1) abrem um compasso
    downbeats = [frame for i, frame in enumerate(beats) if i % per_measure == 0]
    measures = list(downbeats)

    if seed is None:
        seed = hash((bpm, total_frames, fps)) & 0xFFFFFFFF
    rng = random.Random(seed)
    energy = []
    for frame in range(total_frames):
        phase = (frame % frames_per_beat) / frames_per_beat
        pulse = math.exp(-phase * config.energy_decay) * config.energy_pulse
        energy.append(config.energy_base + pulse + rng.random() * config.energy_jitter)

    drop_step = frames_per_beat * per_measure * config.drop_interval_measures
    drops = list(range(0, total_frames, drop_step))

    logger.debug(
        f"Beat map: {bpm} BPM, {frames_per_beat} frames/beat, "
        f"{len(beats)} beats, {len(drops)} drops over {total_frames} frames"
    )

    return BeatMap(
        bpm=bpm,
        fps=fps,
        frames_per_beat=frames_per_beat,
        beats=beats,
        downbeats=downbeats,
        measures=measures,
        energy=energy,
        drops=drops,
        total_duration=total_frames,
    )


def estimate_bpm(
    samples: Sequence[float],
    sample_rate: int,
    config: Optional[BeatConfig] = None,
) -> int:
    """
    Estima o BPM pelo espaçamento médio entre picos do envelope RMS.

    Não substitui um beat tracker de verdade: com menos de dois picos
    retorna o BPM padrão, e o resultado é limitado a [min_bpm, max_bpm].
    """
    config = config or BeatConfig()
    hop = max(1, int(sample_rate * config.hop_ms / 1000))

    envelope = []
    for start in range(0, len(samples), hop):
        window = samples[start:start + hop]
        total = sum(s * s for s in window)
        envelope.append(math.sqrt(total / hop))

    peaks = [
        i for i in range(1, len(envelope) - 1)
        if envelope[i] > envelope[i - 1] and envelope[i] > envelope[i + 1]
    ]
    if len(peaks) < 2:
        return config.default_bpm

    avg_spacing = (peaks[-1] - peaks[0]) / (len(peaks) - 1)
    bpm = round(60000 / (avg_spacing * config.hop_ms))
    return max(config.min_bpm, min(config.max_bpm, bpm))


def beat_map_from_audio_file(
    audio_path: str,
    fps: int = 30,
    bpm: Optional[int] = None,
    config: Optional[BeatConfig] = None,
) -> BeatMap:
    """
    Carrega um arquivo de áudio com pydub e gera o mapa de batidas.

    Se bpm não for informado, é estimado a partir do primeiro canal.
    """
    from pydub import AudioSegment

    path = Path(audio_path)
    if not path.exists():
        raise FileNotFoundError(f"Audio file not found: {audio_path}")

    audio = AudioSegment.from_file(str(path))
    duration_seconds = len(audio) / 1000.0

    if bpm is None:
        channel = audio.split_to_mono()[0]
        full_scale = float(1 << (8 * channel.sample_width - 1))
        samples = [s / full_scale for s in channel.get_array_of_samples()]
        bpm = estimate_bpm(samples, channel.frame_rate, config)
        logger.info(f"Estimated {bpm} BPM for {path.name}")

    return create_beat_map(bpm, duration_seconds, fps, config)


def duration_in_frames(duration_seconds: float, fps: int = 30) -> int:
    return math.ceil(duration_seconds * fps)


def bpm_for_mood(mood: Optional[MusicMood], default: int = 120) -> int:
    if mood is None:
        return default
    return MOOD_BPM.get(MusicMood(mood), default)


# ============== QUERIES ==============


def closest_beat(frame: int, beat_map: BeatMap) -> Optional[int]:
    if not beat_map.beats:
        return None
    return min(beat_map.beats, key=lambda beat: abs(frame - beat))


def next_beat(frame: int, beat_map: BeatMap) -> Optional[int]:
    for beat in beat_map.beats:
        if beat > frame:
            return beat
    return None


def previous_beat(frame: int, beat_map: BeatMap) -> Optional[int]:
    previous = None
    for beat in beat_map.beats:
        if beat >= frame:
            break
        previous = beat
    return previous


def is_on_beat(frame: int, beat_map: BeatMap, tolerance: int = 2) -> bool:
    return any(abs(frame - beat) <= tolerance for beat in beat_map.beats)


def is_on_measure(frame: int, beat_map: BeatMap, tolerance: int = 2) -> bool:
    return any(abs(frame - measure) <= tolerance for measure in beat_map.measures)
