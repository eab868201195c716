"""Beat and energy analysis of music tracks using Librosa."""

import asyncio
import functools
import logging
from pathlib import Path
from typing import List, Optional, Tuple
import numpy as np
import librosa
from scipy.ndimage import gaussian_filter1d

from ..config import settings
from ..errors import AnalysisError
from ..models.analysis import AudioAnalysis, Beat, EnergySegment
from .base import MediaAnalyzer, MediaKind, ProgressCallback


logger = logging.getLogger(__name__)


class LibrosaAudioAnalyzer(MediaAnalyzer):
    """Extracts tempo, beats with strengths and energy segments."""

    kind = MediaKind.AUDIO

    def __init__(
        self,
        sample_rate: Optional[int] = None,
        energy_window: Optional[float] = None,
        hop_length: int = 512,
    ):
        """Initialize the audio analyzer.

        Args:
            sample_rate: Resampling rate, defaults to settings.audio_sample_rate
            energy_window: Length of an energy segment in seconds
            hop_length: Hop length of the RMS and onset envelopes
        """
        self.sample_rate = sample_rate or settings.audio_sample_rate
        self.energy_window = energy_window or settings.energy_window_seconds
        self.hop_length = hop_length

    async def analyze(self, path: str, progress: Optional[ProgressCallback] = None) -> AudioAnalysis:
        """Analyze a music file.

        Args:
            path: Path to the audio file

        Returns:
            AudioAnalysis with beats, energy segments and tempo
        """
        self._report(progress, path, 0.0)
        loop = asyncio.get_event_loop()
        try:
            y, sr = await loop.run_in_executor(
                None, functools.partial(librosa.load, path, sr=self.sample_rate)
            )
            self._report(progress, path, 0.4)
            tempo, beats = await loop.run_in_executor(None, self.extract_beats, y, sr)
            segments = await loop.run_in_executor(None, self.extract_energy, y, sr)
        except Exception as e:
            logger.error(f"Failed to analyze audio {path}: {e}")
            raise AnalysisError(f"Failed to analyze audio {path}", detail=str(e)) from e

        if not beats:
            raise AnalysisError(f"No beats detected in {path}")

        analysis = AudioAnalysis(
            beats=tuple(beats),
            energy_segments=tuple(segments),
            tempo=tempo,
            duration=len(y) / sr,
            source_id=Path(path).stem,
            file_path=path,
        )
        self._report(progress, path, 1.0)
        logger.info(f"Analyzed {Path(path).name}: {tempo:.1f} BPM, {len(beats)} beats")
        return analysis

    def extract_beats(self, y: np.ndarray, sr: int) -> Tuple[float, List[Beat]]:
        """Tempo and beats; strength is the onset envelope at the beat, normalized to its maximum."""
        onset_env = librosa.onset.onset_strength(y=y, sr=sr, hop_length=self.hop_length)
        tempo, frames = librosa.beat.beat_track(
            onset_envelope=onset_env, sr=sr, hop_length=self.hop_length
        )
        tempo = float(np.atleast_1d(tempo)[0])
        frames = np.asarray(frames, dtype=int)
        if frames.size == 0:
            return tempo, []

        times = librosa.frames_to_time(frames, sr=sr, hop_length=self.hop_length)
        peak = float(onset_env.max()) if onset_env.size else 0.0
        strengths = onset_env[np.clip(frames, 0, len(onset_env) - 1)]
        strengths = strengths / peak if peak > 0 else np.zeros_like(strengths)

        beats = [
            Beat(time=float(t), strength=float(np.clip(s, 0.0, 1.0)))
            for t, s in zip(times, strengths)
        ]
        return tempo, beats

    def extract_energy(self, y: np.ndarray, sr: int) -> List[EnergySegment]:
        """Smoothed, normalized RMS energy averaged over fixed windows."""
        rms = librosa.feature.rms(y=y, hop_length=self.hop_length)[0]
        if rms.size == 0:
            return []

        smoothed = gaussian_filter1d(rms, sigma=2)
        if smoothed.max() > 0:
            smoothed = smoothed / smoothed.max()

        duration = len(y) / sr
        frames_per_window = max(1, int(round(self.energy_window * sr / self.hop_length)))
        segments = []
        for index, start_frame in enumerate(range(0, len(smoothed), frames_per_window)):
            start = index * self.energy_window
            if start >= duration:
                break
            level = float(np.clip(smoothed[start_frame:start_frame + frames_per_window].mean(), 0.0, 1.0))
            segments.append(EnergySegment(
                start=start,
                duration=min(self.energy_window, duration - start),
                level=level,
            ))
        return segments
