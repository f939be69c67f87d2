import logging
import math
import wave
from array import array
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path

from .config import ToneConfig

logger = logging.getLogger(__name__)

SAMPLE_RATE = 22050
FLOOR_GAIN = 0.01


@dataclass(frozen=True)
class ToneSpec:
    name: str
    frequency: float
    duration: float
    waveform: str
    gain: float


SUCCESS_TONE = ToneSpec("success", frequency=800.0, duration=0.1, waveform="sine", gain=0.3)
ERROR_TONE = ToneSpec("error", frequency=400.0, duration=0.2, waveform="sawtooth", gain=0.2)


def _oscillator(waveform: str, phase: float) -> float:
    # phase is in cycles
    if waveform == "sine":
        return math.sin(2 * math.pi * phase)
    if waveform == "sawtooth":
        return 2.0 * (phase - math.floor(phase + 0.5))
    if waveform == "square":
        return 1.0 if (phase % 1.0) < 0.5 else -1.0
    raise ValueError(f"Unsupported waveform: {waveform}")


def synthesize_tone(spec: ToneSpec, sample_rate: int = SAMPLE_RATE) -> bytes:
    """
    Render a tone as 16-bit mono WAV bytes.

    The envelope starts at ``spec.gain`` and decays exponentially to 0.01 over
    the tone's duration.
    """
    total = max(1, int(sample_rate * spec.duration))
    samples = array("h")
    ratio = FLOOR_GAIN / spec.gain
    for i in range(total):
        t = i / sample_rate
        envelope = spec.gain * ratio ** (i / total)
        value = _oscillator(spec.waveform, spec.frequency * t) * envelope
        samples.append(int(max(-1.0, min(1.0, value)) * 32767))

    buffer = BytesIO()
    with wave.open(buffer, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(samples.tobytes())
    return buffer.getvalue()


class TonePlayer:
    """Plays the success and error cues through Qt Multimedia."""

    def __init__(self, config: ToneConfig, parent=None):
        from PyQt6 import QtCore
        from PyQt6.QtMultimedia import QSoundEffect

        self.config = config
        self._error_status = QSoundEffect.Status.Error
        self._effects: dict = {}
        if not config.enabled:
            logger.info("Feedback tones disabled via configuration")
            return
        directory = Path(config.directory)
        directory.mkdir(parents=True, exist_ok=True)
        for spec in (SUCCESS_TONE, ERROR_TONE):
            path = directory / f"{spec.name}.wav"
            path.write_bytes(synthesize_tone(spec))
            effect = QSoundEffect(parent)
            effect.setSource(QtCore.QUrl.fromLocalFile(str(path.resolve())))
            effect.setVolume(config.volume)
            self._effects[spec.name] = effect

    def success(self) -> None:
        self._play(SUCCESS_TONE.name)

    def error(self) -> None:
        self._play(ERROR_TONE.name)

    def _play(self, name: str) -> None:
        effect = self._effects.get(name)
        if effect is None:
            return
        if effect.status() == self._error_status:
            logger.warning("Unable to play %s tone", name)
            return
        effect.play()
