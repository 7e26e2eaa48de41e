"""
sound_engine.py
───────────────
Alarm audio: ringtone synthesis, playback and custom sound storage.

Built-in ringtones are short sine bursts at a fixed pitch, repeated once per
second.  A custom ringtone plays an uploaded audio file once through.  Either
way playback stops on its own after a fixed ceiling (30 s by default).

Playback tries, in order:
  - numpy + sounddevice
  - a platform audio tool in a child process (aplay / afplay / PowerShell)
  - the terminal bell
Failures are logged and swallowed; a silent alarm still shows visually.
"""

from __future__ import annotations

import logging
import os
import platform
import re
import shutil
import subprocess
import sys
import tempfile
import threading
import time
import uuid
import wave
from io import BytesIO
from pathlib import Path
from typing import Callable, Dict, List, Optional

import numpy as np

from .models import Ringtone

logger = logging.getLogger(__name__)


# ── Ringtone profiles ─────────────────────────────────────────────────────────

RINGTONE_FREQUENCIES: Dict[str, int] = {
    Ringtone.DEFAULT.value:      800,
    Ringtone.BELL.value:         1000,
    Ringtone.CHIME.value:        600,
    Ringtone.BEEP.value:         1200,
    Ringtone.NOTIFICATION.value: 900,
}

SAMPLE_RATE    = 44100
TONE_DURATION  = 0.5     # seconds per burst
TONE_ATTACK    = 0.1     # ramp up to peak gain
TONE_PEAK_GAIN = 0.3

AUDIO_EXTS = {".wav", ".mp3", ".ogg", ".m4a", ".aac", ".flac"}


def frequency_for(ringtone: str) -> int:
    """Pitch of a built-in ringtone; unknown kinds (and `custom`) use default."""
    key = ringtone.value if isinstance(ringtone, Ringtone) else str(ringtone)
    return RINGTONE_FREQUENCIES.get(key, RINGTONE_FREQUENCIES[Ringtone.DEFAULT.value])


# ── Waveform generation ───────────────────────────────────────────────────────

def tone_samples(freq: float, duration: float = TONE_DURATION,
                 sample_rate: int = SAMPLE_RATE) -> np.ndarray:
    """
    One envelope-shaped sine burst as float32 samples in [-1, 1].

    Gain ramps linearly 0 -> 0.3 over the first 0.1 s, then back to 0 at the
    end of the burst.
    """
    n = int(sample_rate * duration)
    t = np.arange(n, dtype=np.float64) / sample_rate
    envelope = np.interp(t, [0.0, TONE_ATTACK, duration], [0.0, TONE_PEAK_GAIN, 0.0])
    return (np.sin(2 * np.pi * freq * t) * envelope).astype(np.float32)


def _build_wav_bytes(samples: np.ndarray, sample_rate: int = SAMPLE_RATE) -> bytes:
    """Wrap float samples as 16-bit PCM in a WAV container (in memory)."""
    pcm = (np.clip(samples, -1.0, 1.0) * 32767).astype("<i2").tobytes()
    buf = BytesIO()
    with wave.open(buf, "wb") as w:
        w.setnchannels(1)
        w.setsampwidth(2)
        w.setframerate(sample_rate)
        w.writeframes(pcm)
    return buf.getvalue()


# ── Playback strategies ───────────────────────────────────────────────────────

def _play_via_sounddevice(samples: np.ndarray):
    # Imported here: sounddevice needs PortAudio at import time.
    import sounddevice as sd

    sd.play(samples, samplerate=SAMPLE_RATE)
    sd.wait()


def _play_via_subprocess(wav_bytes: bytes):
    """Play WAV bytes through the host's audio tool in a child process."""
    system = platform.system()

    with tempfile.NamedTemporaryFile(suffix=".wav", delete=False) as f:
        f.write(wav_bytes)
        tmp_path = f.name

    try:
        if system == "Linux":
            cmd = ["aplay", "-q", tmp_path]
        elif system == "Darwin":
            cmd = ["afplay", tmp_path]
        elif system == "Windows":
            cmd = ["powershell", "-c", f"(New-Object Media.SoundPlayer '{tmp_path}').PlaySync()"]
        else:
            raise OSError(f"no audio tool for platform {system!r}")

        subprocess.run(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL, check=True)
    finally:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass


def _play_via_beep():
    """Last resort: ASCII bell character to terminal."""
    sys.stdout.write("\a")
    sys.stdout.flush()


def play_tone_once(freq: float):
    """Play one burst of the given pitch using the best available method."""
    samples = tone_samples(freq)

    try:
        _play_via_sounddevice(samples)
        return
    except Exception as e:
        logger.debug("sounddevice playback unavailable: %s", e)

    try:
        _play_via_subprocess(_build_wav_bytes(samples))
        return
    except Exception as e:
        logger.debug("subprocess playback unavailable: %s", e)

    _play_via_beep()


def start_file_playback(file_path: str) -> subprocess.Popen:
    """
    Start playing an audio file (wav/mp3/ogg/...) once through.

    Returns the child process so the caller can poll or terminate it.
    """
    system = platform.system()
    if system == "Darwin":
        cmd = ["afplay", file_path]
    elif system == "Linux":
        # ffplay and mpg123 handle compressed formats, aplay is wav only
        if shutil.which("ffplay"):
            cmd = ["ffplay", "-nodisp", "-autoexit", "-loglevel", "quiet", file_path]
        elif shutil.which("mpg123"):
            cmd = ["mpg123", "-q", file_path]
        else:
            cmd = ["aplay", "-q", file_path]
    elif system == "Windows":
        cmd = ["powershell", "-c", f"(New-Object Media.SoundPlayer '{file_path}').PlaySync()"]
    else:
        raise OSError(f"no audio tool for platform {system!r}")
    return subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)


# ── Custom sound storage ──────────────────────────────────────────────────────

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]+")


class SoundLibrary:
    """
    Uploaded ringtone files kept on disk under `directory`.

    A stored file's name is its `custom_audio_ref`, so tasks keep their custom
    ringtone across restarts.
    """

    def __init__(self, directory: str | Path):
        self.directory = Path(directory)
        self.directory.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def save(self, filename: str, data: bytes) -> str:
        """Store an upload and return its reference.  Raises ValueError for non-audio names."""
        stem, ext = os.path.splitext(os.path.basename(filename or ""))
        ext = ext.lower()
        if ext not in AUDIO_EXTS:
            raise ValueError(f"unsupported audio format: {ext or filename!r}")
        safe_stem = _UNSAFE_CHARS.sub("_", stem).strip("_") or "sound"
        ref = f"{uuid.uuid4().hex[:8]}_{safe_stem}{ext}"
        with self._lock:
            (self.directory / ref).write_bytes(data)
        logger.info("Stored custom sound %s (%d bytes)", ref, len(data))
        return ref

    def resolve(self, ref: Optional[str]) -> Optional[Path]:
        if not ref or Path(ref).name != ref:
            return None
        path = self.directory / ref
        return path if path.is_file() else None

    def delete(self, ref: str) -> bool:
        path = self.resolve(ref)
        if path is None:
            return False
        with self._lock:
            try:
                path.unlink()
            except OSError:
                logger.warning("Could not delete custom sound %s", ref, exc_info=True)
                return False
        return True

    def list(self) -> List[str]:
        return sorted(
            p.name for p in self.directory.iterdir()
            if p.is_file() and p.suffix.lower() in AUDIO_EXTS
        )


def available_ringtones(library: Optional[SoundLibrary] = None) -> List[dict]:
    """Built-in ringtones plus any uploaded custom sounds."""
    sounds = [
        {"name": name, "frequency": freq, "custom": False}
        for name, freq in RINGTONE_FREQUENCIES.items()
    ]
    if library is not None:
        sounds += [{"name": ref, "frequency": None, "custom": True} for ref in library.list()]
    return sounds


# ── Looping alarm player ──────────────────────────────────────────────────────

class AlarmPlayer:
    """
    Plays one alarm on a background thread until stopped or timed out.

    With `audio_file` the file is played once through; otherwise a tone burst
    of `freq` is played every `interval` seconds.  Both stop after
    `max_duration` seconds.
    """

    def __init__(
        self,
        freq: float,
        audio_file: Optional[Path] = None,
        *,
        interval: float = 1.0,
        max_duration: float = 30.0,
        play_tone: Callable[[float], None] = play_tone_once,
        play_file: Callable[[str], "subprocess.Popen"] = start_file_playback,
    ):
        self.freq         = freq
        self.audio_file   = audio_file
        self.interval     = interval
        self.max_duration = max_duration
        self._play_tone   = play_tone
        self._play_file   = play_file
        self._stop_event  = threading.Event()
        self._thread      = threading.Thread(
            target=self._run,
            daemon=True,
            name=f"alarm-{audio_file.name if audio_file else int(freq)}",
        )

    def start(self):
        self._thread.start()

    def stop(self):
        self._stop_event.set()

    def join(self, timeout: Optional[float] = None):
        self._thread.join(timeout)

    @property
    def playing(self) -> bool:
        return self._thread.is_alive() and not self._stop_event.is_set()

    def _run(self):
        deadline = time.monotonic() + self.max_duration
        try:
            if self.audio_file is not None:
                self._play_file_once(deadline)
            else:
                self._repeat_tone(deadline)
        except Exception:
            logger.exception("Alarm playback failed")

    def _repeat_tone(self, deadline: float):
        next_at = time.monotonic()
        while not self._stop_event.is_set() and time.monotonic() < deadline:
            try:
                self._play_tone(self.freq)
            except Exception:
                logger.exception("Tone playback failed")
            next_at += self.interval
            wait_until = min(next_at, deadline)
            self._stop_event.wait(timeout=max(0.0, wait_until - time.monotonic()))

    def _play_file_once(self, deadline: float):
        proc = self._play_file(str(self.audio_file))
        try:
            while proc.poll() is None:
                if self._stop_event.is_set() or time.monotonic() >= deadline:
                    break
                self._stop_event.wait(timeout=0.1)
        finally:
            if proc.poll() is None:
                proc.terminate()


class AlarmDispatcher:
    """
    Starts and stops alarm audio.  At most one alarm plays at a time; a new
    `play()` stops whatever is currently playing.
    """

    def __init__(
        self,
        library: Optional[SoundLibrary] = None,
        *,
        interval: float = 1.0,
        max_duration: float = 30.0,
        play_tone: Callable[[float], None] = play_tone_once,
        play_file: Callable[[str], "subprocess.Popen"] = start_file_playback,
    ):
        self.library      = library
        self.interval     = interval
        self.max_duration = max_duration
        self._play_tone   = play_tone
        self._play_file   = play_file
        self._current: Optional[AlarmPlayer] = None
        self._lock = threading.Lock()

    @property
    def current(self) -> Optional[AlarmPlayer]:
        return self._current

    def play(self, ringtone: str, custom_audio_ref: Optional[str] = None) -> Optional[AlarmPlayer]:
        self.stop()

        audio_file = None
        if ringtone == Ringtone.CUSTOM and self.library is not None:
            audio_file = self.library.resolve(custom_audio_ref)
            if audio_file is None:
                logger.warning("Custom sound %r not found; using default tone", custom_audio_ref)

        player = AlarmPlayer(
            frequency_for(ringtone),
            audio_file,
            interval=self.interval,
            max_duration=self.max_duration,
            play_tone=self._play_tone,
            play_file=self._play_file,
        )
        try:
            player.start()
        except Exception:
            logger.exception("Could not start alarm playback")
            return None

        with self._lock:
            self._current = player
        return player

    def stop(self):
        with self._lock:
            player, self._current = self._current, None
        if player is not None:
            player.stop()
