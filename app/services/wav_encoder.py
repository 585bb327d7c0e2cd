"""WAV packaging for raw PCM audio returned by the model."""

from __future__ import annotations

import base64
import io
from dataclasses import dataclass

import numpy as np
import soundfile as sf


@dataclass
class PcmFormat:
    num_channels: int = 1
    sample_rate: int = 16000
    bits_per_sample: int = 16


# bits -> (raw subtype for reading, WAV subtype for writing)
_SUBTYPES = {
    8: ("PCM_U8", "PCM_U8"),
    16: ("PCM_16", "PCM_16"),
    24: ("PCM_24", "PCM_24"),
    32: ("PCM_32", "PCM_32"),
}


def parse_mime_type(mime_type: str) -> PcmFormat:
    """Parse ``audio/L16;rate=24000`` style mime types.

    Channels are always mono; bit depth comes from an ``L<bits>`` subtype
    and sample rate from a ``rate=`` parameter.
    """
    file_type, *params = [s.strip() for s in (mime_type or "").split(";")]
    _, _, fmt = file_type.partition("/")

    fmt_options = PcmFormat()
    if fmt.startswith("L"):
        try:
            fmt_options.bits_per_sample = int(fmt[1:]) or 16
        except ValueError:
            pass

    for param in params:
        key, _, value = (s.strip() for s in param.partition("="))
        if key == "rate":
            try:
                fmt_options.sample_rate = int(value) or 16000
            except ValueError:
                pass

    return fmt_options


def decode_parts(parts_b64: list[str]) -> bytes:
    return b"".join(base64.b64decode(part) for part in parts_b64 if part)


def convert_to_wav(parts_b64: list[str], mime_type: str) -> bytes:
    """Concatenate base64 PCM parts and wrap them in a RIFF/WAVE container."""
    fmt = parse_mime_type(mime_type)
    if fmt.bits_per_sample not in _SUBTYPES:
        raise ValueError(f"Unsupported PCM width: {fmt.bits_per_sample} bits")
    raw_subtype, wav_subtype = _SUBTYPES[fmt.bits_per_sample]

    raw = decode_parts(parts_b64)
    frame_bytes = fmt.num_channels * fmt.bits_per_sample // 8
    usable = len(raw) - (len(raw) % frame_bytes)

    if usable:
        # int32 keeps full precision for every supported width
        audio, _ = sf.read(
            io.BytesIO(raw[:usable]),
            format="RAW",
            subtype=raw_subtype,
            endian="LITTLE",
            samplerate=fmt.sample_rate,
            channels=fmt.num_channels,
            dtype="int32",
        )
    else:
        audio = np.zeros((0,), dtype=np.int32)

    buffer = io.BytesIO()
    sf.write(
        buffer,
        audio,
        fmt.sample_rate,
        subtype=wav_subtype,
        format="WAV",
    )
    return buffer.getvalue()
