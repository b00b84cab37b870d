"""Sample domain handling: domain selection, append and conversion."""
from __future__ import annotations
import numpy as np

from loudgainer.errors import DomainMismatch, UnsupportedCodec, UnsupportedConfiguration
from loudgainer.types import SampleBuffer, SampleDomain


# soundfile (libsndfile) subtypes and ffmpeg sample_fmt names -> (domain, bits)
_SAMPLE_FORMATS: dict[str, tuple[SampleDomain, int]] = {
    # libsndfile
    "PCM_S8": (SampleDomain.S16, 8),
    "PCM_U8": (SampleDomain.S16, 8),
    "PCM_16": (SampleDomain.S16, 16),
    "PCM_24": (SampleDomain.S32, 24),
    "PCM_32": (SampleDomain.S32, 32),
    "FLOAT": (SampleDomain.F32, 32),
    "DOUBLE": (SampleDomain.F64, 64),
    "ALAC_16": (SampleDomain.S16, 16),
    "ALAC_20": (SampleDomain.S32, 20),
    "ALAC_24": (SampleDomain.S32, 24),
    "ALAC_32": (SampleDomain.S32, 32),
    "ULAW": (SampleDomain.S16, 0),
    "ALAW": (SampleDomain.S16, 0),
    "IMA_ADPCM": (SampleDomain.S16, 0),
    "MS_ADPCM": (SampleDomain.S16, 0),
    "GSM610": (SampleDomain.S16, 0),
    "DWVW_12": (SampleDomain.S16, 12),
    "DWVW_16": (SampleDomain.S16, 16),
    "DWVW_24": (SampleDomain.S32, 24),
    "DPCM_8": (SampleDomain.S16, 8),
    "DPCM_16": (SampleDomain.S16, 16),
    "VORBIS": (SampleDomain.F32, 0),
    "OPUS": (SampleDomain.F32, 0),
    "MPEG_LAYER_I": (SampleDomain.F32, 0),
    "MPEG_LAYER_II": (SampleDomain.F32, 0),
    "MPEG_LAYER_III": (SampleDomain.F32, 0),
    # ffmpeg
    "U8": (SampleDomain.S16, 8),
    "U8P": (SampleDomain.S16, 8),
    "S16": (SampleDomain.S16, 16),
    "S16P": (SampleDomain.S16, 16),
    "S32": (SampleDomain.S32, 32),
    "S32P": (SampleDomain.S32, 32),
    "FLT": (SampleDomain.F32, 32),
    "FLTP": (SampleDomain.F32, 32),
    "DBL": (SampleDomain.F64, 64),
    "DBLP": (SampleDomain.F64, 64),
}


def select_domain(sample_format: str) -> SampleDomain:
    """
    Map a decoder's reported sample format to a sample domain.

    Integers of 16 bits or fewer land in S16, wider integers up to 32 bits in
    S32 (left-justified so the source MSB is bit 31), native float32 in F32
    and native float64 in F64.
    """
    return _lookup_format(sample_format)[0]


def format_bits(sample_format: str) -> int:
    """Source bit depth for a sample format, 0 when the codec has none."""
    return _lookup_format(sample_format)[1]


def _lookup_format(sample_format: str) -> tuple[SampleDomain, int]:
    key = str(sample_format or "").strip().upper()
    try:
        return _SAMPLE_FORMATS[key]
    except KeyError:
        raise UnsupportedCodec(f"Unsupported sample format: {sample_format!r}") from None


def domain_for_bits(bits: int) -> SampleDomain:
    """Domain for an integer PCM bit depth (lossless fast path)."""
    bits = int(bits)
    if 0 < bits <= 16:
        return SampleDomain.S16
    if 16 < bits <= 32:
        return SampleDomain.S32
    raise UnsupportedConfiguration(f"Unsupported bit depth: {bits}")


def _as_array(domain: SampleDomain, incoming) -> np.ndarray:
    if isinstance(incoming, SampleBuffer):
        if incoming.domain is not domain:
            raise DomainMismatch(
                f"Cannot append {incoming.domain.value} samples to a {domain.value} buffer."
            )
        return incoming.samples
    x = np.asarray(incoming)
    if x.dtype != domain.dtype:
        raise DomainMismatch(
            f"Cannot append {x.dtype} samples to a {domain.value} buffer."
        )
    return x.reshape(-1)


def append(existing: SampleBuffer, incoming) -> SampleBuffer:
    """Return a buffer holding ``existing`` followed by ``incoming``."""
    chunk = _as_array(existing.domain, incoming)
    samples = np.concatenate([existing.samples, chunk])
    return SampleBuffer(domain=existing.domain, samples=samples)


class SampleAccumulator:
    """
    Collects decoded chunks for one track.

    The domain is fixed by the first chunk (or explicitly at construction);
    any later chunk in another domain raises DomainMismatch.
    """

    def __init__(self, domain: SampleDomain | None = None):
        self.domain = domain
        self._chunks: list[np.ndarray] = []
        self._size = 0

    def __len__(self) -> int:
        return self._size

    def append(self, chunk) -> None:
        if self.domain is None:
            if isinstance(chunk, SampleBuffer):
                self.domain = chunk.domain
            else:
                try:
                    self.domain = SampleDomain.from_dtype(np.asarray(chunk).dtype)
                except KeyError as exc:
                    raise DomainMismatch(str(exc)) from None
        x = _as_array(self.domain, chunk)
        if x.size == 0:
            return
        self._chunks.append(np.ascontiguousarray(x))
        self._size += int(x.size)

    def build(self) -> SampleBuffer:
        """Concatenate all chunks into a read-only buffer."""
        if self.domain is None:
            raise DomainMismatch("No samples were appended; domain is undetermined.")
        if self._chunks:
            samples = np.concatenate(self._chunks)
        else:
            samples = np.zeros(0, dtype=self.domain.dtype)
        self._chunks = []
        samples.setflags(write=False)
        return SampleBuffer(domain=self.domain, samples=samples)


def convert(buffer: SampleBuffer, domain: SampleDomain) -> np.ndarray:
    """
    Convert a buffer's samples to another domain.

    Integer to float divides by the source full scale. S16 to S32 shifts
    left by 16 and S32 to S16 shifts right by 16, so S16 -> S32 -> S16 is
    exact. Float to integer is not supported.
    """
    src = buffer.domain
    x = buffer.samples
    if src is domain:
        return np.array(x, dtype=domain.dtype, copy=True)
    if src.is_integer and not domain.is_integer:
        y = x.astype(np.float64) / src.full_scale
        return y.astype(domain.dtype)
    if src is SampleDomain.S16 and domain is SampleDomain.S32:
        return np.left_shift(x.astype(np.int32), 16)
    if src is SampleDomain.S32 and domain is SampleDomain.S16:
        return np.right_shift(x, 16).astype(np.int16)
    if not src.is_integer and not domain.is_integer:
        return x.astype(domain.dtype)
    raise DomainMismatch(f"Conversion from {src.value} to {domain.value} is not supported.")
