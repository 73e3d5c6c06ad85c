"""Sliding-window chunking of documents into overlapping word windows."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Sequence

from .types import TextWindow

MIN_CHUNK_WORDS = 8


@dataclass(frozen=True)
class WindowPreset:
    """Window size, stride and cap used for one side of a comparison."""

    words: int
    step: int
    max_windows: int


CURRENT_PRESET = WindowPreset(words=18, step=11, max_windows=140)
SOURCE_PRESET = WindowPreset(words=22, step=12, max_windows=180)


def word_count(text: str) -> int:
    return len(text.split())


def build_windows(
    text: str,
    window_words: int,
    step_words: int,
    max_windows: int,
    tokenize: Callable[[str], Sequence[str]],
    *,
    min_chunk_words: int = MIN_CHUNK_WORDS,
) -> List[TextWindow]:
    """Slide a ``window_words`` window over ``text`` advancing ``step_words``.

    Windows shorter than ``min_chunk_words`` words, or whose token list has
    fewer than ``min_chunk_words - 2`` entries, are discarded. At most
    ``max_windows`` windows are returned.
    """

    words = text.split()
    if len(words) < min_chunk_words:
        return []

    step = max(1, step_words)
    windows: List[TextWindow] = []
    for start in range(0, len(words), step):
        if len(windows) >= max_windows:
            break
        chunk = words[start : start + window_words]
        if len(chunk) < min_chunk_words:
            continue
        chunk_text = " ".join(chunk)
        tokens = tuple(tokenize(chunk_text))
        if len(tokens) < min_chunk_words - 2:
            continue
        windows.append(TextWindow(text=chunk_text, tokens=tokens))
    return windows


def build_preset_windows(
    text: str,
    preset: WindowPreset,
    tokenize: Callable[[str], Sequence[str]],
    *,
    min_chunk_words: int = MIN_CHUNK_WORDS,
) -> List[TextWindow]:
    return build_windows(
        text,
        preset.words,
        preset.step,
        preset.max_windows,
        tokenize,
        min_chunk_words=min_chunk_words,
    )
