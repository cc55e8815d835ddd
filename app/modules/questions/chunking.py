"""Split oversized documents into independent generation requests."""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class Chunk:
    index: int  # 1-based
    total: int
    text: str

    @property
    def is_partial(self) -> bool:
        return self.total > 1


@dataclass(frozen=True)
class ChunkPlan:
    chunks: tuple[Chunk, ...]

    @property
    def total(self) -> int:
        return len(self.chunks)

    @property
    def is_chunked(self) -> bool:
        return self.total > 1

    def __iter__(self):
        return iter(self.chunks)

    def __len__(self) -> int:
        return len(self.chunks)


def _single(text: str) -> ChunkPlan:
    return ChunkPlan(chunks=(Chunk(index=1, total=1, text=text),))


def plan_chunks(text: str, threshold: int, chunk_size: int) -> ChunkPlan:
    """Plan how ``text`` is sent to the model.

    Text no longer than ``threshold`` characters goes out whole. Longer text is
    cut into consecutive, non-overlapping, near-equal slices of at most
    ``chunk_size`` characters. Non-positive sizes disable chunking.
    """
    if not isinstance(threshold, int) or threshold <= 0:
        return _single(text)
    if not isinstance(chunk_size, int) or chunk_size <= 0:
        return _single(text)
    if len(text) <= threshold:
        return _single(text)

    total = math.ceil(len(text) / chunk_size)
    # The first ``extra`` slices carry one more character than the rest
    base, extra = divmod(len(text), total)
    pieces = []
    start = 0
    for n in range(total):
        end = start + base + (1 if n < extra else 0)
        pieces.append(text[start:end])
        start = end
    return ChunkPlan(
        chunks=tuple(
            Chunk(index=n, total=len(pieces), text=piece)
            for n, piece in enumerate(pieces, start=1)
        )
    )
