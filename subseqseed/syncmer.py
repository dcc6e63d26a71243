"""Open syncmer seeding with a murmur-style s-mer hash."""

from __future__ import annotations

from collections import deque
from pathlib import Path

from .util import PathLike, Seed, alphabet_index, rev_comp, save_seeds

_MASK64 = (1 << 64) - 1


def murmur64(key: int) -> int:
    """64-bit finaliser hash of (key truncated to 64 bits) + 1."""
    h = ((key & _MASK64) + 1) & _MASK64
    h ^= h >> 33
    h = (h * 0xFF51AFD7ED558CCD) & _MASK64
    h ^= h >> 33
    h = (h * 0xC4CEB9FE1A85EC53) & _MASK64
    h ^= h >> 33
    return h


class SyncmerSeeding:
    """Select k-mers whose smallest s-mer sits at one of the chosen offsets."""

    def __init__(self, k: int, s: int) -> None:
        if not 1 <= s <= k:
            raise ValueError(f"need 1 <= s <= k, got k={k}, s={s}")
        self.k = k
        self.s = s
        self.positions: list[int] = []

    def add(self, p: int) -> None:
        """Accept k-mers whose minimal s-mer starts at offset p."""
        self.positions.append(p)

    def get_syncmers(self, seq: str) -> list[Seed]:
        """Return the syncmer seeds of seq in order of position."""
        k, s = self.k, self.s
        mask = (1 << (2 * s)) - 1
        mask_k = (1 << (2 * k)) - 1
        minima: deque[tuple[int, int]] = deque()
        seeds: list[Seed] = []
        now = now_k = 0
        run = 0

        for i, c in enumerate(seq):
            if c == "N":
                run = 0
                now = 0
                continue
            code = alphabet_index(c)
            now = ((now << 2) | code) & mask
            now_k = ((now_k << 2) | code) & mask_k
            run += 1

            if run >= s:
                value = murmur64(now)
                while minima and value <= minima[-1][0]:
                    minima.pop()
                minima.append((value, i - s + 1))

            if run >= k:
                start = i - k + 1
                while minima and minima[0][1] < start:
                    minima.popleft()
                offset = minima[0][1] - start
                seeds.extend(
                    Seed(hashval=now_k, kmer=now_k, st=start, ed=i)
                    for p in self.positions
                    if p == offset
                )
        return seeds

    def get_seeds(self, seq: str, s_idx: int, output_dir: PathLike) -> float:
        """Write seeds of seq and of its reverse complement; return their density.

        Files are named 0-<s_idx>.syncmerseed and 1-<s_idx>.syncmerseed.
        """
        if not seq:
            raise ValueError("empty sequence")
        out = Path(output_dir)
        forward = self.get_syncmers(seq)
        save_seeds(out / f"0-{s_idx}.syncmerseed", self.k, forward)
        backward = self.get_syncmers(rev_comp(seq))
        save_seeds(out / f"1-{s_idx}.syncmerseed", self.k, backward)
        return (len(forward) + len(backward)) / (2 * len(seq))