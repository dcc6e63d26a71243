"""SubseqHash seeding: one optimal subsequence per window of length n."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

from .util import ALPHABET_SIZE, PathLike, Seed, alphabet_index, rev_comp_kmer

INF = 1e15
MAXK = 64
MAXD = 31


@dataclass(slots=True)
class _Cell:
    f_max: float
    f_min: float
    g_max: int
    g_min: int


def _tokens(path: PathLike) -> Iterator[str]:
    text = Path(path).read_text()
    return iter(text.replace(",", " ").split())


def _take(tokens: Iterator[str], convert):
    try:
        return convert(next(tokens))
    except StopIteration:
        raise ValueError("hash table file ends early") from None


class SubseqHash1Seeding:
    """Pick, for every window, the length-k subsequence of extreme hash value."""

    def __init__(self, n: int, k: int, d: int, table_filename: PathLike | None = None) -> None:
        if not 1 <= k <= n:
            raise ValueError(f"need 1 <= k <= n, got n={n}, k={k}")
        if k > MAXK:
            raise ValueError(f"k may be at most {MAXK}")
        if not 1 <= d <= MAXD:
            raise ValueError(f"d must lie in 1..{MAXD}")
        self.n = n
        self.k = k
        self.d = d
        self._weights: list[list[list[float]]] | None = None
        self._flips: list[list[list[int]]] = []
        self._signs: list[list[list[int]]] = []
        self._shifts: list[list[int]] = []
        if table_filename is not None:
            self.load_table(table_filename)

    def load_table(self, table_filename: PathLike) -> None:
        """Read the A, B and C tables from a whitespace-separated file."""
        k, d = self.k, self.d
        tokens = _tokens(table_filename)
        weights = [
            [[_take(tokens, float) for _ in range(d)] for _ in range(ALPHABET_SIZE)]
            for _ in range(k)
        ]
        pairs = [
            [[(_take(tokens, int), _take(tokens, int)) for _ in range(d)] for _ in range(ALPHABET_SIZE)]
            for _ in range(k)
        ]
        shifts = [[_take(tokens, int) for _ in range(ALPHABET_SIZE)] for _ in range(k)]
        if any(not 0 <= c < d for row in shifts for c in row):
            raise ValueError(f"C table values must lie in 0..{d - 1}")
        self._weights = weights
        self._flips = [[[b1 for b1, _ in cell] for cell in row] for row in pairs]
        self._signs = [[[b2 for _, b2 in cell] for cell in row] for row in pairs]
        self._shifts = shifts

    def get_seeds(self, seq: str) -> list[Seed]:
        """Return one seed per N-free window, merging redundant neighbours."""
        if self._weights is None:
            raise RuntimeError("no hash table loaded")
        n = self.n
        seeds: list[Seed] = []
        st = 0
        while st + n <= len(seq):
            last_gap = seq.rfind("N", st, st + n)
            if last_gap >= 0:
                st = last_gap + 1
                continue
            seed = self._window_seed(seq, st)
            st += 1
            if seeds and seed.hashval == seeds[-1].hashval:
                last = seeds[-1]
                if seed.st <= last.st and seed.ed >= last.ed:
                    continue
                if seed.st >= last.st and seed.ed <= last.ed:
                    last.st = seed.st
                    last.index = seed.index
                    continue
            seeds.append(seed)
        return seeds

    def _window_seed(self, seq: str, st: int) -> Seed:
        n, k, d = self.n, self.k, self.d
        weights, flips, signs, shifts = self._weights, self._flips, self._signs, self._shifts
        slack = n - k

        cells: dict[tuple[int, int, int], _Cell] = {
            (i, 0, 0): _Cell(0.0, 0.0, 0, 0) for i in range(n + 1)
        }
        first = alphabet_index(seq[st])
        mod = shifts[0][first]
        value = signs[0][first][mod] * weights[0][first][mod]
        cells[(1, 1, mod)] = _Cell(value, value, 0, 0)

        for i in range(2, n + 1):
            now = alphabet_index(seq[st + i - 1])
            for j in range(max(1, i - slack), min(i, k) + 1):
                shift = shifts[j - 1][now]
                row_w, row_flip, row_sign = weights[j - 1][now], flips[j - 1][now], signs[j - 1][now]
                for q in range(d):
                    z = (q + shift) % d
                    cell = _Cell(-INF, INF, 0, 0)
                    reached = False

                    skip = cells.get((i - 1, j, z))
                    if skip is not None:
                        if skip.f_min < cell.f_min:
                            cell.f_min, cell.g_min = skip.f_min, skip.g_min
                        if skip.f_max > cell.f_max:
                            cell.f_max, cell.g_max = skip.f_max, skip.g_max
                        reached = True

                    take = cells.get((i - 1, j - 1, q))
                    if take is not None:
                        if row_flip[z] == -1:
                            low, high = -take.f_max, -take.f_min
                        else:
                            low, high = take.f_min, take.f_max
                        offset = -row_w[z] if row_sign[z] == -1 else row_w[z]
                        low += offset
                        high += offset
                        if high > cell.f_max:
                            cell.f_max, cell.g_max = high, i - 1
                        if low < cell.f_min:
                            cell.f_min, cell.g_min = low, i - 1
                        reached = True

                    if reached:
                        cells[(i, j, z)] = cell

        for mod in range(d):
            best = cells.get((n, k, mod))
            if best is not None:
                break
        else:
            raise RuntimeError("window has no subsequence of length k")

        chosen = best.f_min if abs(best.f_min) > best.f_max else best.f_max
        hashval = int(chosen * 32768)

        kmer = 0
        positions: list[int] = []
        use_max = hashval >= 0
        x, y = n, k
        while y > 0:
            cell = cells[(x, y, mod)]
            g = cell.g_max if use_max else cell.g_min
            pos = st + g
            code = alphabet_index(seq[pos])
            positions.append(pos)
            kmer = (kmer << 2) | code
            if flips[y - 1][code][mod] == -1:
                use_max = not use_max
            x = g
            y -= 1
            mod = (mod + d - shifts[y][code]) % d

        start = positions[-1]
        index = 0
        for pos in positions:
            index |= 1 << (pos - start)
        return Seed(
            hashval=hashval,
            kmer=kmer,
            kmer_rc=rev_comp_kmer(kmer, k),
            st=start,
            ed=positions[0],
            index=index,
        )