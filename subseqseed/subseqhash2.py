"""SubseqHash2 seeding: several optimal subsequences per window, built from
a forward and a backward dynamic programme around a middle position."""

from __future__ import annotations

import struct
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from .util import ALPHABET_SIZE, PathLike, Seed, alphabet_index, save_seeds

INF = 1 << 62
INT64_MIN = -(1 << 63)
MAXK = 64
MAXD = 31

_MASK64 = (1 << 64) - 1
_RECORD = struct.Struct("<qQQQQ")


@dataclass(slots=True)
class _Cell:
    f_max: int
    f_min: int
    g_max: int
    g_min: int


@dataclass
class _Best:
    score: int
    pos: int
    mod: int
    psi: int


@dataclass
class _Tables:
    weights: list
    flips: list
    signs: list
    shifts: list


def _tokens(path: PathLike) -> Iterator[str]:
    return iter(Path(path).read_text().replace(",", " ").split())


def _take(tokens: Iterator[str]) -> int:
    try:
        return int(next(tokens))
    except StopIteration:
        raise ValueError("hash table file ends early") from None


def _cell(table: list[dict], idx: int, key: tuple[int, int, int]) -> _Cell | None:
    if 0 <= idx < len(table):
        return table[idx].get(key)
    return None


class SubseqHash2Seeding:
    """For every window of length n and every selected middle rank j, pick the
    length-k subsequence of best combined hash value."""

    chunk_size = 500

    def __init__(
        self,
        n: int,
        k: int,
        d: int,
        subsample: int,
        table_filename: PathLike | None = None,
        threshold: int = INT64_MIN,
    ) -> None:
        if not 2 <= k <= n:
            raise ValueError(f"need 2 <= k <= n, got n={n}, k={k}")
        if k > MAXK:
            raise ValueError(f"k may be at most {MAXK}")
        if n >= self.chunk_size:
            raise ValueError(f"n must be below {self.chunk_size}")
        if not 1 <= d <= MAXD:
            raise ValueError(f"d must lie in 1..{MAXD}")
        if not 1 <= subsample <= k:
            raise ValueError("subsample must lie in 1..k")
        self.n = n
        self.k = k
        self.d = d
        self.num_valid = subsample
        self.threshold = threshold
        self._loaded = False
        if table_filename is not None:
            self.load_table(table_filename)

    def num_per_window(self) -> int:
        """Number of seeds produced per window."""
        return self.num_valid

    def load_table(self, table_filename: PathLike) -> None:
        """Read all hash tables and the order of middle ranks from a file."""
        k, d = self.k, self.d
        tokens = _tokens(table_filename)

        def cube():
            return [[[_take(tokens) for _ in range(d)] for _ in range(ALPHABET_SIZE)] for _ in range(k)]

        def pair_cube():
            return [
                [[(_take(tokens), _take(tokens)) for _ in range(d)] for _ in range(ALPHABET_SIZE)]
                for _ in range(k)
            ]

        def square():
            return [[_take(tokens) for _ in range(ALPHABET_SIZE)] for _ in range(k)]

        def pair_square():
            return [[(_take(tokens), _take(tokens)) for _ in range(ALPHABET_SIZE)] for _ in range(k)]

        a = cube()
        b = pair_cube()
        c1 = square()
        rev_a = cube()
        rev_b = pair_cube()
        c2 = square()
        comb12 = pair_square()
        a3 = square()
        comb3 = square()
        c3 = square()
        order = [_take(tokens) for _ in range(k)]

        for table in (c1, c2, c3):
            if any(not 0 <= v < d for row in table for v in row):
                raise ValueError(f"C table values must lie in 0..{d - 1}")
        if any(not 0 <= x < k for x in order):
            raise ValueError(f"middle ranks must lie in 0..{k - 1}")

        def split(pairs, part):
            return [[[p[part] for p in cell] for cell in row] for row in pairs]

        self._fwd = _Tables(a, split(b, 0), split(b, 1), c1)
        self._rev = _Tables(rev_a, split(rev_b, 0), split(rev_b, 1), c2)
        self._combine1 = [[p[0] for p in row] for row in comb12]
        self._combine2 = [[p[1] for p in row] for row in comb12]
        self._a3 = a3
        self._combine3 = comb3
        self._c3 = c3
        valid = [0] * k
        for rank, x in enumerate(order):
            if rank < self.num_valid:
                valid[x] = rank + 1
        self._valid = valid
        self._loaded = True

    def _chunks(self, seq: str) -> Iterator[tuple[int, int]]:
        length = len(seq)
        st = en = 0
        while en < length - 1:
            en = min(st + self.chunk_size - 1, length - 1)
            yield st, en
            st = en - self.n + 2

    def get_subseq2_seeds(self, seq: str) -> list[list[Seed]]:
        """Return one list of seeds per selected middle rank."""
        if not self._loaded:
            raise RuntimeError("no hash table loaded")
        seeds: list[list[Seed]] = [[] for _ in range(self.num_valid)]
        for start, end in self._chunks(seq):
            self._process(seq, start, end, seeds)
        return seeds

    def write_subseq2_seeds(self, seq: str, outputs: Sequence[BinaryIO]) -> None:
        """Stream seeds chunk by chunk to one binary stream per rank, then close them.

        Each record holds the hash value, the 128-bit k-mer, start and index mask.
        """
        if not self._loaded:
            raise RuntimeError("no hash table loaded")
        if len(outputs) < self.num_valid:
            raise ValueError(f"need {self.num_valid} output streams")
        seeds: list[list[Seed]] = [[] for _ in range(self.num_valid)]
        try:
            for start, end in self._chunks(seq):
                self._process(seq, start, end, seeds)
                for out, group in zip(outputs, seeds):
                    for s in group:
                        out.write(
                            _RECORD.pack(
                                s.hashval,
                                s.kmer & _MASK64,
                                (s.kmer >> 64) & _MASK64,
                                s.st & _MASK64,
                                s.index & _MASK64,
                            )
                        )
                    group.clear()
        finally:
            for out in outputs[: self.num_valid]:
                out.close()

    def get_seeds(self, seq: str, s_idx: int, output_dir: PathLike) -> float:
        """Write <rank>-<s_idx>.subseqseed2 files and return the seed density."""
        if not seq:
            raise ValueError("empty sequence")
        seeds = self.get_subseq2_seeds(seq)
        out = Path(output_dir)
        total = 0
        for rank, group in enumerate(seeds):
            save_seeds(out / f"{rank}-{s_idx}.subseqseed2", self.k, group)
            total += len(group)
        return total / (len(seq) * self.num_valid)

    def _process(self, seq: str, start: int, end: int, seeds: list[list[Seed]]) -> None:
        length = end - start + 1
        n = self.n
        fwd = [self._dp(seq, start + st, min(n, length - st), 1, self._fwd) for st in range(length)]
        rev = [self._dp(seq, start + st, min(n, st + 1), -1, self._rev) for st in range(length)]
        self._combine(seq, start, length, fwd, rev, seeds)

    def _dp(self, seq: str, pos: int, span: int, step: int, t: _Tables) -> dict:
        k, d = self.k, self.d
        slack = self.n - k
        cells: dict[tuple[int, int, int], _Cell] = {
            (i, 0, 0): _Cell(0, 0, 0, 0) for i in range(span + 1)
        }
        if seq[pos] == "N":
            return cells
        first = alphabet_index(seq[pos])
        mod = t.shifts[0][first]
        value = t.signs[0][first][mod] * t.weights[0][first][mod]
        cells[(1, 1, mod)] = _Cell(value, value, 0, 0)

        for i in range(2, span + 1):
            ch = seq[pos + step * (i - 1)]
            if ch == "N":
                break
            now = alphabet_index(ch)
            for j in range(max(1, i - slack), min(i, k - 1) + 1):
                shift = t.shifts[j - 1][now]
                row_w, row_flip, row_sign = t.weights[j - 1][now], t.flips[j - 1][now], t.signs[j - 1][now]
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
        return cells

    def _combine(self, seq, start, length, fwd, rev, seeds) -> None:
        n, k, d = self.n, self.k, self.d
        slack = n - k
        valid = self._valid
        c3, a3, comb1, comb2, comb3 = self._c3, self._a3, self._combine1, self._combine2, self._combine3

        st = 0
        while st + n - 1 < length:
            real = start + st
            gap = seq.rfind("N", real, real + n)
            if gap >= 0:
                st = gap - start + 1
                continue

            best = [_Best(-INF, -1, 0, d) for _ in range(k)]
            for i in range(n):
                nt = alphabet_index(seq[real + i])

                if n - i >= k and valid[0]:
                    d3 = c3[0][nt]
                    found = self._first_valid(fwd, st + i + 1, n - i - 1, k - 1, (-d3) % d)
                    if found is not None:
                        d1, cell = found
                        v = comb3[0][nt] * a3[0][nt]
                        v += cell.f_max if comb1[0][nt] == 1 else -cell.f_min
                        psi = (d1 + d3) % d
                        b = best[0]
                        if (v > b.score and psi == b.psi) or psi < b.psi:
                            best[0] = _Best(v, i, d1, psi)

                if i >= k - 1 and valid[k - 1]:
                    d3 = c3[k - 1][nt]
                    found = self._first_valid(rev, st + i - 1, i, k - 1, (-d3) % d)
                    if found is not None:
                        d1, cell = found
                        v = comb3[k - 1][nt] * a3[k - 1][nt]
                        v += cell.f_max if comb2[k - 1][nt] == 1 else -cell.f_min
                        psi = (d1 + d3) % d
                        b = best[k - 1]
                        if (v > b.score and psi == b.psi) or psi < b.psi:
                            best[k - 1] = _Best(v, i, 0, psi)

                for j in range(max(1, i - slack), min(i, k - 2) + 1):
                    if not valid[j]:
                        continue
                    right = [_cell(fwd, st + i + 1, (n - i - 1, k - j - 1, q)) for q in range(d)]
                    left = [_cell(rev, st + i - 1, (i, j, q)) for q in range(d)]
                    left_mask = sum(1 << q for q in range(d) if left[q] is not None)
                    total = 0
                    for q in range(d):
                        if right[q] is not None:
                            total |= left_mask << q
                    d3 = c3[j][nt]
                    d1 = (d - d3) % d
                    target = 0
                    while target < d:
                        if (total >> d1) & 1 or (total >> (d1 + d)) & 1:
                            break
                        d1 = (d1 + 1) % d
                        target += 1
                    for q in range(d):
                        rc = right[q]
                        lc = left[(target - d3 - q + 2 * d) % d]
                        if rc is None or lc is None:
                            continue
                        v = comb3[j][nt] * a3[j][nt]
                        v += rc.f_max if comb1[j][nt] == 1 else -rc.f_min
                        v += lc.f_max if comb2[j][nt] == 1 else -lc.f_min
                        b = best[j]
                        if (v > b.score and target == b.psi) or target < b.psi:
                            best[j] = _Best(v, i, q, target)

            for j in range(k):
                b = best[j]
                if not valid[j] or b.pos == -1 or b.score < self.threshold:
                    continue
                self._emit(seq, start, st, j, b, fwd, rev, seeds[valid[j] - 1])
            st += 1

    def _first_valid(self, table, idx, length, count, mod):
        for step in range(self.d):
            z = (mod + step) % self.d
            cell = _cell(table, idx, (length, count, z))
            if cell is not None:
                return z, cell
        return None

    def _emit(self, seq, start, st, j, b: _Best, fwd, rev, group: list[Seed]) -> None:
        n, k, d = self.n, self.k, self.d
        mid = start + st + b.pos
        nt = alphabet_index(seq[mid])
        d1 = b.mod
        d3 = self._c3[j][nt]
        d2 = (b.psi + 2 * d - d1 - d3) % d

        kmer = 0
        left: list[int] = []
        use_max = self._combine2[j][nt] >= 0
        x, y = b.pos, j
        while y > 0:
            cell = rev[st + b.pos - 1][(x, y, d2)]
            g = cell.g_max if use_max else cell.g_min
            pos = mid - g - 1
            code = alphabet_index(seq[pos])
            left.append(pos)
            kmer = (kmer << 2) | code
            if self._rev.flips[y - 1][code][d2] == -1:
                use_max = not use_max
            d2 = (d2 + d - self._rev.shifts[y - 1][code]) % d
            x = g
            y -= 1

        left.append(mid)
        kmer = (kmer << 2) | nt

        right: list[int] = []
        if j < k - 1:
            use_max = self._combine1[j][nt] >= 0
            x, y = n - b.pos - 1, k - j - 1
            while y > 0:
                cell = fwd[st + b.pos + 1][(x, y, d1)]
                g = cell.g_max if use_max else cell.g_min
                pos = mid + g + 1
                code = alphabet_index(seq[pos])
                right.append(pos)
                if self._fwd.flips[y - 1][code][d1] == -1:
                    use_max = not use_max
                d1 = (d1 + d - self._fwd.shifts[y - 1][code]) % d
                x = g
                y -= 1

        first = left[0]
        last = right[0] if right else left[k - 1]
        index = 0
        for pos in left:
            index |= 1 << (pos - first)
        for pos in reversed(right):
            index |= 1 << (pos - first)
            kmer = (kmer << 2) | alphabet_index(seq[pos])

        if group and b.score == group[-1].hashval and b.psi == group[-1].psi:
            prev = group[-1]
            if first <= prev.st and last >= prev.ed:
                return
            if first >= prev.st and last <= prev.ed:
                prev.st = first
                prev.index = index
                return
        group.append(Seed(hashval=b.score, psi=b.psi, kmer=kmer, st=first, ed=last, index=index))