"""Strobemer-style seeding: a short k-mer prefix followed by SubseqHash2
subsequences taken from consecutive windows."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path
from typing import BinaryIO

from .subseqhash2 import INF, SubseqHash2Seeding, _Best, _cell
from .util import PathLike, Seed, alphabet_index, encode, kmer_hash, rev_comp, save_seeds

_MASK64 = (1 << 64) - 1
_MASK128 = (1 << 128) - 1


def _signed64(value: int) -> int:
    value &= _MASK64
    return value - (1 << 64) if value >= 1 << 63 else value


class Subseq2StrobeSeeding(SubseqHash2Seeding):
    """Seeds made of prek leading nucleotides and w SubseqHash2 subsequences
    from w consecutive windows of length n."""

    def __init__(
        self,
        n: int,
        k: int,
        d: int,
        subsample: int,
        w: int,
        prek: int,
        table_filename: PathLike | None = None,
    ) -> None:
        super().__init__(n, k, d, subsample)
        if w < 1:
            raise ValueError("w must be positive")
        if prek < 0:
            raise ValueError("prek must not be negative")
        if 2 * n + k - 2 >= self.chunk_size - 1:
            raise ValueError(f"2n + k - 2 must be below {self.chunk_size - 1}")
        self.w = w
        self.prek = prek
        if table_filename is not None:
            self.load_table(table_filename)

    def num_per_window(self) -> int:
        """Number of seeds produced per window."""
        return super().num_per_window()

    def load_table(self, table_filename: PathLike) -> None:
        """Read all hash tables and the order of middle ranks from a file."""
        super().load_table(table_filename)

    def get_subseq2_seeds(self, seq: str) -> list[list[Seed]]:
        """Return one list of strobe seeds per selected middle rank."""
        return super().get_subseq2_seeds(seq)

    def write_subseq2_seeds(self, seq: str, outputs: Sequence[BinaryIO]) -> None:
        """Stream strobe seeds chunk by chunk to one binary stream per rank, then close them."""
        super().write_subseq2_seeds(seq, outputs)

    def get_seeds(self, seq: str, s_idx: int, output_dir: PathLike) -> float:
        """Write seeds of seq and its reverse complement and return their density.

        Rank r of seq goes to <2r>-<s_idx>.ss2sseed, of the reverse complement
        to <2r+1>-<s_idx>.ss2sseed.
        """
        if not seq:
            raise ValueError("empty sequence")
        out = Path(output_dir)
        seed_len = self.prek + self.k
        total = 0
        for strand, strand_seq in enumerate((seq, rev_comp(seq))):
            for rank, group in enumerate(self.get_subseq2_seeds(strand_seq)):
                save_seeds(out / f"{(rank << 1) + strand}-{s_idx}.ss2sseed", seed_len, group)
                total += len(group)
        return total / (len(seq) * self.num_valid * 2)

    def _chunks(self, seq: str):
        length = len(seq)
        st = en = 0
        while en < length - 1:
            en = min(st + self.chunk_size - 1, length - 1)
            yield st, en
            st = en - 2 * self.n - self.k + 2

    def _combine(self, seq, start, length, fwd, rev, seeds) -> None:
        n, k = self.n, self.k
        valid = self._valid
        parts: list[list[Seed]] = [[] for _ in range(self.num_valid)]

        for st in range(length - n + 1):
            real = start + st
            if "N" in seq[real:real + n]:
                for j in range(k):
                    if valid[j]:
                        parts[valid[j] - 1].append(Seed())
                continue
            best = self._choose(seq, real, st, fwd, rev)
            for j, b in enumerate(best):
                if not valid[j]:
                    continue
                if b.pos == -1:
                    parts[valid[j] - 1].append(Seed())
                else:
                    parts[valid[j] - 1].append(self._part(seq, real, st, j, b, fwd, rev))

        self._assemble(seq, start, length, parts, seeds)

    def _choose(self, seq, real, st, fwd, rev) -> list[_Best]:
        n, k, d = self.n, self.k, self.d
        slack = n - k
        valid = self._valid
        c3, a3, comb1, comb2, comb3 = self._c3, self._a3, self._combine1, self._combine2, self._combine3

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
        return best

    def _part(self, seq, real, st, j, b: _Best, fwd, rev) -> Seed:
        n, k, d = self.n, self.k, self.d
        mid = real + b.pos
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

        last = right[0] if right else left[k - 1]
        index = 0
        for pos in left:
            index |= 1 << (pos - real)
        for pos in reversed(right):
            index |= 1 << (pos - real)
            kmer = (kmer << 2) | alphabet_index(seq[pos])

        return Seed(hashval=b.score, psi=b.psi, kmer=kmer, st=real, ed=last, index=index & _MASK64)

    def _assemble(self, seq, start, length, parts, seeds) -> None:
        n, k, w, prek = self.n, self.k, self.w, self.prek
        valid = self._valid
        span = w * n + prek

        st = 0
        while st + span <= length:
            real = start + st
            gap = seq.rfind("N", real, real + span)
            if gap >= 0:
                st = gap - start + 1
                continue
            for j in range(k):
                if not valid[j]:
                    continue
                num = valid[j] - 1
                pieces = [parts[num][st + prek + window * n] for window in range(w)]
                if pieces[0].hashval == 0:
                    continue
                if w == 2 and pieces[1].hashval == 0:
                    continue

                index = (1 << prek) - 1
                for window, piece in enumerate(pieces):
                    index |= piece.index << (prek + window * n)

                enc = encode(seq[real:real + prek], prek)
                for piece in pieces:
                    enc = ((enc << (2 * k)) + piece.kmer) & _MASK128

                seeds[num].append(
                    Seed(
                        hashval=_signed64(kmer_hash(enc)),
                        psi=pieces[0].psi,
                        kmer=enc,
                        st=real,
                        ed=pieces[-1].ed,
                        index=index & _MASK64,
                    )
                )
            st += 1