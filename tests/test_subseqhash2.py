import io
import random

import pytest

from subseqseed.subseqhash2 import SubseqHash2Seeding
from subseqseed.util import encode

N, K, D = 6, 3, 3


def _write_table(path, k=K, d=D, seed=7):
    rng = random.Random(seed)
    parts = []

    def cube():
        parts.extend(str(rng.randint(-1000, 1000)) for _ in range(k * 4 * d))

    def pairs(count):
        parts.extend(f"{rng.choice((-1, 1))},{rng.choice((-1, 1))}" for _ in range(count))

    def square(lo, hi):
        parts.extend(str(rng.randint(lo, hi)) for _ in range(k * 4))

    cube()
    pairs(k * 4 * d)
    square(0, d - 1)
    cube()
    pairs(k * 4 * d)
    square(0, d - 1)
    pairs(k * 4)
    square(-500, 500)
    parts.extend(str(rng.choice((-1, 1))) for _ in range(k * 4))
    square(0, d - 1)
    order = list(range(k))
    rng.shuffle(order)
    parts.extend(map(str, order))
    path.write_text(" ".join(parts))
    return path


@pytest.fixture
def table(tmp_path):
    return _write_table(tmp_path / "table.txt")


def _seq(length, seed=1):
    rng = random.Random(seed)
    return "".join(rng.choice("ACGT") for _ in range(length))


def _check_seed(seq, s):
    positions = [s.st + b for b in range(s.index.bit_length()) if (s.index >> b) & 1]
    assert len(positions) == K
    assert positions[0] == s.st and positions[-1] == s.ed
    assert s.ed - s.st < N
    assert s.kmer == encode("".join(seq[p] for p in positions), K)


def test_seed_invariants(table):
    seq = _seq(80)
    seeding = SubseqHash2Seeding(N, K, D, 2, table)
    groups = seeding.get_subseq2_seeds(seq)
    assert len(groups) == 2
    assert all(groups)
    for group in groups:
        for s in group:
            _check_seed(seq, s)
            assert 0 <= s.psi <= D


def test_chunking_long_sequence(table):
    seq = _seq(1100, seed=3)
    seeding = SubseqHash2Seeding(N, K, D, 1, table)
    groups = seeding.get_subseq2_seeds(seq)
    assert max(s.ed for s in groups[0]) > 1000
    for s in groups[0]:
        _check_seed(seq, s)


def test_deterministic(table):
    seq = _seq(60, seed=5)
    a = SubseqHash2Seeding(N, K, D, 3, table).get_subseq2_seeds(seq)
    b = SubseqHash2Seeding(N, K, D, 3, table).get_subseq2_seeds(seq)
    assert a == b


def test_seeds_avoid_n(table):
    seq = _seq(30, seed=2) + "N" + _seq(30, seed=4)
    groups = SubseqHash2Seeding(N, K, D, 2, table).get_subseq2_seeds(seq)
    for group in groups:
        for s in group:
            assert "N" not in seq[s.st : s.ed + 1]


def test_threshold_filters_everything(table):
    groups = SubseqHash2Seeding(N, K, D, 2, table, threshold=1 << 62).get_subseq2_seeds(_seq(40))
    assert groups == [[], []]


def test_get_seeds_files_and_density(table, tmp_path):
    seq = _seq(50)
    seeding = SubseqHash2Seeding(N, K, D, 2, table)
    groups = seeding.get_subseq2_seeds(seq)
    density = seeding.get_seeds(seq, 9, tmp_path)
    total = sum(len(g) for g in groups)
    assert density == pytest.approx(total / (len(seq) * 2))
    for rank, group in enumerate(groups):
        data = (tmp_path / f"{rank}-9.subseqseed2").read_bytes()
        assert len(data) == 4 + 32 * len(group)
    assert seeding.num_per_window() == 2


def test_write_streams(table):
    seq = _seq(50)
    seeding = SubseqHash2Seeding(N, K, D, 2, table)
    groups = seeding.get_subseq2_seeds(seq)

    class Keep(io.BytesIO):
        def close(self):
            self.saved = self.getvalue()
            super().close()

    outs = [Keep(), Keep()]
    seeding.write_subseq2_seeds(seq, outs)
    for out, group in zip(outs, groups):
        assert out.closed
        assert len(out.saved) == 40 * len(group)


def test_errors(tmp_path):
    with pytest.raises(RuntimeError):
        SubseqHash2Seeding(N, K, D, 1).get_subseq2_seeds("ACGTACGT")
    short = tmp_path / "short.txt"
    short.write_text("1 2 3")
    with pytest.raises(ValueError):
        SubseqHash2Seeding(N, K, D, 1, short)
    with pytest.raises(ValueError):
        SubseqHash2Seeding(N, K, D, K + 1)
    with pytest.raises(ValueError):
        SubseqHash2Seeding(3, 4, D, 1)