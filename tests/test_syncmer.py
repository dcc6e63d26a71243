import random

import pytest

from subseqseed.syncmer import SyncmerSeeding, murmur64
from subseqseed.util import encode, load_seeds_unordered, rev_comp, rev_comp_kmer


def random_seq(length, seed=1):
    rng = random.Random(seed)
    return "".join(rng.choice("ACGT") for _ in range(length))


def all_offsets(k, s):
    seeding = SyncmerSeeding(k, s)
    for p in range(k - s + 1):
        seeding.add(p)
    return seeding


def test_murmur64_truncates_key_to_64_bits():
    assert murmur64(12345 + (1 << 64)) == murmur64(12345)
    assert 0 <= murmur64(987654321) < (1 << 64)


def test_murmur64_is_deterministic_and_spreads():
    values = {murmur64(x) for x in range(200)}
    assert len(values) == 200


def test_invalid_s_rejected():
    with pytest.raises(ValueError):
        SyncmerSeeding(4, 5)


def test_no_positions_gives_no_seeds():
    assert SyncmerSeeding(5, 2).get_syncmers(random_seq(50)) == []


def test_every_window_selected_with_all_offsets():
    seq = random_seq(80)
    seeds = all_offsets(6, 3).get_syncmers(seq)
    assert len(seeds) == len(seq) - 6 + 1
    assert [s.st for s in seeds] == list(range(len(seq) - 6 + 1))


def test_seed_holds_window_kmer():
    k = 5
    seq = random_seq(60, seed=7)
    seeding = SyncmerSeeding(k, 2)
    seeding.add(0)
    seeding.add(3)
    for seed in seeding.get_syncmers(seq):
        assert seed.ed - seed.st + 1 == k
        assert seed.hashval == encode(seq[seed.st : seed.ed + 1], k)


def test_offsets_partition_windows():
    k, s = 7, 3
    seq = random_seq(100, seed=3)
    total = len(all_offsets(k, s).get_syncmers(seq))
    parts = 0
    for p in range(k - s + 1):
        seeding = SyncmerSeeding(k, s)
        seeding.add(p)
        parts += len(seeding.get_syncmers(seq))
    assert parts == total


def test_windows_with_n_are_skipped():
    k = 4
    seq = "ACGTACGTNNACGTACGTACN" + random_seq(20, seed=9)
    seeds = all_offsets(k, 2).get_syncmers(seq)
    clean = sum(1 for i in range(len(seq) - k + 1) if "N" not in seq[i : i + k])
    assert len(seeds) == clean
    assert all("N" not in seq[s.st : s.ed + 1] for s in seeds)


def test_get_seeds_writes_both_strands(tmp_path):
    k = 5
    seq = random_seq(40, seed=11)
    seeding = SyncmerSeeding(k, 2)
    seeding.add(0)
    density = seeding.get_seeds(seq, 3, tmp_path)

    forward = seeding.get_syncmers(seq)
    backward = seeding.get_syncmers(rev_comp(seq))
    assert density == pytest.approx((len(forward) + len(backward)) / (2 * len(seq)))
    assert (tmp_path / "0-3.syncmerseed").stat().st_size == 4 + 32 * len(forward)
    assert (tmp_path / "1-3.syncmerseed").stat().st_size == 4 + 32 * len(backward)

    table = load_seeds_unordered(tmp_path / "0-3.syncmerseed", 3, {})
    assert set(table) == {min(s.kmer, rev_comp_kmer(s.kmer, k)) for s in forward}


def test_get_seeds_rejects_empty(tmp_path):
    with pytest.raises(ValueError):
        SyncmerSeeding(3, 2).get_seeds("", 0, tmp_path)