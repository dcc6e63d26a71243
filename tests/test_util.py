import pytest

from subseqseed.util import (
    ALPHABET,
    Seed,
    alphabet_index,
    build_index,
    decode,
    encode,
    index_get,
    kmer_hash,
    load_seeds,
    load_seeds_str,
    load_seeds_unordered,
    rev_comp,
    rev_comp_kmer,
    save_seeds,
    save_seeds_position,
    save_seeds_str_position,
)


def test_alphabet_index_follows_alphabet():
    assert [alphabet_index(c) for c in ALPHABET] == [0, 1, 2, 3]


def test_unknown_base_maps_like_a():
    assert alphabet_index("N") == alphabet_index("A")


def test_encode_packs_two_bits_per_base():
    assert encode("ACGT", 4) == 0b00011011


@pytest.mark.parametrize("s", ["A", "ACGT", "TTTTGCA", "GATTACAGATTACA"])
def test_decode_inverts_encode(s):
    assert decode(encode(s, len(s)), len(s)) == s


def test_encode_uses_only_first_k():
    assert encode("ACGTTT", 3) == encode("ACG", 3)


@pytest.mark.parametrize("s", ["ACGT", "AAAC", "GGCATTA"])
def test_rev_comp_kmer_matches_string(s):
    k = len(s)
    assert rev_comp_kmer(encode(s, k), k) == encode(rev_comp(s), k)


@pytest.mark.parametrize("s", ["ACGTTGCA", "GATTACA", "C"])
def test_rev_comp_is_involution(s):
    assert rev_comp(rev_comp(s)) == s
    assert len(rev_comp(s)) == len(s)


def test_kmer_hash_uses_high_half():
    assert kmer_hash(7 << 64) == 7


def test_kmer_hash_fits_64_bits():
    assert 0 <= kmer_hash((1 << 128) - 1) < (1 << 64)


def test_index_build_and_get():
    indexed = [Seed(hashval=1, st=0), Seed(hashval=2, st=5), Seed(hashval=1, st=9)]
    table = build_index(indexed)
    assert [s.st for s in table[1]] == [0, 9]
    query = [Seed(hashval=1, st=100), Seed(hashval=3, st=200)]
    matches = index_get(table, query)
    assert [(m.s1.st, m.s2.st) for m in matches] == [(0, 100), (9, 100)]


def test_save_seeds_writes_canonical_kmer(tmp_path):
    k = 4
    forward = encode("TTGC", k)
    path = tmp_path / "seeds.bin"
    save_seeds(path, k, [Seed(kmer=forward, st=3, index=0b1111)])
    assert path.stat().st_size == 4 + 32
    found = load_seeds_unordered(path, 0, {})
    assert list(found) == [min(forward, rev_comp_kmer(forward, k))]


def test_load_seeds_unordered_lists_read_once(tmp_path):
    k = 3
    path = tmp_path / "seeds.bin"
    seeds = [Seed(kmer=encode("AAC", k)), Seed(kmer=encode("AAC", k))]
    save_seeds(path, k, seeds)
    table = {}
    load_seeds_unordered(path, 1, table)
    load_seeds_unordered(path, 1, table)
    load_seeds_unordered(path, 2, table)
    assert table == {encode("AAC", k): [1, 2]}


def test_position_round_trip(tmp_path):
    path = tmp_path / "pos.bin"
    seeds = [Seed(hashval=-5, st=10, index=0b101), Seed(hashval=42, st=0, index=1)]
    save_seeds_position(path, seeds)
    assert path.stat().st_size == 24 * len(seeds)
    loaded = load_seeds(path)
    assert [(s.hashval, s.st, s.index) for s in loaded] == [(-5, 10, 0b101), (42, 0, 1)]
    assert [s.ed for s in loaded] == [12, 0]


def test_str_position_round_trip(tmp_path):
    k = 5
    path = tmp_path / "str.bin"
    kmer = encode("GATTA", k)
    save_seeds_str_position(path, [Seed(hashval=-1, kmer=kmer, st=7, index=0b10011)])
    assert path.stat().st_size == 40
    (loaded,) = load_seeds_str(path, k)
    assert loaded.kmer == kmer
    assert loaded.kmer_rc == rev_comp_kmer(kmer, k)
    assert (loaded.hashval, loaded.st, loaded.index, loaded.ed) == (-1, 7, 0b10011, 11)


def test_load_seeds_ignores_truncated_record(tmp_path):
    path = tmp_path / "pos.bin"
    save_seeds_position(path, [Seed(hashval=3, st=1, index=1)])
    with open(path, "ab") as out:
        out.write(b"\x00" * 10)
    assert [s.hashval for s in load_seeds(path)] == [3]