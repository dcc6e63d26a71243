"""Nucleotide k-mer encoding, seed records and the binary seed file formats."""

from __future__ import annotations

import os
import struct
from collections import defaultdict
from collections.abc import Iterable, Iterator, MutableMapping, Sequence
from dataclasses import dataclass
from typing import BinaryIO, Union

PathLike = Union[str, "os.PathLike[str]"]

ALPHABET = "ACGT"
ALPHABET_SIZE = 4

_MASK64 = (1 << 64) - 1
_MASK128 = (1 << 128) - 1

_INT = struct.Struct("<i")
_I64 = struct.Struct("<q")
_KMER = struct.Struct("<QQ")
_POS = struct.Struct("<QQ")


@dataclass
class Seed:
    """A seed: a hash value, the subsequence it stands for and where it lies."""

    hashval: int = 0
    psi: int = 0
    kmer: int = 0
    kmer_rc: int = 0
    st: int = 0
    ed: int = 0
    index: int = 0


@dataclass
class SeedMatch:
    """Two seeds that share a hash value."""

    s1: Seed
    s2: Seed


def alphabet_index(c: str) -> int:
    """Map a nucleotide character to 0..3 (A, C, G, T); other letters map too."""
    code = ord(c)
    return 3 & ((code >> 2) ^ (code >> 1))


def encode(s: str, k: int) -> int:
    """Pack the first k characters of s into an integer, two bits each."""
    enc = 0
    for c in s[:k]:
        enc = ((enc << 2) | alphabet_index(c)) & _MASK128
    return enc


def decode(enc: int, k: int) -> str:
    """Unpack a k-mer integer into its string form."""
    return "".join(ALPHABET[(enc >> (2 * shift)) & 3] for shift in reversed(range(k)))


def rev_comp_kmer(s: int, k: int) -> int:
    """Reverse complement of an encoded k-mer."""
    r = 0
    for _ in range(k):
        r = (r << 2) | ((s & 3) ^ 3)
        s >>= 2
    return r & _MASK128


def rev_comp(s: str) -> str:
    """Reverse complement of a nucleotide string."""
    return "".join(ALPHABET[ALPHABET_SIZE - alphabet_index(c) - 1] for c in reversed(s))


def kmer_hash(x: int) -> int:
    """Hash a 128-bit k-mer to 64 bits by folding its two halves."""
    high = (x >> 64) & _MASK64
    low = x & _MASK64
    return (high ^ (low << 1)) & _MASK64


def build_index(seeds: Iterable[Seed]) -> dict[int, list[Seed]]:
    """Group seeds by hash value."""
    table: defaultdict[int, list[Seed]] = defaultdict(list)
    for seed in seeds:
        table[seed.hashval].append(seed)
    return dict(table)


def index_get(index: dict[int, list[Seed]], seeds: Iterable[Seed]) -> list[SeedMatch]:
    """Pair every seed with each indexed seed of the same hash value."""
    return [
        SeedMatch(indexed, seed)
        for seed in seeds
        for indexed in index.get(seed.hashval, ())
    ]


def _pack_kmer(value: int) -> bytes:
    value &= _MASK128
    return _KMER.pack(value & _MASK64, value >> 64)


def _unpack_kmer(raw: bytes) -> int:
    low, high = _KMER.unpack(raw)
    return (high << 64) | low


def _pack_pos(seed: Seed) -> bytes:
    return _POS.pack(seed.st & _MASK64, seed.index & _MASK64)


def _records(src: BinaryIO, size: int) -> Iterator[bytes]:
    while True:
        raw = src.read(size)
        if len(raw) < size:
            return
        yield raw


def _end_of(st: int, index: int) -> int:
    return (st + index.bit_length() - 1) & _MASK64


def save_seeds(filename: PathLike, k: int, seeds: Sequence[Seed]) -> None:
    """Write k, then the canonical k-mer, start and index mask of each seed."""
    with open(filename, "wb") as out:
        out.write(_INT.pack(k))
        for seed in seeds:
            out.write(_pack_kmer(min(seed.kmer, rev_comp_kmer(seed.kmer, k))))
            out.write(_pack_pos(seed))


def load_seeds_unordered(
    filename: PathLike,
    read_id: int,
    all_seeds: MutableMapping[int, list[int]],
) -> MutableMapping[int, list[int]]:
    """Record read_id under every k-mer in a file written by save_seeds.

    A read is listed at most once per k-mer; the mapping is updated in place
    and returned.
    """
    with open(filename, "rb") as src:
        src.read(_INT.size)
        for raw in _records(src, _KMER.size):
            src.seek(_POS.size, os.SEEK_CUR)
            kmer = _unpack_kmer(raw)
            reads = all_seeds.get(kmer)
            if reads is None:
                all_seeds[kmer] = [read_id]
            elif reads[-1] < read_id:
                reads.append(read_id)
    return all_seeds


def save_seeds_position(filename: PathLike, seeds: Sequence[Seed]) -> None:
    """Write the hash value, start and index mask of each seed."""
    with open(filename, "wb") as out:
        for seed in seeds:
            out.write(_I64.pack(seed.hashval))
            out.write(_pack_pos(seed))


def save_seeds_str_position(filename: PathLike, seeds: Sequence[Seed]) -> None:
    """Write the hash value, k-mer, start and index mask of each seed."""
    with open(filename, "wb") as out:
        for seed in seeds:
            out.write(_I64.pack(seed.hashval))
            out.write(_pack_kmer(seed.kmer))
            out.write(_pack_pos(seed))


def load_seeds(filename: PathLike) -> list[Seed]:
    """Read seeds written by save_seeds_position."""
    record = struct.Struct("<qQQ")
    seeds = []
    with open(filename, "rb") as src:
        for raw in _records(src, record.size):
            hashval, st, index = record.unpack(raw)
            seeds.append(Seed(hashval=hashval, st=st, ed=_end_of(st, index), index=index))
    return seeds


def load_seeds_str(filename: PathLike, k: int) -> list[Seed]:
    """Read seeds written by save_seeds_str_position."""
    record = struct.Struct("<q16sQQ")
    seeds = []
    with open(filename, "rb") as src:
        for raw in _records(src, record.size):
            hashval, kmer_raw, st, index = record.unpack(raw)
            kmer = _unpack_kmer(kmer_raw)
            seeds.append(
                Seed(
                    hashval=hashval,
                    kmer=kmer,
                    kmer_rc=rev_comp_kmer(kmer, k),
                    st=st,
                    ed=_end_of(st, index),
                    index=index,
                )
            )
    return seeds