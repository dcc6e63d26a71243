# subseqseed

Seed extraction for DNA reads. Seeds are subsequences (or k-mers) picked
from fixed-length windows of a read so that similar reads share seeds even
when insertions and deletions separate them. Pure Python, no dependencies.

## Seeding schemes

- `subseqseed.subseqhash1.SubseqHash1Seeding(n, k, d, table_filename)`:
  for every window of length `n` without an `N`, the length-`k`
  subsequence of extreme hash value. `get_seeds(seq)` returns the list of
  `Seed` objects; neighbouring seeds with the same hash value whose spans
  contain one another are merged.
- `subseqseed.subseqhash2.SubseqHash2Seeding(n, k, d, subsample,
  table_filename, threshold)`: up to `subsample` seeds per window, one for
  each selected middle rank, found by a forward and a backward dynamic
  programme. Reads are processed in chunks of 500 positions.
  `get_subseq2_seeds(seq)` returns one list of seeds per rank;
  `get_seeds(seq, s_idx, output_dir)` writes `<rank>-<s_idx>.subseqseed2`
  files and returns the seed density; `write_subseq2_seeds(seq, outputs)`
  streams records (hash value, 128-bit k-mer, start, index mask) to one
  open binary stream per rank and closes them. Seeds scoring below
  `threshold` are dropped.
- `subseqseed.subseq2strobe.Subseq2StrobeSeeding(n, k, d, subsample, w,
  prek, table_filename)`: strobe-style seeds made of `prek` leading
  nucleotides followed by the SubseqHash2 subsequences of `w` consecutive
  windows. `get_seeds(seq, s_idx, output_dir)` seeds the read and its
  reverse complement, writing rank `r` to `<2r>-<s_idx>.ss2sseed` and
  `<2r+1>-<s_idx>.ss2sseed`, and returns the density.
- `subseqseed.syncmer.SyncmerSeeding(k, s)`: k-mers whose smallest s-mer
  (ordered by `murmur64`) starts at one of the offsets given with `add(p)`.
  `get_syncmers(seq)` returns the seeds; `get_seeds(seq, s_idx,
  output_dir)` writes `0-<s_idx>.syncmerseed` for the read and
  `1-<s_idx>.syncmerseed` for its reverse complement.

Invalid parameters raise `ValueError`; seeding before a table is loaded
raises `RuntimeError`.

## Hash table files

The SubseqHash schemes read their random tables from a text file of
integers (floats for the A table of `SubseqHash1Seeding`) separated by
whitespace or commas, loaded at construction or with `load_table`.

- `SubseqHash1Seeding`: A (`k`×4×`d`), B as pairs (`k`×4×`d`), C (`k`×4).
- `SubseqHash2Seeding` and `Subseq2StrobeSeeding`: A, B pairs, C1, reverse
  A, reverse B pairs, C2, combine1/combine2 pairs (`k`×4), A3 (`k`×4),
  combine3 (`k`×4), C3 (`k`×4), then `k` middle ranks in order of
  preference; the first `subsample` of them are used.

C values must lie in `0..d-1`.

## Usage

```python
from subseqseed.syncmer import SyncmerSeeding

seeding = SyncmerSeeding(k=15, s=5)
seeding.add(0)            # offset of the smallest s-mer that makes a syncmer
seeds = seeding.get_syncmers("ACGTACGTTGCAACGTAGCTAGCTAGGATC")
for seed in seeds:
    print(seed.st, seed.ed, seed.hashval)
```

Writing seed files for many reads with worker threads:

```python
from subseqseed.factory import SeedFactory
from subseqseed.subseqhash2 import SubseqHash2Seeding

seeding = SubseqHash2Seeding(n=30, k=20, d=11, subsample=4,
                             table_filename="tables.txt")
with SeedFactory(seeding, "out") as factory:
    factory.add_workers(4)
    for idx, read in enumerate(reads):
        factory.add_job(read, idx)
print(factory.density())
```

`SeedFactory` works with any object whose `get_seeds(seq, s_idx,
output_dir)` returns a density (`SubseqHash2Seeding`,
`Subseq2StrobeSeeding`, `SyncmerSeeding`). On close it waits for the
queued reads, prints `Density: ...` with the average density and re-raises
the first error a worker met.

## Seed files (`subseqseed.util`)

- `save_seeds(filename, k, seeds)`: a 32-bit `k`, then per seed the
  canonical 128-bit k-mer (smaller of it and its reverse complement), the
  start and the index mask. `load_seeds_unordered(filename, read_id,
  all_seeds)` reads this back into a mapping from k-mer to read ids.
- `save_seeds_position` / `load_seeds`: hash value, start, index mask.
- `save_seeds_str_position` / `load_seeds_str`: hash value, k-mer, start,
  index mask.

All values are little-endian. The module also has `encode`, `decode`,
`rev_comp`, `rev_comp_kmer`, `kmer_hash`, `build_index` and `index_get`.

## What it does not do

There is no command-line program and no reader for FASTA or FASTQ files:
reads are passed in as strings, and comparing the written seed files
between reads is left to the caller.