"""Subsequence-based seeding of DNA sequences: SubseqHash, SubseqHash2,
strobe-style subsequence seeds, syncmers and their binary seed files."""

__version__ = "0.1.0"