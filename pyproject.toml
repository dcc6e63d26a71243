[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "subseqseed"
version = "0.1.0"
description = "Subsequence-based seeding for DNA sequences: SubseqHash, SubseqHash2, strobe-style subsequence seeds and syncmers"
requires-python = ">=3.10"
dependencies = []
keywords = ["bioinformatics", "seeding", "subsequence", "subseqhash", "syncmer", "k-mer", "dna"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Bio-Informatics",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["subseqseed"]

[tool.pytest.ini_options]
addopts = "-ra"
