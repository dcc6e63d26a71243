"""A pool of worker threads that seed reads and track the average density."""

from __future__ import annotations

import math
import threading
from collections import deque
from dataclasses import dataclass
from typing import Any, Protocol

from .util import PathLike


class _Seeding(Protocol):
    def get_seeds(self, seq: str, s_idx: int, output_dir: PathLike) -> float: ...


@dataclass
class Read:
    """A read waiting to be seeded."""

    seq: str
    idx: int


class SeedFactory:
    """Feed reads to worker threads that write seed files via a seeding scheme.

    On close, workers finish all queued reads, and the average density is printed.
    """

    def __init__(self, seeding: _Seeding, output_dir: PathLike) -> None:
        self.seeding = seeding
        self.output_dir = output_dir
        self._jobs: deque[Read] = deque()
        self._workers: list[threading.Thread] = []
        self._door = threading.Condition()
        self._out_door = threading.Lock()
        self._done = False
        self._closed = False
        self._total_density = 0.0
        self._num_jobs = 0
        self._errors: list[BaseException] = []

    def add_job(self, seq: str, idx: int) -> None:
        """Queue a read for seeding."""
        with self._door:
            if self._done:
                raise RuntimeError("factory is closed")
            self._num_jobs += 1
            self._jobs.append(Read(seq, idx))
            self._door.notify()

    def add_workers(self, count: int) -> None:
        """Start count more worker threads."""
        if count < 1:
            raise ValueError("count must be positive")
        with self._door:
            if self._done:
                raise RuntimeError("factory is closed")
            for _ in range(count):
                worker = threading.Thread(
                    target=self._work, name=f"seeder-{len(self._workers)}", daemon=True
                )
                self._workers.append(worker)
                worker.start()

    def _work(self) -> None:
        while True:
            with self._door:
                while not self._done and not self._jobs:
                    self._door.wait()
                if not self._jobs:
                    return
                read = self._jobs.popleft()
            try:
                density = self.seeding.get_seeds(read.seq, read.idx, self.output_dir)
            except Exception as exc:  # re-raised by close()
                with self._out_door:
                    self._errors.append(exc)
                continue
            with self._out_door:
                self._total_density += density

    def density(self) -> float:
        """Average density over all queued reads, or NaN when there were none."""
        with self._out_door:
            if not self._num_jobs:
                return math.nan
            return self._total_density / self._num_jobs

    def close(self) -> None:
        """Let workers drain the queue, wait for them and print the density."""
        if self._closed:
            return
        with self._door:
            self._done = True
            self._door.notify_all()
        for worker in self._workers:
            worker.join()
        self._closed = True
        print(f"Density: {self.density():.8f}")
        if self._errors:
            raise self._errors[0]

    def __enter__(self) -> SeedFactory:
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.close()