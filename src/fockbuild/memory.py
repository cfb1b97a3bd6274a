from __future__ import annotations

"""Block-pool memory manager for transient typed buffers.

One byte pool is reserved up front and carved into fixed-size blocks.
malloc hands out flat typed views into the pool (first fit over runs of free
blocks); free returns them. Both are serialized by a lock so worker threads
may allocate and release concurrently.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Tuple

import torch

Tensor = torch.Tensor
logger = logging.getLogger(__name__)

__all__ = ["PoolExhaustedError", "MemoryManager", "DEFAULT_MEM", "DEFAULT_BLOCK_SIZE"]

DEFAULT_MEM = 256_000_000  # 256 MB
DEFAULT_BLOCK_SIZE = 2048
_ALIGN = 16  # widest supported element (complex128)


class PoolExhaustedError(MemoryError):
    """No contiguous run of free blocks is large enough for the request."""


class MemoryManager:
    def __init__(self, mem: int = DEFAULT_MEM, block_size: int = DEFAULT_BLOCK_SIZE, device: Optional[torch.device] = None):
        if block_size <= 0 or block_size % _ALIGN != 0:
            raise ValueError(f"block_size must be a positive multiple of {_ALIGN} bytes, got {block_size}")
        if mem < block_size:
            raise ValueError(f"pool of {mem} bytes cannot hold a single {block_size}-byte block")
        self.block_size = int(block_size)
        self.n_blocks = int(mem) // self.block_size
        self.mem = self.n_blocks * self.block_size
        self.device = torch.device("cpu") if device is None else torch.device(device)
        self._pool = torch.empty(self.mem, dtype=torch.uint8, device=self.device)
        # free runs as (first_block, n_blocks), kept sorted and coalesced
        self._free: List[Tuple[int, int]] = [(0, self.n_blocks)]
        self._live: Dict[int, Tuple[int, int]] = {}
        self._lock = threading.Lock()

    def _blocks_for(self, nbytes: int) -> int:
        return max(1, -(-nbytes // self.block_size))

    def malloc(self, dtype: torch.dtype, count: int) -> Tensor:
        """Reserve `count` elements of `dtype`; contents are uninitialized."""
        if count <= 0:
            raise ValueError(f"allocation count must be positive, got {count}")
        itemsize = torch.empty((), dtype=dtype).element_size()
        nbytes = int(count) * itemsize
        need = self._blocks_for(nbytes)
        with self._lock:
            for pos, (start, length) in enumerate(self._free):
                if length >= need:
                    break
            else:
                raise PoolExhaustedError(
                    f"memory pool exhausted: requested {nbytes} bytes ({need} blocks), "
                    f"largest free run is {self.max_alloc()} bytes"
                )
            if length == need:
                del self._free[pos]
            else:
                self._free[pos] = (start + need, length - need)
            lo = start * self.block_size
            buf = self._pool[lo:lo + nbytes].view(dtype)
            self._live[buf.data_ptr()] = (start, need)
        logger.debug("malloc %d x %s (%d blocks at %d)", count, dtype, need, start)
        return buf

    def free(self, buf: Tensor) -> None:
        with self._lock:
            try:
                start, length = self._live.pop(buf.data_ptr())
            except KeyError:
                raise ValueError("buffer was not allocated by this memory manager (or already freed)") from None
            self._insert_free(start, length)
        logger.debug("free %d blocks at %d", length, start)

    def _insert_free(self, start: int, length: int) -> None:
        runs = self._free
        pos = 0
        while pos < len(runs) and runs[pos][0] < start:
            pos += 1
        runs.insert(pos, (start, length))
        # merge with right neighbour, then left
        if pos + 1 < len(runs) and runs[pos][0] + runs[pos][1] == runs[pos + 1][0]:
            runs[pos] = (runs[pos][0], runs[pos][1] + runs[pos + 1][1])
            del runs[pos + 1]
        if pos > 0 and runs[pos - 1][0] + runs[pos - 1][1] == runs[pos][0]:
            runs[pos - 1] = (runs[pos - 1][0], runs[pos - 1][1] + runs[pos][1])
            del runs[pos]

    @contextmanager
    def scoped(self, dtype: torch.dtype, count: int) -> Iterator[Tensor]:
        """Allocate for the duration of a with-block; released on every exit path."""
        buf = self.malloc(dtype, count)
        try:
            yield buf
        finally:
            self.free(buf)

    @property
    def in_use(self) -> int:
        """Number of live allocations."""
        return len(self._live)

    def free_bytes(self) -> int:
        return sum(length for _, length in self._free) * self.block_size

    def max_alloc(self) -> int:
        """Size in bytes of the largest allocation that would currently succeed."""
        return max((length for _, length in self._free), default=0) * self.block_size
