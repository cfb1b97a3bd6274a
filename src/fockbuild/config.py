from __future__ import annotations

"""Engine options loaded from TOML.

Example file::

    [misc]
    mem = "512 MB"   # KB / MB / GB suffixes are decimal (1e3, 1e6, 1e9)
    memblk = 2048
    nsmp = 4

    [engine]
    device = "cpu"
    scalar = "complex"
    vendor = true
"""

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import numba
import torch

try:  # Python 3.11+
    import tomllib as _toml
except Exception:  # pragma: no cover - fallback to tomli on older interpreters
    import tomli as _toml  # type: ignore

from .device import get_device, scalar_dtype
from .linalg.blasext import use_vendor_kernels
from .memory import DEFAULT_BLOCK_SIZE, DEFAULT_MEM, MemoryManager

logger = logging.getLogger(__name__)

__all__ = ["EngineOptions", "parse_memory", "format_memory", "options_from_dict", "load_options", "build_memory_manager"]

_UNITS = {"KB": 1e3, "MB": 1e6, "GB": 1e9}


@dataclass(frozen=True)
class EngineOptions:
    mem: int = DEFAULT_MEM
    mem_block: int = DEFAULT_BLOCK_SIZE
    nsmp: Optional[int] = None
    device: Optional[str] = None
    scalar: str = "real"
    vendor: bool = True

    @property
    def dtype(self) -> torch.dtype:
        return scalar_dtype(self.scalar)


def parse_memory(text: str | int | float) -> int:
    """'256 MB' -> 256000000; bare numbers are bytes."""
    if isinstance(text, (int, float)):
        value, scale = float(text), 1.0
    else:
        s = text.strip().upper()
        scale = 1.0
        for unit, mult in _UNITS.items():
            if s.endswith(unit):
                s, scale = s[: -len(unit)].strip(), mult
                break
        try:
            value = float(s)
        except ValueError:
            raise ValueError(f"Cannot parse memory size {text!r}") from None
    nbytes = int(value * scale)
    if nbytes <= 0:
        raise ValueError(f"Memory size must be positive, got {text!r}")
    return nbytes


def format_memory(nbytes: int) -> str:
    """Render a byte count the way the allocation banner prints it ('256 MB')."""
    postfixes = " KMGT"
    idx = min(int(math.floor(math.log10(nbytes)) // 3), len(postfixes) - 1)
    postfix = postfixes[idx].strip()
    return f"{nbytes / 10 ** (3 * idx):g} {postfix}B"


def _int_opt(table: Dict[str, Any], key: str, default):
    if key not in table:
        return default
    val = table[key]
    if isinstance(val, bool) or not isinstance(val, int) or val <= 0:
        raise ValueError(f"{key} must be a positive integer, got {val!r}")
    return val


def options_from_dict(data: Dict[str, Any]) -> EngineOptions:
    misc = data.get("misc", {})
    engine = data.get("engine", {})
    mem = parse_memory(misc["mem"]) if "mem" in misc else DEFAULT_MEM
    mem_block = _int_opt(misc, "memblk", DEFAULT_BLOCK_SIZE)
    nsmp = _int_opt(misc, "nsmp", None)
    device = engine.get("device")
    if device is not None and device not in ("cpu", "cuda", "mps"):
        raise ValueError(f"device must be one of 'cpu', 'cuda', 'mps', got {device!r}")
    scalar = engine.get("scalar", "real")
    if scalar not in ("real", "complex"):
        raise ValueError(f"scalar must be 'real' or 'complex', got {scalar!r}")
    vendor = engine.get("vendor", True)
    if not isinstance(vendor, bool):
        raise ValueError(f"vendor must be a boolean, got {vendor!r}")
    return EngineOptions(mem=mem, mem_block=mem_block, nsmp=nsmp, device=device, scalar=scalar, vendor=vendor)


def load_options(path: str | Path) -> EngineOptions:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"engine options file not found: {p}")
    with p.open("rb") as fh:
        data = _toml.load(fh)
    return options_from_dict(data)


def build_memory_manager(options: EngineOptions) -> MemoryManager:
    """Apply process-wide settings (threads, kernel registry) and create the pool."""
    if options.nsmp is not None:
        torch.set_num_threads(options.nsmp)
        numba.set_num_threads(min(options.nsmp, numba.config.NUMBA_NUM_THREADS))
    use_vendor_kernels(options.vendor)
    mgr = MemoryManager(options.mem, options.mem_block, get_device(options.device))
    logger.info("Allocating %s", format_memory(mgr.mem))
    logger.info("Using %d threads", torch.get_num_threads())
    return mgr
