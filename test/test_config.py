import logging

import pytest
import torch

from fockbuild.config import (
    EngineOptions,
    build_memory_manager,
    format_memory,
    load_options,
    options_from_dict,
    parse_memory,
)
from fockbuild.linalg.blasext import use_vendor_kernels, vendor_kernels_enabled


@pytest.mark.parametrize("text,expected", [
    ("256 MB", 256_000_000),
    ("512KB", 512_000),
    ("1.5 GB", 1_500_000_000),
    ("  2 mb ", 2_000_000),
    ("4096", 4096),
    (8192, 8192),
])
def test_parse_memory(text, expected):
    assert parse_memory(text) == expected


@pytest.mark.parametrize("bad", ["lots", "MB", "-3 MB", "0"])
def test_parse_memory_rejects_garbage(bad):
    with pytest.raises(ValueError):
        parse_memory(bad)


def test_format_memory():
    assert format_memory(256_000_000) == "256 MB"
    assert format_memory(2_000_000_000) == "2 GB"
    assert format_memory(64_000) == "64 KB"
    assert format_memory(500) == "500 B"


def test_defaults():
    opts = options_from_dict({})
    assert opts == EngineOptions()
    assert opts.mem == 256_000_000
    assert opts.mem_block == 2048
    assert opts.dtype == torch.float64


def test_load_options_from_toml(tmp_path):
    p = tmp_path / "engine.toml"
    p.write_text(
        '[misc]\nmem = "64 KB"\nmemblk = 1024\nnsmp = 2\n\n'
        '[engine]\ndevice = "cpu"\nscalar = "complex"\nvendor = false\n'
    )
    opts = load_options(p)
    assert opts.mem == 64_000
    assert opts.mem_block == 1024
    assert opts.nsmp == 2
    assert opts.device == "cpu"
    assert opts.dtype == torch.complex128
    assert opts.vendor is False


def test_load_options_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_options(tmp_path / "nope.toml")


@pytest.mark.parametrize("data", [
    {"misc": {"memblk": 0}},
    {"misc": {"nsmp": "four"}},
    {"misc": {"mem": "big"}},
    {"engine": {"scalar": "quaternion"}},
    {"engine": {"device": "tpu"}},
    {"engine": {"vendor": "yes"}},
])
def test_invalid_options(data):
    with pytest.raises(ValueError):
        options_from_dict(data)


def test_build_memory_manager_logs_banner(caplog):
    caplog.set_level(logging.INFO, logger='fockbuild.config')
    opts = options_from_dict({"misc": {"mem": "64 KB"}, "engine": {"device": "cpu", "vendor": False}})
    try:
        mgr = build_memory_manager(opts)
        assert not vendor_kernels_enabled()
    finally:
        use_vendor_kernels(True)
    assert mgr.block_size == 2048
    assert mgr.mem == 31 * 2048
    logs = "\n".join(rec.getMessage() for rec in caplog.records)
    assert "Allocating 63.488 KB" in logs
    assert "threads" in logs
