import pytest
import torch

from fockbuild.linalg import blasext
from fockbuild.linalg.blasext import (
    colmajor_view,
    from_matrix,
    get_mat_re,
    kernel_for,
    mat_add,
    set_mat_im,
    set_mat_re,
    to_matrix,
    use_vendor_kernels,
    vendor_kernels_enabled,
)


def _rand(m, n, dtype, seed):
    g = torch.Generator().manual_seed(seed)
    x = torch.randn((m, n), generator=g, dtype=torch.float64)
    if dtype.is_complex:
        x = x + 1j * torch.randn((m, n), generator=g, dtype=torch.float64)
    return x.to(dtype)


TYPE_COMBOS = [
    (torch.float64, torch.float64, torch.float64),
    (torch.complex128, torch.complex128, torch.complex128),
    (torch.complex128, torch.float64, torch.complex128),
    (torch.float64, torch.complex128, torch.complex128),
    (torch.float64, torch.float64, torch.complex128),
    (torch.float32, torch.float64, torch.float64),
    (torch.complex64, torch.complex64, torch.complex64),
    (torch.complex64, torch.float32, torch.complex64),
]

_SINGLE = (torch.float32, torch.complex64)


@pytest.mark.parametrize("ta,tb,tc", TYPE_COMBOS)
def test_identity_alpha1_beta0(dispatch, ta, tb, tc):
    m, n = 5, 7
    A = from_matrix(_rand(m, n, ta, 0))
    B = from_matrix(_rand(m, n, tb, 1))
    C = torch.zeros(m * n, dtype=tc)
    mat_add('N', 'N', m, n, 1.0, A, m, 0.0, B, m, C, m)
    assert torch.equal(to_matrix(C, m, n), to_matrix(A, m, n).to(tc))


@pytest.mark.parametrize("ta,tb,tc", TYPE_COMBOS)
def test_linearity_via_two_calls(dispatch, ta, tb, tc):
    m, n = 6, 4
    alpha = 0.75 if not tc.is_complex else 0.75 - 0.5j
    beta = -1.25
    A = from_matrix(_rand(m, n, ta, 2))
    B = from_matrix(_rand(m, n, tb, 3))
    direct = torch.zeros(m * n, dtype=tc)
    mat_add('N', 'N', m, n, alpha, A, m, beta, B, m, direct, m)
    sa = torch.zeros(m * n, dtype=tc)
    sb = torch.zeros(m * n, dtype=tc)
    mat_add('N', 'N', m, n, alpha, A, m, 0.0, A, m, sa, m)
    mat_add('N', 'N', m, n, beta, B, m, 0.0, B, m, sb, m)
    two_step = torch.zeros(m * n, dtype=tc)
    mat_add('N', 'N', m, n, 1.0, sa, m, 1.0, sb, m, two_step, m)
    tol = 1e-5 if any(t in _SINGLE for t in (ta, tb, tc)) else 1e-12
    assert torch.allclose(direct, two_step, atol=tol, rtol=tol)
    ref = alpha * to_matrix(A, m, n).to(tc) + beta * to_matrix(B, m, n).to(tc)
    assert torch.allclose(to_matrix(direct, m, n), ref, atol=tol, rtol=tol)


def test_leading_dimension_sub_block_leaves_padding(dispatch):
    m, n, ld = 3, 4, 5
    A = torch.arange(ld * n, dtype=torch.float64)
    B = torch.ones(ld * n, dtype=torch.float64)
    C = torch.full((ld * n,), -7.0, dtype=torch.float64)
    mat_add('N', 'N', m, n, 2.0, A, ld, 3.0, B, ld, C, ld)
    expected = 2.0 * colmajor_view(A, m, n, ld) + 3.0
    assert torch.equal(colmajor_view(C, m, n, ld), expected)
    padding = C.view(n, ld)[:, m:]
    assert torch.all(padding == -7.0)


def test_output_may_alias_an_input(dispatch):
    m = 4
    A = from_matrix(_rand(m, m, torch.complex128, 4))
    B = from_matrix(_rand(m, m, torch.complex128, 5))
    expected = to_matrix(A, m) + 2.0 * to_matrix(B, m)
    mat_add('N', 'N', m, m, 1.0, A, m, 2.0, B, m, A, m)
    assert torch.allclose(to_matrix(A, m), expected, atol=1e-14)


def test_transpose_is_a_contract_violation():
    A = torch.zeros(4, dtype=torch.float64)
    with pytest.raises(AssertionError):
        mat_add('T', 'N', 2, 2, 1.0, A, 2, 1.0, A, 2, A, 2)
    with pytest.raises(AssertionError):
        mat_add('N', 'C', 2, 2, 1.0, A, 2, 1.0, A, 2, A, 2)


def test_complex_result_into_real_matrix_is_rejected():
    A = torch.zeros(4, dtype=torch.complex128)
    B = torch.zeros(4, dtype=torch.float64)
    C = torch.zeros(4, dtype=torch.float64)
    with pytest.raises(AssertionError):
        mat_add('N', 'N', 2, 2, 1.0, A, 2, 1.0, B, 2, C, 2)
    with pytest.raises(AssertionError):
        mat_add('N', 'N', 2, 2, 1j, B, 2, 1.0, B, 2, C, 2)


def test_short_buffer_is_rejected():
    A = torch.zeros(5, dtype=torch.float64)
    C = torch.zeros(9, dtype=torch.float64)
    with pytest.raises(AssertionError):
        mat_add('N', 'N', 3, 3, 1.0, A, 3, 1.0, C, 3, C, 3)


def test_kernel_registry_selection():
    try:
        use_vendor_kernels(False)
        assert not vendor_kernels_enabled()
        cpu = torch.device('cpu')
        assert kernel_for(torch.float64, torch.float64, torch.float64, cpu) is blasext._mat_add_generic
        if torch.backends.mkl.is_available():
            use_vendor_kernels(True)
            assert vendor_kernels_enabled()
            assert kernel_for(torch.float64, torch.float64, torch.float64, cpu) is blasext._mat_add_torch
            assert kernel_for(torch.complex128, torch.complex128, torch.complex128, cpu) is blasext._mat_add_torch
            # mixed and non-registered triples never use the accelerated path
            assert kernel_for(torch.complex128, torch.float64, torch.complex128, cpu) is blasext._mat_add_generic
            assert kernel_for(torch.float32, torch.float32, torch.float32, cpu) is blasext._mat_add_generic
            assert kernel_for(torch.complex64, torch.complex64, torch.complex64, cpu) is blasext._mat_add_generic
    finally:
        use_vendor_kernels(True)


def test_set_and_get_real_imag_parts():
    m = 3
    H = _rand(m, m, torch.float64, 6)
    Hbuf = from_matrix(H)
    F = torch.full((m * m,), 5.0 + 9.0j, dtype=torch.complex128)
    set_mat_re('N', m, m, 1.0, Hbuf, m, F, m)
    Fm = to_matrix(F, m)
    assert torch.equal(Fm.real, H)
    assert torch.all(Fm.imag == 9.0)
    set_mat_im('N', m, m, 2.0, Hbuf, m, F, m)
    Fm = to_matrix(F, m)
    assert torch.equal(Fm.real, H)
    assert torch.equal(Fm.imag, 2.0 * H)
    R = torch.zeros(m * m, dtype=torch.float64)
    get_mat_re('N', m, m, -1.0, F, m, R, m)
    assert torch.equal(to_matrix(R, m), -H)
    with pytest.raises(AssertionError):
        set_mat_im('N', m, m, 1.0, Hbuf, m, R, m)


def test_set_mat_re_real_target_is_scaled_copy():
    m = 2
    H = torch.tensor([[1.0, 2.0], [3.0, 4.0]], dtype=torch.float64)
    out = torch.zeros(4, dtype=torch.float64)
    set_mat_re('N', m, m, 0.5, from_matrix(H), m, out, m)
    assert torch.equal(to_matrix(out, m), 0.5 * H)


def test_column_major_layout():
    M = torch.tensor([[1.0, 2.0, 3.0], [4.0, 5.0, 6.0]], dtype=torch.float64)
    buf = from_matrix(M)
    assert buf.tolist() == [1.0, 4.0, 2.0, 5.0, 3.0, 6.0]
    assert torch.equal(to_matrix(buf, 2, 3), M)
