from .blasext import colmajor_view, from_matrix, get_mat_re, mat_add, set_mat_im, set_mat_re, to_matrix

__all__ = ["colmajor_view", "from_matrix", "get_mat_re", "mat_add", "set_mat_im", "set_mat_re", "to_matrix"]
