"""
Small numerical helpers shared by the statistics engine.
"""

import numpy as np
from numba import njit


def expand_as_matrix(x, dim):
    """Expand a scalar, per-sample vector, or per-gene vector to a matrix.

    A vector whose length equals the number of columns is repeated down
    the rows; otherwise a vector matching the number of rows is repeated
    across the columns.
    """
    x = np.asarray(x, dtype=np.float64)
    if x.ndim == 0 or x.size == 1:
        return np.full(dim, x.ravel()[0])
    if x.ndim == 1:
        if len(x) == dim[1]:
            return np.tile(x, (dim[0], 1))
        if len(x) == dim[0]:
            return np.tile(x.reshape(-1, 1), (1, dim[1]))
        raise ValueError("x of unexpected length")
    if x.shape != tuple(dim):
        raise ValueError("x is matrix of wrong size")
    return x


def add_prior_count(y, offset, prior_count=2):
    """Add library-size-adjusted prior counts.

    The prior is scaled by each library's size relative to the mean
    library size, and the offset grows by twice the scaled prior.

    Returns
    -------
    dict with 'y' (augmented counts) and 'offset' (augmented per-sample
    log library sizes).
    """
    y = np.asarray(y, dtype=np.float64)
    lib = np.exp(np.asarray(offset, dtype=np.float64))
    pc = prior_count * lib / np.mean(lib)
    return {'y': y + pc[np.newaxis, :], 'offset': np.log(lib + 2.0 * pc)}


def moving_average_by_col(x, width=5):
    """Moving average smoother down the columns of a matrix.

    Windows are truncated at both ends so the output has as many rows
    as the input.
    """
    x = np.asarray(x, dtype=np.float64)
    if x.ndim == 1:
        x = x.reshape(-1, 1)
    width = int(width)
    n, m = x.shape
    if width <= 1:
        return x
    width = min(width, n)

    half1 = (width + 1) // 2
    half2 = width // 2
    x_pad = np.vstack([np.zeros((half1, m)), x, np.zeros((half2, m))])
    cs = np.cumsum(x_pad, axis=0)
    result = cs[width:] - cs[:-width]

    w = np.full(n, width, dtype=np.float64)
    if half1 > 1:
        w[:half1 - 1] = width - np.arange(half1 - 1, 0, -1)
    if half2 > 0:
        w[n - half2:] = width - np.arange(1, half2 + 1)
    return result / w.reshape(-1, 1)


def systematic_subset(n, order_by):
    """Indices of a subset of size about n, stratified along order_by."""
    order_by = np.asarray(order_by)
    ntotal = len(order_by)
    sampling_ratio = ntotal // n
    if sampling_ratio <= 1:
        return np.arange(ntotal)
    i1 = sampling_ratio // 2
    o = np.argsort(order_by, kind='stable')
    return o[np.arange(i1, ntotal, sampling_ratio)]


def bin_by_quantile(x, nbins):
    """Assign each value of x to one of nbins equal-count bins (0-based)."""
    x = np.asarray(x, dtype=np.float64)
    o = np.argsort(x, kind='stable')
    group = np.empty(len(x), dtype=int)
    group[o] = np.floor(np.arange(len(x)) * nbins / len(x)).astype(int)
    return group


def non_estimable(design):
    """Column indices of a design matrix that cannot be estimated, or None."""
    design = np.asarray(design, dtype=np.float64)
    p = design.shape[1]
    if p == 0:
        return None
    _, r = np.linalg.qr(design)
    d = np.abs(np.diag(r))
    if len(d) < p:
        return np.arange(len(d), p)
    tol = np.max(d) * 1e-7
    bad = np.where(d < tol)[0]
    if len(bad) == 0:
        return None
    return bad


@njit(cache=True)
def _maximize_parabola_kernel(x, y, result):
    ngenes, npts = y.shape
    for g in range(ngenes):
        imax = 0
        for i in range(1, npts):
            if y[g, i] > y[g, imax]:
                imax = i
        if imax == 0 or imax == npts - 1:
            result[g] = x[imax]
            continue
        x0 = x[imax - 1]
        x1 = x[imax]
        x2 = x[imax + 1]
        y0 = y[g, imax - 1]
        y1 = y[g, imax]
        y2 = y[g, imax + 1]
        denom = (x0 - x1) * (x0 - x2) * (x1 - x2)
        a = (x2 * (y1 - y0) + x1 * (y0 - y2) + x0 * (y2 - y1)) / denom
        b = (x2 * x2 * (y0 - y1) + x1 * x1 * (y2 - y0) + x0 * x0 * (y1 - y2)) / denom
        if a < 0.0:
            v = -b / (2.0 * a)
            if v < x0:
                v = x0
            elif v > x2:
                v = x2
            result[g] = v
        else:
            result[g] = x1


def maximize_interpolant(x, y):
    """Location of the maximum of each row of y sampled on grid x.

    The grid maximum is refined by the vertex of the parabola through it
    and its two neighbours.

    Parameters
    ----------
    x : ndarray
        Sorted grid points.
    y : ndarray
        Values (genes x grid points).

    Returns
    -------
    ndarray of maximizing x values, one per row.
    """
    x = np.ascontiguousarray(x, dtype=np.float64)
    y = np.ascontiguousarray(y, dtype=np.float64)
    if y.ndim == 1:
        y = y.reshape(1, -1)
    if y.shape[1] != len(x):
        raise ValueError("number of columns of y must equal length of x")
    result = np.empty(y.shape[0], dtype=np.float64)
    _maximize_parabola_kernel(x, y, result)
    return result
