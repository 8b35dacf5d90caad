"""
Expression value computation for tumorde: counts per million and
average log-CPM abundance.
"""

import numpy as np

from .utils import add_prior_count


def cpm(y, lib_size=None, log=False, prior_count=2):
    """Counts per million.

    Parameters
    ----------
    y : array-like or DGEList
        Count matrix (genes x samples) or DGEList. For a DGEList the
        normalized library sizes ``lib.size * norm.factors`` are used.
    lib_size : array-like, optional
        Library sizes. Defaults to column sums.
    log : bool
        Return log2-CPM?
    prior_count : float
        Average prior count added before taking logs.

    Returns
    -------
    ndarray of CPM values.
    """
    if isinstance(y, dict) and 'counts' in y:
        samples = y['samples']
        lib_size = samples['lib.size'].values * samples['norm.factors'].values
        y = y['counts']

    y = np.asarray(y, dtype=np.float64)
    if y.ndim == 1:
        y = y.reshape(-1, 1)
    if y.size == 0:
        return y.copy()
    ymin = np.nanmin(y)
    if np.isnan(ymin):
        raise ValueError("NA counts not allowed")
    if ymin < 0:
        raise ValueError("Negative counts not allowed")

    if lib_size is None:
        lib_size = y.sum(axis=0)
    lib_size = np.asarray(lib_size, dtype=np.float64)
    if len(lib_size) != y.shape[1]:
        raise ValueError("Length of lib_size differs from number of libraries")
    if np.any(lib_size <= 0):
        raise ValueError("library sizes should be greater than zero")

    if log:
        out = add_prior_count(y, offset=np.log(lib_size), prior_count=prior_count)
        return np.log2(out['y'] / np.exp(out['offset'])[np.newaxis, :] * 1e6)
    return y / lib_size[np.newaxis, :] * 1e6


def ave_log_cpm(y, lib_size=None, offset=None, prior_count=2, dispersion=None):
    """Average log2-CPM for each gene.

    Fits an intercept-only negative binomial GLM to prior-augmented
    counts and converts the fitted coefficient to the log2-CPM scale.

    Parameters
    ----------
    y : array-like or DGEList
    lib_size : array-like, optional
    offset : array-like, optional
        Per-sample log library sizes; overrides lib_size.
    prior_count : float
    dispersion : float or array-like, optional
        Defaults to the common dispersion of a DGEList, else 0.05.
    """
    from .glm_fit import mglm_one_group

    if isinstance(y, dict) and 'counts' in y:
        samples = y['samples']
        lib_size = samples['lib.size'].values * samples['norm.factors'].values
        if dispersion is None:
            dispersion = y.get('common.dispersion')
        y = y['counts']

    y = np.asarray(y, dtype=np.float64)
    if y.ndim == 1:
        y = y.reshape(-1, 1)
    if y.shape[0] == 0:
        return np.array([], dtype=np.float64)

    if dispersion is None or np.all(np.isnan(np.atleast_1d(dispersion))):
        dispersion = 0.05

    if offset is None:
        if lib_size is None:
            lib_size = y.sum(axis=0)
        offset = np.log(np.asarray(lib_size, dtype=np.float64))

    out = add_prior_count(y, offset=offset, prior_count=prior_count)
    b = mglm_one_group(out['y'], dispersion=dispersion, offset=out['offset'])
    return (b + np.log(1e6)) / np.log(2)
