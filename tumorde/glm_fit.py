"""
Genewise negative binomial GLM fitting.

Fisher scoring with Levenberg damping, vectorized over genes, plus the
negative binomial deviance and log-likelihood used by the dispersion
estimators and the likelihood ratio test.
"""

import numpy as np
from scipy.special import gammaln, xlogy

from .classes import DGEGLM
from .errors import StatisticsEngineError
from .utils import expand_as_matrix, non_estimable


def _disp_matrix(dispersion, shape):
    disp = np.atleast_1d(np.asarray(dispersion, dtype=np.float64))
    if disp.size == 1:
        return np.full(shape, disp[0])
    if disp.ndim == 1 and len(disp) == shape[0]:
        return np.tile(disp.reshape(-1, 1), (1, shape[1]))
    return expand_as_matrix(disp, shape)


def nbinom_unit_deviance(y, mu, dispersion):
    """Unit deviances of the negative binomial distribution.

    All arguments must already have the same shape. Zero dispersion
    gives the Poisson deviance.
    """
    mu = np.maximum(mu, 1e-300)
    with np.errstate(divide='ignore', invalid='ignore'):
        ylogy = xlogy(y, y / mu)
        nb = 2 * (ylogy - (y + 1.0 / dispersion)
                  * (np.log1p(dispersion * y) - np.log1p(dispersion * mu)))
        pois = 2 * (ylogy - (y - mu))
    dev = np.where(dispersion > 0, nb, pois)
    return np.maximum(dev, 0)


def nbinom_deviance(y, mean, dispersion=0):
    """Residual deviances for row-wise negative binomial GLMs."""
    y = np.asarray(y, dtype=np.float64)
    mean = np.asarray(mean, dtype=np.float64)
    if y.ndim == 1:
        y = y.reshape(1, -1)
        mean = mean.reshape(1, -1)
    disp = _disp_matrix(dispersion, y.shape)
    return np.sum(nbinom_unit_deviance(y, mean, disp), axis=1)


def nbinom_loglik(y, mu, dispersion):
    """Row sums of negative binomial log-likelihoods."""
    y = np.asarray(y, dtype=np.float64)
    mu = np.maximum(np.asarray(mu, dtype=np.float64), 1e-300)
    disp = _disp_matrix(dispersion, y.shape)
    pois = y * np.log(mu) - mu - gammaln(y + 1)
    with np.errstate(divide='ignore', invalid='ignore'):
        r = 1.0 / disp
        nb = (gammaln(y + r) - gammaln(r) - gammaln(y + 1)
              + y * np.log(mu) - (y + r) * np.log1p(mu / r) - y * np.log(r))
    ll = np.where(disp > 0, nb, pois)
    return np.sum(ll, axis=1)


def mglm_one_group(y, dispersion=0, offset=0, maxit=50, tol=1e-10):
    """Fit an intercept-only negative binomial GLM to each gene.

    Parameters
    ----------
    y : ndarray
        Count matrix (genes x samples).
    dispersion : float or ndarray
        Scalar, per-gene, or full matrix of dispersions.
    offset : float or ndarray
        Per-sample or full matrix of log-scale offsets.

    Returns
    -------
    ndarray of coefficients (one per gene).
    """
    y = np.asarray(y, dtype=np.float64)
    if y.ndim == 1:
        y = y.reshape(1, -1)
    ngenes = y.shape[0]
    offset_mat = expand_as_matrix(offset, y.shape)
    disp_mat = _disp_matrix(dispersion, y.shape)

    total_y = y.sum(axis=1)
    total_lib = np.exp(offset_mat).sum(axis=1)
    b = np.full(ngenes, -20.0)
    valid = total_y > 0
    b[valid] = np.log(total_y[valid] / total_lib[valid])

    active = valid.copy()
    for _ in range(maxit):
        if not np.any(active):
            break
        mu = np.exp(np.clip(b[active, None] + offset_mat[active], -500, 500))
        denom = 1.0 + disp_mat[active] * mu
        dl = np.sum((y[active] - mu) / denom, axis=1)
        info = np.sum(mu / denom, axis=1)
        step = np.where(info > 1e-300, dl / np.maximum(info, 1e-300), 0.0)
        b[active] = b[active] + step
        done = np.abs(step) < tol * (np.abs(b[active]) + 0.1)
        idx = np.where(active)[0]
        active[idx[done]] = False

    return b


def _levenberg_start(y, design, offset_mat):
    """Start every gene from the fitted null model."""
    total_y = y.sum(axis=1)
    total_lib = np.exp(offset_mat).sum(axis=1)
    log_mu = np.full(y.shape[0], -20.0)
    pos = total_y > 0
    log_mu[pos] = np.log(total_y[pos] / total_lib[pos])
    # coefficients reproducing a constant linear predictor
    const = np.linalg.lstsq(design, np.ones(design.shape[0]), rcond=None)[0]
    return np.outer(log_mu, const)


def mglm_levenberg(y, design, dispersion=0, offset=0, coef_start=None,
                   maxit=200, tol=1e-06):
    """Fit genewise negative binomial GLMs using Levenberg damping.

    Parameters
    ----------
    y : ndarray
        Count matrix (genes x samples).
    design : ndarray
        Design matrix (samples x coefficients).
    dispersion : float or ndarray
        NB dispersions.
    offset : float or ndarray
        Log-scale offsets.
    coef_start : ndarray, optional
        Starting coefficients (genes x coefficients).
    maxit : int
        Maximum iterations.
    tol : float
        Relative deviance convergence tolerance.

    Returns
    -------
    dict with 'coefficients', 'fitted.values', 'deviance', 'iter', 'failed'.
    """
    y = np.asarray(y, dtype=np.float64)
    if y.ndim == 1:
        y = y.reshape(1, -1)
    ngenes, nlibs = y.shape
    design = np.asarray(design, dtype=np.float64)
    ncoefs = design.shape[1]

    offset_mat = expand_as_matrix(offset, y.shape)
    disp_mat = _disp_matrix(dispersion, y.shape)
    if np.any(disp_mat < 0):
        raise StatisticsEngineError("Negative dispersions not allowed")

    if coef_start is not None:
        beta = np.array(coef_start, dtype=np.float64, copy=True)
    else:
        beta = _levenberg_start(y, design, offset_mat)

    def _mu(b, rows):
        return np.exp(np.clip(b @ design.T + offset_mat[rows], -500, 500))

    all_rows = np.arange(ngenes)
    mu = _mu(beta, all_rows)
    dev = np.sum(nbinom_unit_deviance(y, mu, disp_mat), axis=1)
    lev = np.full(ngenes, 1e-3)
    n_iter = np.zeros(ngenes, dtype=int)
    failed = np.zeros(ngenes, dtype=bool)
    # all-zero rows are already at their boundary solution
    active = y.sum(axis=1) > 0

    for it in range(maxit):
        if not np.any(active):
            break
        rows = np.where(active)[0]
        mu_a = np.maximum(mu[rows], 1e-300)
        working_w = mu_a / (1.0 + disp_mat[rows] * mu_a)
        z = (y[rows] - mu_a) / (1.0 + disp_mat[rows] * mu_a)

        xtwx = np.einsum('gj,jk,jl->gkl', working_w, design, design)
        xtwz = z @ design
        diag = np.einsum('gkk->gk', xtwx)
        damped = xtwx + lev[rows, None, None] * (
            np.eye(ncoefs)[None, :, :] * (diag[:, :, None] + 1e-10))
        try:
            delta = np.linalg.solve(damped, xtwz[:, :, None])[:, :, 0]
        except np.linalg.LinAlgError:
            delta = np.einsum('gkl,gl->gk', np.linalg.pinv(damped), xtwz)

        beta_new = beta[rows] + delta
        mu_new = _mu(beta_new, rows)
        dev_new = np.sum(nbinom_unit_deviance(y[rows], mu_new, disp_mat[rows]), axis=1)

        accept = dev_new <= dev[rows]
        acc = rows[accept]
        converged = np.abs(dev[acc] - dev_new[accept]) < tol * (np.abs(dev[acc]) + 0.1)
        beta[acc] = beta_new[accept]
        mu[acc] = mu_new[accept]
        dev[acc] = dev_new[accept]
        lev[acc] = np.maximum(lev[acc] / 10, 1e-10)
        n_iter[rows] = it + 1

        rej = rows[~accept]
        lev[rej] = lev[rej] * 10
        stuck = rej[lev[rej] > 1e10]
        active[acc[converged]] = False
        active[stuck] = False

    failed[active] = True

    return {
        'coefficients': beta,
        'fitted.values': mu,
        'deviance': dev,
        'iter': n_iter,
        'failed': failed,
    }


def glm_fit(y, design, dispersion=None, offset=None, start=None):
    """Fit negative binomial GLMs for each gene.

    Parameters
    ----------
    y : ndarray or DGEList
        Count matrix (genes x samples), or DGEList whose most complex
        dispersion and library sizes are used.
    design : ndarray or DataFrame
        Design matrix (samples x coefficients).
    dispersion : float or ndarray, optional
        NB dispersions. Required for matrix input.
    offset : ndarray, optional
        Log-scale offsets. Defaults to log column sums.
    start : ndarray, optional
        Starting coefficient values.

    Returns
    -------
    DGEGLM
    """
    coef_names = list(design.columns) if hasattr(design, 'columns') else None

    if isinstance(y, dict) and 'counts' in y:
        from .dgelist import get_dispersion, get_offset
        from .expression import ave_log_cpm
        dge = y
        if dispersion is None:
            dispersion = get_dispersion(dge)
            if dispersion is None:
                raise StatisticsEngineError("No dispersion values found in DGEList object.")
        fit = glm_fit(dge['counts'], design, dispersion=dispersion,
                      offset=get_offset(dge), start=start)
        fit['AveLogCPM'] = dge.get('AveLogCPM')
        if fit['AveLogCPM'] is None:
            fit['AveLogCPM'] = ave_log_cpm(dge)
        fit['genes'] = dge['genes']
        fit['samples'] = dge['samples']
        return fit

    y = np.asarray(y, dtype=np.float64)
    if y.ndim == 1:
        y = y.reshape(1, -1)
    ntag, nlib = y.shape

    design = np.asarray(design, dtype=np.float64)
    if design.ndim == 1:
        design = design.reshape(-1, 1)
    if design.shape[0] != nlib:
        raise StatisticsEngineError("nrow(design) disagrees with ncol(y)")
    ne = non_estimable(design)
    if ne is not None:
        labels = [coef_names[i] for i in ne] if coef_names else list(ne)
        raise StatisticsEngineError(f"Design matrix not of full rank. Non-estimable: {labels}")

    if dispersion is None:
        raise StatisticsEngineError("No dispersion values provided.")
    dispersion = np.atleast_1d(np.asarray(dispersion, dtype=np.float64))
    if np.any(np.isnan(dispersion)):
        raise StatisticsEngineError("NA dispersions not allowed")
    if np.any(dispersion < 0):
        raise StatisticsEngineError("Negative dispersions not allowed")

    if offset is None:
        offset = np.log(y.sum(axis=0))
    offset_mat = expand_as_matrix(offset, (ntag, nlib))

    fit = DGEGLM(mglm_levenberg(y, design, dispersion=dispersion,
                                offset=offset_mat, coef_start=start, maxit=250))
    fit['counts'] = y
    fit['df.residual'] = np.full(ntag, nlib - design.shape[1])
    fit['design'] = design
    fit['coef.names'] = coef_names
    fit['offset'] = offset_mat
    fit['dispersion'] = dispersion
    return fit
