"""
Negative binomial dispersion estimation for GLMs.

Common, abundance-trended, and tagwise (empirical Bayes shrunk)
dispersions, all maximizing the Cox-Reid adjusted profile likelihood.
Each estimator accepts a DGEList, in which case a new DGEList carrying
the estimate is returned, or a count matrix, in which case the bare
estimate is returned.
"""

import numpy as np
import warnings
from scipy.optimize import minimize, minimize_scalar

from .errors import StatisticsEngineError
from .expression import ave_log_cpm
from .glm_fit import glm_fit, nbinom_loglik
from .utils import (bin_by_quantile, expand_as_matrix, maximize_interpolant,
                    moving_average_by_col, systematic_subset)


def _as_design(design, nlibs):
    if design is None:
        return np.ones((nlibs, 1))
    design = np.asarray(design, dtype=np.float64)
    if design.ndim == 1:
        design = design.reshape(-1, 1)
    return design


def adjusted_profile_lik(dispersion, y, design, offset, start=None, get_coef=False):
    """Tagwise Cox-Reid adjusted profile log-likelihoods for the dispersion.

    Parameters
    ----------
    dispersion : float or ndarray
        Dispersion value(s), scalar or one per gene.
    y : ndarray
        Count matrix (genes x samples).
    design : ndarray
        Design matrix.
    offset : ndarray
        Offset matrix.
    start : ndarray, optional
        Starting coefficients for the GLM fit.
    get_coef : bool
        If True, also return the fitted coefficients.

    Returns
    -------
    ndarray of adjusted profile log-likelihoods (one per gene), or dict
    with 'apl' and 'beta' if get_coef=True.
    """
    y = np.asarray(y, dtype=np.float64)
    design = np.asarray(design, dtype=np.float64)
    ngenes = y.shape[0]
    disp = np.atleast_1d(np.asarray(dispersion, dtype=np.float64))
    if disp.size == 1:
        disp = np.full(ngenes, disp[0])

    fit = glm_fit(y, design, dispersion=disp, offset=offset, start=start)
    mu = np.maximum(fit['fitted.values'], 1e-300)

    ll = nbinom_loglik(y, mu, disp)

    # Cox-Reid adjustment: -0.5 * log|X'WX|
    working_w = np.maximum(mu / (1.0 + disp[:, None] * mu), 1e-300)
    xtwx = np.einsum('gj,jk,jl->gkl', working_w, design, design)
    sign, logdet = np.linalg.slogdet(xtwx)
    logdet = np.where(sign > 0, logdet, 0.0)
    apl = ll - 0.5 * logdet

    if get_coef:
        return {'apl': apl, 'beta': fit['coefficients']}
    return apl


def disp_cox_reid(y, design=None, offset=None, ave_log_cpm_vals=None,
                  interval=(0, 4), tol=1e-5, min_row_sum=5, subset=10000):
    """Cox-Reid APL estimator of a single common dispersion.

    Parameters
    ----------
    y : ndarray
        Count matrix.
    design : ndarray, optional
    offset : ndarray, optional
    ave_log_cpm_vals : ndarray, optional
        Abundances used to pick a systematic subset of genes.
    interval : tuple
        Search interval for the dispersion.
    tol : float
        Optimization tolerance on the fourth-root scale.
    min_row_sum : int
        Genes with fewer total counts are ignored.
    subset : int
        Number of genes used when there are many more.

    Returns
    -------
    float
    """
    y = np.asarray(y, dtype=np.float64)
    if y.ndim == 1:
        y = y.reshape(1, -1)
    design = _as_design(design, y.shape[1])
    if offset is None:
        offset = np.log(y.sum(axis=0))
    offset = expand_as_matrix(offset, y.shape)

    if interval[0] < 0:
        raise ValueError("please give a non-negative interval for the dispersion")

    keep = y.sum(axis=1) >= min_row_sum
    y = y[keep]
    offset = offset[keep]
    if ave_log_cpm_vals is not None:
        ave_log_cpm_vals = np.asarray(ave_log_cpm_vals)[keep]
    if y.shape[0] < 1:
        raise StatisticsEngineError("no data rows with required number of counts")

    if subset is not None and subset <= y.shape[0] / 2:
        if ave_log_cpm_vals is None:
            ave_log_cpm_vals = ave_log_cpm(y, offset=offset[0])
        i = systematic_subset(subset, ave_log_cpm_vals)
        y = y[i]
        offset = offset[i]

    def fun(par):
        return -np.sum(adjusted_profile_lik(par ** 4, y, design, offset))

    lo = max(interval[0] ** 0.25, 1e-10)
    hi = interval[1] ** 0.25
    result = minimize_scalar(fun, bounds=(lo, hi), method='bounded',
                             options={'xatol': tol})
    return result.x ** 4


def estimate_glm_common_disp(y, design=None, offset=None, verbose=False):
    """Estimate a common dispersion for all genes.

    Returns
    -------
    DGEList (if input is DGEList) or float.
    """
    if isinstance(y, dict) and 'counts' in y:
        from .dgelist import get_offset
        dge = y._copy()
        d = estimate_glm_common_disp(dge['counts'], design=design,
                                     offset=get_offset(dge), verbose=verbose)
        dge['common.dispersion'] = d
        dge['AveLogCPM'] = ave_log_cpm(dge, dispersion=d)
        return dge

    y = np.asarray(y, dtype=np.float64)
    if y.ndim == 1:
        y = y.reshape(1, -1)
    design = _as_design(design, y.shape[1])

    if design.shape[1] >= y.shape[1]:
        warnings.warn("No residual df: setting dispersion to NA", stacklevel=2)
        return np.nan

    d = disp_cox_reid(y, design=design, offset=offset)
    if verbose:
        print(f"Disp = {d:.5f}, BCV = {np.sqrt(d):.4f}")
    return d


def disp_power_trend(y, design, offset, ave_log_cpm_vals, subset=10000):
    """Parametric trend: dispersion = exp(a + b*AveLogCPM) + exp(c).

    Parameters are chosen to maximize the summed adjusted profile
    likelihood with Nelder-Mead.
    """
    pos = y.sum(axis=1) > 0
    i = np.where(pos)[0][systematic_subset(subset, ave_log_cpm_vals[pos])]
    y_sub, offset_sub, a_sub = y[i], offset[i], ave_log_cpm_vals[i]

    def fun(par):
        dispersion = np.exp(par[0] + par[1] * a_sub) + np.exp(par[2])
        value = -np.sum(adjusted_profile_lik(dispersion, y_sub, design, offset_sub))
        return value if np.isfinite(value) else 1e10

    par0 = np.array([np.log(0.1), 0.0, -5.0])
    par = minimize(fun, par0, method='Nelder-Mead').x
    return np.exp(par[0] + par[1] * ave_log_cpm_vals) + np.exp(par[2])


def disp_bin_trend(y, design, offset, ave_log_cpm_vals, min_n=50):
    """Binned trend: common dispersions of abundance bins, interpolated.

    Genes with positive counts are cut into equal-count bins of
    AveLogCPM; each bin gets its own Cox-Reid common dispersion and
    the square roots are interpolated linearly between bin centres.
    """
    ntags = y.shape[0]
    pos = y.sum(axis=1) > 0
    npos = int(np.sum(pos))
    if npos == 0:
        return np.zeros(ntags)

    nbins = max(min(int(np.floor(npos ** 0.4)), npos // min_n, 1000), 1)
    if nbins == 1:
        d = disp_cox_reid(y[pos], design, offset=offset[pos], min_row_sum=0)
        return np.full(ntags, d)

    groups = bin_by_quantile(ave_log_cpm_vals[pos], nbins)
    rows = np.where(pos)[0]
    bin_d = np.empty(nbins)
    bin_a = np.empty(nbins)
    for b in range(nbins):
        members = rows[groups == b]
        bin_d[b] = disp_cox_reid(y[members], design, offset=offset[members],
                                 min_row_sum=0)
        bin_a[b] = np.mean(ave_log_cpm_vals[members])

    return np.interp(ave_log_cpm_vals, bin_a, np.sqrt(bin_d)) ** 2


def estimate_glm_trended_disp(y, design=None, offset=None, ave_log_cpm_vals=None,
                              method='auto'):
    """Estimate abundance-trended dispersions.

    Parameters
    ----------
    method : str
        'power', 'bin', or 'auto' (power trend below 200 genes).

    Returns
    -------
    DGEList (if input is DGEList) or ndarray.
    """
    if isinstance(y, dict) and 'counts' in y:
        from .dgelist import get_offset
        dge = y._copy()
        if dge.get('AveLogCPM') is None:
            dge['AveLogCPM'] = ave_log_cpm(dge)
        dge['trended.dispersion'] = estimate_glm_trended_disp(
            dge['counts'], design=design, offset=get_offset(dge),
            ave_log_cpm_vals=dge['AveLogCPM'], method=method)
        return dge

    y = np.asarray(y, dtype=np.float64)
    if y.ndim == 1:
        y = y.reshape(1, -1)
    ntags, nlibs = y.shape
    if ntags == 0:
        return np.array([], dtype=np.float64)
    design = _as_design(design, nlibs)

    if design.shape[1] >= nlibs:
        warnings.warn("No residual df: setting dispersion to NA", stacklevel=2)
        return np.full(ntags, np.nan)

    if offset is None:
        offset = np.log(y.sum(axis=0))
    offset = expand_as_matrix(offset, y.shape)
    if ave_log_cpm_vals is None:
        ave_log_cpm_vals = ave_log_cpm(y, offset=offset[0])
    ave_log_cpm_vals = np.asarray(ave_log_cpm_vals, dtype=np.float64)

    if method == 'auto':
        method = 'power' if ntags < 200 else 'bin'
    if method == 'power':
        return disp_power_trend(y, design, offset, ave_log_cpm_vals)
    if method == 'bin':
        return disp_bin_trend(y, design, offset, ave_log_cpm_vals)
    raise ValueError("method must be one of ('auto', 'power', 'bin')")


def disp_cox_reid_interpolate_tagwise(y, design, offset, dispersion,
                                      ave_log_cpm_vals, trend=True,
                                      min_row_sum=5, prior_df=10, span=0.3,
                                      grid_npts=11, grid_range=(-6, 6)):
    """Tagwise dispersions by weighted likelihood empirical Bayes.

    Each gene's APL is evaluated on a log2 grid around its starting
    dispersion, then shrunk toward the APL averaged over genes of
    similar abundance (or over all genes if trend=False), weighted by
    prior_n = prior_df / residual df. The maximum of the shrunk curve
    gives the tagwise dispersion.
    """
    ntags, nlibs = y.shape
    dispersion = np.atleast_1d(np.asarray(dispersion, dtype=np.float64))
    if dispersion.size == 1:
        dispersion = np.full(ntags, dispersion[0])
    else:
        dispersion = dispersion.copy()

    keep = y.sum(axis=1) >= min_row_sum
    if not np.all(keep):
        if np.any(keep):
            dispersion[keep] = disp_cox_reid_interpolate_tagwise(
                y[keep], design, offset[keep], dispersion[keep],
                ave_log_cpm_vals[keep], trend=trend, min_row_sum=0,
                prior_df=prior_df, span=span, grid_npts=grid_npts,
                grid_range=grid_range)
        return dispersion

    prior_n = prior_df / (nlibs - design.shape[1])
    spline_pts = np.linspace(grid_range[0], grid_range[1], grid_npts)
    apl = np.empty((ntags, grid_npts))
    for i, pt in enumerate(spline_pts):
        apl[:, i] = adjusted_profile_lik(dispersion * 2 ** pt, y, design, offset)

    if trend:
        o = np.argsort(ave_log_cpm_vals, kind='stable')
        oo = np.argsort(o)
        width = max(int(np.floor(span * ntags)), 1)
        apl_smooth = moving_average_by_col(apl[o], width=width)[oo]
    else:
        apl_smooth = np.tile(np.mean(apl, axis=0), (ntags, 1))

    apl_smooth = (apl + prior_n * apl_smooth) / (1 + prior_n)
    d = maximize_interpolant(spline_pts, apl_smooth)
    return dispersion * 2 ** d


def estimate_glm_tagwise_disp(y, design=None, offset=None, dispersion=None,
                              prior_df=10, trend=True, span=None,
                              ave_log_cpm_vals=None):
    """Estimate tagwise dispersions shrunk toward the trend.

    Returns
    -------
    DGEList (if input is DGEList) or ndarray.
    """
    if isinstance(y, dict) and 'counts' in y:
        from .dgelist import get_offset
        dge = y._copy()
        key = 'trended.dispersion' if trend else 'common.dispersion'
        if dispersion is None:
            dispersion = dge.get(key)
            if dispersion is None:
                raise ValueError(f"No {key} found. Run the previous estimation step first.")
        if dge.get('AveLogCPM') is None:
            dge['AveLogCPM'] = ave_log_cpm(dge)
        dge['tagwise.dispersion'] = estimate_glm_tagwise_disp(
            dge['counts'], design=design, offset=get_offset(dge),
            dispersion=dispersion, prior_df=prior_df, trend=trend, span=span,
            ave_log_cpm_vals=dge['AveLogCPM'])
        dge['prior.df'] = prior_df
        return dge

    y = np.asarray(y, dtype=np.float64)
    if y.ndim == 1:
        y = y.reshape(1, -1)
    ntags, nlibs = y.shape
    if ntags == 0:
        return np.array([], dtype=np.float64)
    design = _as_design(design, nlibs)

    if design.shape[1] >= nlibs:
        warnings.warn("No residual df: setting dispersion to NA", stacklevel=2)
        return np.full(ntags, np.nan)
    if dispersion is None or np.any(np.isnan(dispersion)):
        raise ValueError("starting dispersion must be given and not NA")

    if offset is None:
        offset = np.log(y.sum(axis=0))
    offset = expand_as_matrix(offset, y.shape)
    if span is None:
        span = (10 / ntags) ** 0.23 if ntags > 10 else 1.0
    if ave_log_cpm_vals is None:
        ave_log_cpm_vals = ave_log_cpm(y, offset=offset[0])

    return disp_cox_reid_interpolate_tagwise(
        y, design, offset, dispersion, np.asarray(ave_log_cpm_vals, dtype=np.float64),
        trend=trend, prior_df=prior_df, span=span)
