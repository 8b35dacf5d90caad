"""
Wilcoxon rank tests between tumor and normal expression values.
"""

import numpy as np
import pandas as pd
from scipy import stats


def rank_sum_test(x, y, paired=False):
    """Two-sided Wilcoxon test p-value for one gene.

    Parameters
    ----------
    x, y : array-like
        Tumor and normal values. When paired, position i of x and y
        belongs to the same individual.
    paired : bool
        Signed-rank test on the pairwise differences if True, otherwise
        the rank-sum (Mann-Whitney U) test.

    Returns
    -------
    float p-value, NaN when there are too few non-missing values or the
    statistic is undefined.
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)

    if paired:
        if len(x) != len(y):
            raise ValueError("'x' and 'y' must have the same length for a paired test")
        complete = ~(np.isnan(x) | np.isnan(y))
        d = x[complete] - y[complete]
        if len(d) == 0 or np.all(d == 0):
            return np.nan
        try:
            return float(stats.wilcoxon(d).pvalue)
        except ValueError:
            return np.nan

    x = x[~np.isnan(x)]
    y = y[~np.isnan(y)]
    if len(x) == 0 or len(y) == 0:
        return np.nan
    try:
        return float(stats.mannwhitneyu(x, y, alternative='two-sided').pvalue)
    except ValueError:
        return np.nan


def rank_sum_by_gene(tumors, normals, paired=False, test=rank_sum_test):
    """Rank test p-value for every row of two aligned expression tables.

    Parameters
    ----------
    tumors, normals : DataFrame
        Expression values with identical row index. For a paired test the
        columns must correspond one to one.
    paired : bool
    test : callable
        Function (x, y, paired) -> p-value.

    Returns
    -------
    Series of p-values indexed like the rows.
    """
    t = tumors.to_numpy(dtype=np.float64)
    n = normals.to_numpy(dtype=np.float64)
    pvalues = [test(t[i], n[i], paired) for i in range(t.shape[0])]
    return pd.Series(pvalues, index=tumors.index, name='pvalue', dtype=np.float64)
