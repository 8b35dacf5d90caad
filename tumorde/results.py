"""
Multiple testing correction and ranked result tables.
"""

import numpy as np
import pandas as pd
from statsmodels.stats.multitest import multipletests


def p_adjust_bh(pvalues):
    """Benjamini-Hochberg adjusted p-values.

    NaN p-values are left as NaN and do not count toward the number of
    tests. A Series keeps its index.

    Parameters
    ----------
    pvalues : array-like or Series

    Returns
    -------
    ndarray, or Series when a Series was given.
    """
    index = pvalues.index if isinstance(pvalues, pd.Series) else None
    raw = np.asarray(pvalues, dtype=np.float64)
    adj = np.full_like(raw, np.nan)
    valid = ~np.isnan(raw)
    if valid.any():
        _, adj[valid], _, _ = multipletests(raw[valid], method='fdr_bh')
    if index is not None:
        return pd.Series(adj, index=index, name='fdr')
    return adj


def top_tags(obj, n=None, sort_by='PValue'):
    """Table of genes ranked by evidence of differential expression.

    Parameters
    ----------
    obj : DGELRT
        Result from glm_lrt().
    n : int, optional
        Number of genes to return. Default is all of them.
    sort_by : str
        'PValue', 'logFC' or 'none'.

    Returns
    -------
    DataFrame with the test columns, an 'FDR' column and any gene
    annotation columns, indexed by gene id.
    """
    if obj.get('table') is None:
        raise ValueError("Need to run glm_lrt first")
    tab = obj['table'].copy()
    tab['FDR'] = p_adjust_bh(tab['PValue'].values)

    if sort_by == 'PValue':
        alfc = np.abs(tab['logFC'].values)
        o = np.lexsort((-alfc, tab['PValue'].values))
    elif sort_by == 'logFC':
        o = np.argsort(-np.abs(tab['logFC'].values), kind='stable')
    elif sort_by == 'none':
        o = np.arange(len(tab))
    else:
        raise ValueError("sort_by must be one of ('PValue', 'logFC', 'none')")
    tab = tab.iloc[o]

    genes = obj.get('genes')
    if genes is not None and len(genes.columns) > 0:
        tab = pd.concat([genes.loc[tab.index], tab], axis=1)

    if n is not None:
        tab = tab.iloc[:n]
    return tab
