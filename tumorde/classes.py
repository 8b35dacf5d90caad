"""
Core data classes for tumorde.

Count data and analysis results are dict subclasses with attribute
access, so every component can be read as ``obj['key']`` or ``obj.key``.
"""

import numpy as np
import pandas as pd
from copy import deepcopy


class _ResultBase(dict):
    """Base class providing dict-like access, copying, and display."""

    def __getattr__(self, name):
        try:
            return self[name]
        except KeyError:
            raise AttributeError(f"'{type(self).__name__}' has no attribute '{name}'")

    def __setattr__(self, name, value):
        self[name] = value

    def __delattr__(self, name):
        try:
            del self[name]
        except KeyError:
            raise AttributeError(f"'{type(self).__name__}' has no attribute '{name}'")

    @property
    def shape(self):
        if 'counts' in self:
            return self['counts'].shape
        return None

    def __repr__(self):
        cls = type(self).__name__
        components = list(self.keys())
        s = self.shape
        if s is not None:
            return f"{cls} with {s[0]} rows and {s[1]} columns\nComponents: {', '.join(components)}"
        return f"{cls}\nComponents: {', '.join(components)}"

    def _copy(self):
        """Deep copy of the object."""
        return deepcopy(self)


def _resolve_index(idx, names):
    """Resolve index to integer array. Supports bool, int, str, slice."""
    if idx is None:
        return None
    if isinstance(idx, slice):
        return np.arange(len(names))[idx]
    idx = np.atleast_1d(idx)
    if idx.dtype == bool:
        if len(idx) != len(names):
            raise IndexError("boolean index has wrong length")
        return np.where(idx)[0]
    if idx.dtype.kind in ('U', 'S', 'O'):
        lookup = {name: i for i, name in enumerate(names)}
        result = []
        for name in idx:
            if name not in lookup:
                raise KeyError(f"Name '{name}' not found")
            result.append(lookup[name])
        return np.array(result, dtype=int)
    return idx.astype(int)


class DGEList(_ResultBase):
    """Digital gene expression data list.

    Attributes
    ----------
    counts : ndarray
        Matrix of counts (genes x samples).
    samples : DataFrame
        Indexed by sample id, with columns group, lib.size, norm.factors.
    genes : DataFrame
        Indexed by gene id; holds the feature annotation (may have no
        columns).
    common.dispersion : float, optional
    trended.dispersion : ndarray, optional
    tagwise.dispersion : ndarray, optional
    AveLogCPM : ndarray, optional
    """

    _PER_GENE = ('AveLogCPM', 'trended.dispersion', 'tagwise.dispersion')

    def __getitem__(self, key):
        if isinstance(key, str):
            return super().__getitem__(key)
        if not isinstance(key, tuple) or len(key) != 2:
            raise IndexError("Two subscripts required")

        i, j = key
        i_idx = _resolve_index(i, self.gene_names)
        j_idx = _resolve_index(j, self.sample_names)

        out = self._copy()
        counts = out['counts']
        if i_idx is not None:
            counts = counts[i_idx]
            out['genes'] = out['genes'].iloc[i_idx]
            for k in self._PER_GENE:
                if out.get(k) is not None:
                    out[k] = np.asarray(out[k])[i_idx]
        if j_idx is not None:
            counts = counts[:, j_idx]
            samples = out['samples'].iloc[j_idx].copy()
            if hasattr(samples['group'], 'cat'):
                samples['group'] = samples['group'].cat.remove_unused_categories()
            out['samples'] = samples
        out['counts'] = counts
        return out

    @property
    def gene_names(self):
        return list(self['genes'].index)

    @property
    def sample_names(self):
        return list(self['samples'].index)

    @property
    def nrow(self):
        return self['counts'].shape[0]

    @property
    def ncol(self):
        return self['counts'].shape[1]

    def __len__(self):
        return self.nrow

    def to_dataframe(self):
        """Counts as a DataFrame labelled by gene and sample ids."""
        return pd.DataFrame(self['counts'], index=self['genes'].index,
                            columns=self['samples'].index)


class DGEGLM(_ResultBase):
    """Fitted negative binomial GLMs, one per gene.

    Keys: coefficients, fitted.values, deviance, df.residual, design,
    offset, dispersion, counts, AveLogCPM, genes.
    """


class DGELRT(_ResultBase):
    """Likelihood ratio test results.

    Keys: table (DataFrame with logFC, logCPM, LR, PValue), comparison,
    df.test, genes.
    """


class ExprAnalysis(_ResultBase):
    """Group means and rank test p-values from ``do_expr_analysis``.

    Keys: exprs (DataFrame with tumor/normal columns), pvalues (Series),
    paired (bool), and after ``summarize_expr`` also wilcox (DataFrame
    with pvalue/fdr columns).
    """


class ExprSummary(_ResultBase):
    """Gene scores and affected-sample counts from ``summarize_expr``.

    Keys: scores, summary, samples, analysis, significant, regulation.
    """
