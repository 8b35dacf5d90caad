"""
DGEList construction, filtering, and accessors.
"""

import numpy as np
import pandas as pd
import warnings

from .classes import DGEList
from .engine import resolve_engine


def make_dgelist(counts, annotation=None, group=None, gene_names=None,
                 sample_names=None, remove_zeros=False):
    """Construct a DGEList from a count table.

    Parameters
    ----------
    counts : DataFrame or array-like
        Read counts (genes x samples). Row and column labels of a
        DataFrame become the gene and sample ids.
    annotation : DataFrame, optional
        Feature annotation. If its index shares labels with the gene ids
        it is aligned by label, otherwise it must have one row per gene
        in count order.
    group : array-like, optional
        Group membership of each sample.
    gene_names, sample_names : sequence, optional
        Ids for array input. Default to "1".."n" and "Sample1".."Samplen".
    remove_zeros : bool
        Whether to drop genes with zero counts in every sample.

    Returns
    -------
    DGEList
    """
    if isinstance(counts, pd.DataFrame):
        if gene_names is None:
            gene_names = counts.index
        if sample_names is None:
            sample_names = counts.columns
        counts = counts.to_numpy(dtype=np.float64)
    else:
        counts = np.asarray(counts, dtype=np.float64)
    if counts.ndim == 1:
        counts = counts.reshape(-1, 1)

    if counts.size == 0:
        raise ValueError("'counts' must contain at least one value")
    m = np.min(counts)
    if np.isnan(m):
        raise ValueError("NA counts not allowed")
    if m < 0:
        raise ValueError("Negative counts not allowed")
    if not np.isfinite(np.max(counts)):
        raise ValueError("Infinite counts not allowed")

    ntags, nlib = counts.shape
    if gene_names is None:
        gene_names = [str(i + 1) for i in range(ntags)]
    if sample_names is None:
        sample_names = [f"Sample{i + 1}" for i in range(nlib)]
    gene_names = pd.Index(gene_names)
    sample_names = pd.Index(sample_names)
    if len(gene_names) != ntags:
        raise ValueError("Length of 'gene_names' must equal number of rows in 'counts'")
    if len(sample_names) != nlib:
        raise ValueError("Length of 'sample_names' must equal number of columns in 'counts'")
    if gene_names.has_duplicates:
        raise ValueError("Gene ids must be unique")
    if sample_names.has_duplicates:
        raise ValueError("Sample ids must be unique")

    if group is None:
        group = pd.Categorical([1] * nlib)
    else:
        if len(group) != nlib:
            raise ValueError("Length of 'group' must equal number of columns in 'counts'")
        group = pd.Categorical(group)

    lib_size = counts.sum(axis=0)
    if np.min(lib_size) <= 0:
        warnings.warn("At least one library size is zero", stacklevel=2)

    samples = pd.DataFrame({
        'group': group,
        'lib.size': lib_size,
        'norm.factors': np.ones(nlib),
    }, index=sample_names)

    if annotation is None:
        genes = pd.DataFrame(index=gene_names)
    else:
        annotation = pd.DataFrame(annotation)
        if annotation.index.isin(gene_names).any():
            genes = annotation.reindex(gene_names)
        elif len(annotation) == ntags:
            genes = annotation.set_axis(gene_names, axis=0)
        else:
            raise ValueError("Counts and annotation have different numbers of rows")

    x = DGEList()
    x['counts'] = counts
    x['samples'] = samples
    x['genes'] = genes

    if remove_zeros:
        all_zeros = counts.sum(axis=1) == 0
        if np.any(all_zeros):
            warnings.warn(f"Removing {np.sum(all_zeros)} rows with all zero counts",
                          stacklevel=2)
            x = x[~all_zeros, :]

    return x


def filter_dgelist(dgel, count_cutoff, sample_cutoff=0.1, relative=True, engine=None):
    """Drop genes that are not expressed in enough samples.

    Parameters
    ----------
    dgel : DGEList
    count_cutoff : float
        CPM value a sample has to exceed.
    sample_cutoff : float
        Fraction (relative=True) or number (relative=False) of samples
        that need to exceed count_cutoff for a gene to be kept.
    relative : bool
        How sample_cutoff is interpreted. Absolute numbers are converted
        using all columns of dgel.
    engine : StatisticsEngine, optional
        Supplies the counts per million.

    Returns
    -------
    DGEList with the retained genes and library sizes recomputed from
    the retained raw counts.
    """
    engine = resolve_engine(engine)
    nlib = dgel.ncol
    if not relative:
        sample_cutoff = sample_cutoff / nlib

    expressed = np.sum(np.asarray(engine.cpm(dgel)) > count_cutoff, axis=1) / nlib
    keep = expressed >= sample_cutoff
    out = dgel[keep, :]
    out['samples']['lib.size'] = out['counts'].sum(axis=0)
    return out


def get_offset(dgel):
    """Log effective library sizes, log(lib.size * norm.factors)."""
    lib_size = dgel['samples']['lib.size'].values * dgel['samples']['norm.factors'].values
    if np.any(~np.isfinite(lib_size)) or np.any(lib_size <= 0):
        raise ValueError("library sizes must be positive finite values")
    return np.log(lib_size)


def get_dispersion(dgel):
    """The most complex dispersion stored in a DGEList.

    Returns tagwise, else trended, else common dispersion, else None.
    """
    for key in ('tagwise.dispersion', 'trended.dispersion'):
        if dgel.get(key) is not None:
            return np.asarray(dgel[key])
    if dgel.get('common.dispersion') is not None:
        return np.float64(dgel['common.dispersion'])
    return None
