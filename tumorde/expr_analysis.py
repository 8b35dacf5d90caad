"""
Rank-based comparison of tumor and normal expression matrices.
"""

import pandas as pd
import warnings

from .classes import ExprAnalysis
from .engine import resolve_engine
from .errors import EmptySelectionError, NoOverlapError, PairingFallbackWarning
from .rank_test import rank_sum_by_gene
from .selection import do_filter


def select_samples(tumor_samples, normal_samples, samples=None, paired=True):
    """Align tumor and normal samples, falling back to unpaired.

    If a paired selection is requested but no sample is present in
    both groups, a PairingFallbackWarning is issued and the unpaired
    selection is returned.

    Returns
    -------
    (list, list, bool)
        Tumor samples, normal samples, and whether they are paired.
    """
    if paired:
        try:
            sel_t, sel_n = do_filter(tumor_samples, normal_samples, samples, True)
            return sel_t, sel_n, True
        except EmptySelectionError:
            warnings.warn("No paired expression samples found. Performing unpaired analysis!",
                          PairingFallbackWarning, stacklevel=3)
    sel_t, sel_n = do_filter(tumor_samples, normal_samples, samples, False)
    return sel_t, sel_n, False


def shared_genes(tumors, normals, genes=None):
    """Sorted genes present in both matrices and in genes (if given)."""
    try:
        return do_filter(tumors.index, normals.index, genes, True)[0]
    except EmptySelectionError as e:
        raise NoOverlapError(
            "No gene of interest is contained in gene expression data "
            "of both tumors and normals!") from e


def do_expr_analysis(tumors, normals, genes=None, samples=None, paired=True,
                     engine=None):
    """Compare expression of tumor and normal samples gene by gene.

    Parameters
    ----------
    tumors : DataFrame
        Expression matrix, genes in rows and samples in columns.
    normals : DataFrame
        Expression matrix, genes in rows and samples in columns.
    genes : sequence of str, optional
        Genes to analyse. Default: all genes found in both matrices.
    samples : sequence of str, optional
        Samples to use. Default: all samples.
    paired : bool
        Whether to run the paired test. Tumor and normal samples of the
        same individual must have the same column name.
    engine : StatisticsEngine, optional

    Returns
    -------
    ExprAnalysis with 'exprs' (mean expression across tumors and
    normals), 'pvalues' (Wilcoxon test p-values) and 'paired' (the test
    variant used).

    Raises
    ------
    NoOverlapError
        If no gene of interest is in both matrices.
    """
    engine = resolve_engine(engine)
    selected_genes = shared_genes(tumors, normals, genes)
    sel_t, sel_n, paired = select_samples(tumors.columns, normals.columns,
                                          samples, paired)

    tumors = tumors.loc[selected_genes, sel_t]
    normals = normals.loc[selected_genes, sel_n]

    exprs = pd.DataFrame({
        'tumor': tumors.mean(axis=1, skipna=True),
        'normal': normals.mean(axis=1, skipna=True),
    })

    pvalues = rank_sum_by_gene(tumors, normals, paired, test=engine.rank_sum_test)

    return ExprAnalysis(exprs=exprs, pvalues=pvalues, paired=paired)
