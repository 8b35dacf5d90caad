"""
Scoring of differentially expressed genes and affected samples.
"""

import operator
import warnings
from enum import Enum

import numpy as np
import pandas as pd

from .classes import ExprAnalysis, ExprSummary
from .engine import resolve_engine
from .errors import PairingFallbackWarning
from .expr_analysis import shared_genes


class Regulation(Enum):
    """Direction of change in tumors that is scored."""

    DOWN = "down"
    UP = "up"

    @property
    def compare(self):
        """Predicate (tumor, normal) -> bool for this direction."""
        return operator.lt if self is Regulation.DOWN else operator.gt

    def threshold(self, mean, sd, stddev):
        """Expression a sample has to reach to count as affected."""
        if self is Regulation.DOWN:
            return mean - stddev * sd
        return mean + stddev * sd

    def reaches(self, values, threshold):
        """Elementwise: values at or beyond threshold in this direction."""
        if self is Regulation.DOWN:
            return values <= threshold
        return values >= threshold


def count_affected_samples(genes, significant, tumors, normals, regulation="down",
                           stddev=1, paired=True):
    """Count tumor samples that deviate from the normal samples.

    For every significant gene, a tumor sample is affected if its value
    is at least ``stddev`` standard deviations below (regulation "down")
    or above ("up") the mean of the normal samples. Genes that are not
    significant have no affected samples.

    Parameters
    ----------
    genes : sequence of str
        Genes to report.
    significant : sequence of str
        Genes that can be affected.
    tumors, normals : DataFrame
        Expression matrices, genes in rows and samples in columns.
    regulation : str or Regulation
    stddev : float
    paired : bool
        Only assess tumors with a normal sample of the same name and use
        those normals as the reference.

    Returns
    -------
    (summary, samples)
        summary: DataFrame with per-gene 'affected' count and 'fraction'
        of assessed samples; samples: boolean DataFrame genes x tumor
        samples.
    """
    regulation = Regulation(regulation)
    genes = list(genes)

    tumor_samples = list(tumors.columns)
    normal_samples = list(normals.columns)
    if paired:
        in_normals = set(normal_samples)
        matched = [s for s in tumor_samples if s in in_normals]
        if matched:
            tumor_samples = normal_samples = matched
        else:
            warnings.warn("No paired expression samples found. Counting all samples!",
                          PairingFallbackWarning, stacklevel=3)

    t = tumors.reindex(index=genes, columns=tumor_samples)
    n = normals.reindex(index=genes, columns=normal_samples)
    mean = n.mean(axis=1, skipna=True)
    sd = n.std(axis=1, skipna=True, ddof=1)
    threshold = regulation.threshold(mean, sd, stddev)

    affected = regulation.reaches(t.to_numpy(dtype=float),
                                  threshold.to_numpy(dtype=float)[:, np.newaxis])
    samples = pd.DataFrame(affected, index=t.index, columns=t.columns)
    samples.loc[~samples.index.isin(list(significant))] = False

    count = samples.sum(axis=1).astype(int)
    summary = pd.DataFrame({
        'affected': count,
        'fraction': count / len(tumor_samples) if tumor_samples else np.nan,
    })
    return summary, samples


def summarize_expr(tumors, normals, analysis, genes=None, fdr=0.05,
                   regulation="down", paired=True, stddev=1, engine=None):
    """Score genes differentially expressed between tumors and normals.

    Parameters
    ----------
    tumors : DataFrame
        Expression matrix, genes in rows and samples in columns.
    normals : DataFrame
        Expression matrix, genes in rows and samples in columns.
    analysis : ExprAnalysis
        Result of do_expr_analysis().
    genes : sequence of str, optional
        Genes to score. Default: all genes in both tumors and normals.
    fdr : float
        Cut-off for the Benjamini-Hochberg adjusted p-values.
    regulation : str or Regulation
        Score down- ("down") or upregulation ("up") in tumors.
    paired : bool
        Whether the analysis was paired.
    stddev : float
        Standard deviations a sample has to be away from the normal mean
        to be affected.
    engine : StatisticsEngine, optional

    Returns
    -------
    ExprSummary with 'scores' (1 for significant genes, else 0),
    'summary' and 'samples' (affected samples), 'analysis' (a new
    ExprAnalysis including the 'wilcox' p-value/FDR table),
    'significant' and 'regulation'.
    """
    regulation = Regulation(regulation)
    engine = resolve_engine(engine)

    universe = shared_genes(tumors, normals, genes)

    pvalues = analysis['pvalues']
    pvalues = pvalues[pvalues.index.isin(universe)]
    exprs = analysis['exprs']
    exprs = exprs[exprs.index.isin(universe)]

    adjusted = pd.Series(np.asarray(engine.p_adjust(pvalues), dtype=float),
                         index=pvalues.index)
    wilcox = pd.DataFrame({'pvalue': pvalues, 'fdr': adjusted})

    candidates = wilcox.index[wilcox['fdr'] <= fdr]
    means = exprs.reindex(candidates)
    direction = regulation.compare(means['tumor'], means['normal'])
    significant = list(means.index[direction.to_numpy(dtype=bool)])

    scores = pd.Series(0, index=pd.Index(universe), name='score', dtype=int)
    scores[significant] = 1

    summary, samples = count_affected_samples(universe, significant, tumors, normals,
                                              regulation, stddev, paired)

    new_analysis = ExprAnalysis(analysis)
    new_analysis['exprs'] = exprs
    new_analysis['pvalues'] = pvalues
    new_analysis['wilcox'] = wilcox

    return ExprSummary(scores=scores, summary=summary, samples=samples,
                       analysis=new_analysis, significant=significant,
                       regulation=regulation)
