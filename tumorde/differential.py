"""
Count-based differential expression between tumor and normal samples.

A filtered DGEList and a design from ``design_matrix`` go through
dispersion estimation and a GLM likelihood ratio test of the tissue
effect.
"""

from .engine import resolve_engine


def estimate_dispersion(dgel, design, engine=None):
    """Run the dispersion estimation steps.

    Common, trended, and tagwise dispersions are estimated in that
    order, each step working on the result of the previous one.

    Parameters
    ----------
    dgel : DGEList
    design : DataFrame or ndarray
        Design matrix with rows in the column order of dgel.
    engine : StatisticsEngine, optional

    Returns
    -------
    DGEList carrying common.dispersion, trended.dispersion,
    tagwise.dispersion and AveLogCPM. The input is not modified.
    """
    engine = resolve_engine(engine)
    dgel = engine.estimate_common_dispersion(dgel, design)
    dgel = engine.estimate_trended_dispersion(dgel, design)
    dgel = engine.estimate_tagwise_dispersion(dgel, design)
    return dgel


def diff_expr(dgel, design, engine=None, coef=None):
    """Test every gene for differential expression.

    Fits genewise negative binomial GLMs to ``design`` and tests the
    fit against the model without ``coef`` (the last design column, the
    tissue effect, by default).

    Parameters
    ----------
    dgel : DGEList
        Output of estimate_dispersion().
    design : DataFrame or ndarray
    engine : StatisticsEngine, optional
    coef : int or str, optional

    Returns
    -------
    DataFrame of all genes ranked by p-value, with logFC, logCPM, LR,
    PValue and FDR columns.
    """
    engine = resolve_engine(engine)
    fit = engine.glm_fit(dgel, design)
    lrt = engine.glm_lrt(fit, coef=coef)
    return engine.top_tags(lrt)
