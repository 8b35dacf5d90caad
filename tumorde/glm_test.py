"""
Likelihood ratio tests for genewise negative binomial GLMs.
"""

import numpy as np
import pandas as pd
from scipy.stats import chi2

from .classes import DGELRT
from .glm_fit import glm_fit


def glm_lrt(glmfit, coef=None):
    """Likelihood ratio test for one GLM coefficient.

    The model in ``glmfit`` is compared with the null model obtained by
    dropping the tested column from its design.

    Parameters
    ----------
    glmfit : DGEGLM
        Fitted GLM from glm_fit().
    coef : int or str, optional
        Coefficient to test, by position or design column name. Default
        is the last column.

    Returns
    -------
    DGELRT with 'table' (logFC, logCPM, LR, PValue), 'comparison',
    'df.test'.
    """
    design = np.asarray(glmfit['design'], dtype=np.float64)
    nbeta = design.shape[1]
    if nbeta < 2:
        raise ValueError("Need at least two columns for design")

    coef_names = glmfit.get('coef.names') or [f'coef{i}' for i in range(nbeta)]
    if coef is None:
        coef = nbeta - 1
    elif isinstance(coef, str):
        if coef not in coef_names:
            raise ValueError(f"Coefficient '{coef}' not found in design: {coef_names}")
        coef = coef_names.index(coef)

    logFC = glmfit['coefficients'][:, coef] / np.log(2)

    design0 = np.delete(design, coef, axis=1)
    fit_null = glm_fit(glmfit['counts'], design0, dispersion=glmfit['dispersion'],
                       offset=glmfit['offset'])

    LR = fit_null['deviance'] - glmfit['deviance']
    df_test = int(fit_null['df.residual'][0] - glmfit['df.residual'][0])
    pvalue = chi2.sf(np.maximum(LR, 0), df=df_test)

    index = glmfit['genes'].index if glmfit.get('genes') is not None else None
    table = pd.DataFrame({
        'logFC': logFC,
        'logCPM': glmfit.get('AveLogCPM'),
        'LR': LR,
        'PValue': pvalue,
    }, index=index)

    result = DGELRT(glmfit)
    result.pop('counts', None)
    result['table'] = table
    result['comparison'] = coef_names[coef]
    result['df.test'] = df_test
    return result
