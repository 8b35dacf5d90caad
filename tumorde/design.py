"""
Design matrices for tumor/normal comparisons.
"""

import numpy as np
import pandas as pd
import patsy


TUMOR = "Tumor"
NORMAL = "Normal"


def design_matrix(sample_names, tumors, normals, only_paired=True):
    """Design matrix ``~ patients + tissue`` for tumor and normal samples.

    Tumor and normal samples of the same individual share a name in
    ``tumors`` and ``normals``, which puts them on the same patient
    level and makes the tissue effect a paired contrast.

    Parameters
    ----------
    sample_names : sequence of str
        Unique row names: all tumor samples, then all normal samples, in
        the same order as the columns of the count matrix analysed with
        this design. This order is not checked.
    tumors : sequence of str
        Patient ids of the tumor samples.
    normals : sequence of str
        Patient ids of the normal samples.
    only_paired : bool
        Keep only tumors that have a normal of the same name.

    Returns
    -------
    DataFrame (samples x coefficients). Columns are ``Intercept``, one
    ``patients[T.<id>]`` column per non-reference patient and
    ``tissue[T.Tumor]`` last.

    Examples
    --------
    >>> design_matrix(['A.t', 'B.t', 'A.n', 'B.n'], ['A', 'B'], ['A', 'B'])
         Intercept  patients[T.B]  tissue[T.Tumor]
    A.t        1.0            0.0              1.0
    B.t        1.0            1.0              1.0
    A.n        1.0            0.0              0.0
    B.n        1.0            1.0              0.0
    """
    patients = list(tumors)
    normals = list(normals)
    if only_paired:
        in_normals = set(normals)
        patients = [p for p in patients if p in in_normals]

    data = pd.DataFrame({
        'patients': pd.Categorical(patients + normals),
        'tissue': pd.Categorical([TUMOR] * len(patients) + [NORMAL] * len(normals),
                                 categories=[NORMAL, TUMOR]),
    })
    design = patsy.dmatrix('~ patients + tissue', data=data, return_type='dataframe')
    design = design.astype(np.float64)
    design.index = pd.Index(sample_names)
    return design
