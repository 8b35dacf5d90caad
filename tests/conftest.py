"""Shared fixtures for tumorde tests."""

import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def rng():
    """Seeded random number generator for reproducibility."""
    return np.random.RandomState(42)


@pytest.fixture
def paired_counts(rng):
    """Negative binomial counts: 60 genes x 4 patients, tumor then normal.

    Genes G001-G005 are 8-fold up and G006-G010 8-fold down in tumors.
    """
    ngenes, npat = 60, 4
    base = rng.uniform(50, 500, size=(ngenes, 1))
    patient_effect = rng.uniform(0.7, 1.4, size=(1, npat))
    mu_normal = base * patient_effect
    mu_tumor = mu_normal.copy()
    mu_tumor[:5] *= 8
    mu_tumor[5:10] /= 8
    mu = np.hstack([mu_tumor, mu_normal])
    size = 10.0
    counts = rng.negative_binomial(size, size / (size + mu)).astype(np.float64)
    patients = [f"P{i + 1}" for i in range(npat)]
    columns = [f"{p}.T" for p in patients] + [f"{p}.N" for p in patients]
    genes = [f"G{i + 1:03d}" for i in range(ngenes)]
    return pd.DataFrame(counts, index=genes, columns=columns), patients


@pytest.fixture
def expr_pair():
    """Tumor and normal log-expression, 4 genes x 6 paired samples.

    GUP is higher and GDOWN lower in every tumor; GFLAT and GMIX are not
    consistently changed.
    """
    samples = ["S1", "S2", "S3", "S4", "S5", "S6"]
    normals = pd.DataFrame({
        "S1": [5.0, 5.0, 5.0, 5.0],
        "S2": [5.2, 5.3, 5.1, 4.8],
        "S3": [4.9, 4.7, 5.2, 5.1],
        "S4": [5.1, 5.0, 4.9, 5.3],
        "S5": [4.8, 5.1, 5.0, 4.9],
        "S6": [5.0, 4.9, 5.1, 5.0],
    }, index=["GUP", "GDOWN", "GFLAT", "GMIX"])
    shift = pd.DataFrame({
        s: [3.0 + 0.1 * i, -3.0 - 0.1 * i, 0.0, (-1) ** i * 0.5]
        for i, s in enumerate(samples)
    }, index=normals.index)
    tumors = normals + shift
    return tumors, normals
