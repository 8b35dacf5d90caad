"""
tumorde: differential expression between tumor and normal samples.

Count data are analysed with negative binomial GLMs and empirical
dispersion estimates; normalized expression data with Wilcoxon tests,
Benjamini-Hochberg correction, gene scores and affected-sample counts.
"""

__version__ = "0.1.0"

# --- Classes ---
from .classes import DGEList, DGEGLM, DGELRT, ExprAnalysis, ExprSummary

# --- Errors and warnings ---
from .errors import (
    EmptySelectionError,
    NoOverlapError,
    StatisticsEngineError,
    PairingFallbackWarning,
)

# --- Identifier alignment ---
from .selection import do_filter

# --- Count data ---
from .dgelist import make_dgelist, filter_dgelist, get_offset, get_dispersion
from .expression import cpm, ave_log_cpm
from .design import design_matrix

# --- Statistics engine ---
from .engine import StatisticsEngine
from .dispersion import (
    estimate_glm_common_disp,
    estimate_glm_trended_disp,
    estimate_glm_tagwise_disp,
)
from .glm_fit import glm_fit, mglm_one_group, nbinom_deviance
from .glm_test import glm_lrt
from .results import top_tags, p_adjust_bh
from .rank_test import rank_sum_test

# --- Analyses ---
from .differential import estimate_dispersion, diff_expr
from .expr_analysis import do_expr_analysis
from .summary import Regulation, summarize_expr, count_affected_samples
