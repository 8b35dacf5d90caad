"""
The statistics engine used by the analysis pipeline.

Every numerical step the pipeline needs goes through one
``StatisticsEngine`` instance. The default methods call the in-package
implementations; subclass and override a method to use a different back
end for that step. Failures raised by an engine are never caught by the
pipeline.
"""

from . import dispersion as _dispersion
from .expression import cpm
from .glm_fit import glm_fit
from .glm_test import glm_lrt
from .rank_test import rank_sum_test
from .results import p_adjust_bh, top_tags


class StatisticsEngine:
    """Default statistics engine.

    Parameters
    ----------
    prior_df : float
        Prior degrees of freedom for tagwise dispersion shrinkage.
    trend_method : str
        'auto', 'power' or 'bin' trended dispersion.
    verbose : bool
        Print the common dispersion estimate.
    """

    def __init__(self, prior_df=10, trend_method='auto', verbose=False):
        self.prior_df = prior_df
        self.trend_method = trend_method
        self.verbose = verbose

    def cpm(self, dgel):
        return cpm(dgel)

    def estimate_common_dispersion(self, dgel, design):
        return _dispersion.estimate_glm_common_disp(dgel, design, verbose=self.verbose)

    def estimate_trended_dispersion(self, dgel, design):
        return _dispersion.estimate_glm_trended_disp(dgel, design, method=self.trend_method)

    def estimate_tagwise_dispersion(self, dgel, design):
        return _dispersion.estimate_glm_tagwise_disp(dgel, design, prior_df=self.prior_df)

    def glm_fit(self, dgel, design):
        return glm_fit(dgel, design)

    def glm_lrt(self, fit, coef=None):
        return glm_lrt(fit, coef=coef)

    def top_tags(self, lrt):
        return top_tags(lrt)

    def rank_sum_test(self, x, y, paired):
        return rank_sum_test(x, y, paired=paired)

    def p_adjust(self, pvalues):
        return p_adjust_bh(pvalues)

    def __repr__(self):
        return (f"{type(self).__name__}(prior_df={self.prior_df}, "
                f"trend_method='{self.trend_method}')")


def resolve_engine(engine=None):
    """Return engine, or a default StatisticsEngine when None."""
    return StatisticsEngine() if engine is None else engine
