"""Tests for common, trended and tagwise dispersion estimation."""

import numpy as np
import pytest

import tumorde as td
from tumorde.dispersion import adjusted_profile_lik, disp_cox_reid


@pytest.fixture
def nb_counts(rng):
    """200 genes x 6 samples drawn with dispersion 0.2 around one mean."""
    mu = rng.uniform(20, 2000, size=(200, 1)) * np.ones((1, 6))
    size = 1 / 0.2
    return rng.negative_binomial(size, size / (size + mu)).astype(np.float64)


@pytest.fixture
def two_group_design():
    return np.column_stack([np.ones(6), [0, 0, 0, 1, 1, 1]])


class TestCommonDispersion:

    def test_recovers_true_value(self, nb_counts, two_group_design):
        d = td.estimate_glm_common_disp(nb_counts, two_group_design)
        assert 0.1 < d < 0.35

    def test_apl_peaks_near_estimate(self, nb_counts, two_group_design):
        offset = np.log(nb_counts.sum(axis=0))
        d = disp_cox_reid(nb_counts, two_group_design, offset)
        at = adjusted_profile_lik(d, nb_counts, two_group_design, offset).sum()
        assert at >= adjusted_profile_lik(d * 2, nb_counts, two_group_design, offset).sum()
        assert at >= adjusted_profile_lik(d / 2, nb_counts, two_group_design, offset).sum()

    def test_no_residual_df_warns(self):
        y = np.array([[5, 10], [3, 8]], dtype=float)
        with pytest.warns(UserWarning, match="No residual df"):
            d = td.estimate_glm_common_disp(y, np.eye(2))
        assert np.isnan(d)

    def test_dgelist_copy(self, paired_counts):
        counts, patients = paired_counts
        dge = td.make_dgelist(counts)
        design = td.design_matrix(list(counts.columns), patients, patients)
        out = td.estimate_glm_common_disp(dge, design)
        assert 'common.dispersion' in out
        assert 'common.dispersion' not in dge
        assert out['AveLogCPM'].shape == (dge.nrow,)

    def test_verbose_prints(self, nb_counts, two_group_design, capsys):
        td.estimate_glm_common_disp(nb_counts, two_group_design, verbose=True)
        assert "BCV" in capsys.readouterr().out

    def test_no_usable_rows(self):
        with pytest.raises(td.StatisticsEngineError):
            disp_cox_reid(np.zeros((3, 4)), np.ones((4, 1)), np.zeros(4))


class TestTrendedDispersion:

    @pytest.mark.parametrize("method", ["power", "bin"])
    def test_positive_and_finite(self, nb_counts, two_group_design, method):
        t = td.estimate_glm_trended_disp(nb_counts, two_group_design, method=method)
        assert t.shape == (200,)
        assert np.all(np.isfinite(t))
        assert np.all(t > 0)

    def test_bad_method(self, nb_counts, two_group_design):
        with pytest.raises(ValueError, match="method"):
            td.estimate_glm_trended_disp(nb_counts, two_group_design, method='loess')


class TestTagwiseDispersion:

    def test_positive_and_shrunk(self, nb_counts, two_group_design):
        common = td.estimate_glm_common_disp(nb_counts, two_group_design)
        tag = td.estimate_glm_tagwise_disp(nb_counts, two_group_design,
                                           dispersion=common, trend=False)
        assert tag.shape == (200,)
        assert np.all(tag > 0)
        assert 0.05 < np.median(tag) < 0.5

    def test_large_prior_df_pulls_to_trend(self, nb_counts, two_group_design):
        trend = td.estimate_glm_trended_disp(nb_counts, two_group_design)
        loose = td.estimate_glm_tagwise_disp(nb_counts, two_group_design,
                                             dispersion=trend, prior_df=1)
        tight = td.estimate_glm_tagwise_disp(nb_counts, two_group_design,
                                             dispersion=trend, prior_df=1000)
        spread = lambda x: np.mean(np.abs(np.log(x) - np.log(trend)))
        assert spread(tight) < spread(loose)

    def test_missing_previous_step(self, paired_counts):
        counts, patients = paired_counts
        dge = td.make_dgelist(counts)
        design = td.design_matrix(list(counts.columns), patients, patients)
        with pytest.raises(ValueError, match="trended.dispersion"):
            td.estimate_glm_tagwise_disp(dge, design)
