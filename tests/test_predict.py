"""
Tests for trajectory prediction on time/covariate grids
"""

import pytest
import numpy as np

from biomarker_mcmc.data import TIME_COLUMN
from biomarker_mcmc.predict import make_grid, predict_band, predict_mean


class TestGrid:

    def test_product_of_levels(self, lq_data):
        """Grid is the product of times and given levels."""
        grid = make_grid(lq_data, times=[0, 6, 12], dose=[0, 30, 60])
        assert len(grid) == 9
        assert list(grid.columns[:2]) == [TIME_COLUMN, 'dose']
        assert grid['bmi'].nunique() == 1
        assert grid['bmi'].iloc[0] == pytest.approx(lq_data.covariate('bmi').mean())

    def test_unknown_covariate(self, lq_data):
        """Levels for unknown covariates are rejected."""
        with pytest.raises(KeyError):
            make_grid(lq_data, times=[0], weight=[70])


class TestPredictMean:

    def test_matches_likelihood_mean(self, lq_model, lq_data, lq_samples):
        """Predictions on the observed rows equal the mean used in the likelihood."""
        grid = lq_data.to_frame()
        means = lq_samples.posterior_means()
        pred = predict_mean(lq_model, lq_samples, grid)
        expected = lq_model.mean(means, lq_data.time, lq_data.covariates)
        np.testing.assert_allclose(pred['mean'].to_numpy(), expected)

    def test_subject_curve_adds_intercept(self, lq_model, lq_data, lq_samples):
        """A subject's curve is offset by its intercept."""
        grid = make_grid(lq_data, times=[0, 3, 6])
        means = lq_samples.posterior_means()
        population = predict_mean(lq_model, means, grid)
        subject_id = lq_data.subject_ids[2]
        subject = predict_mean(lq_model, means, grid, subject=subject_id, data=lq_data)
        np.testing.assert_allclose(subject['mean'] - population['mean'], means['b0'][2])

    def test_subject_requires_data(self, lq_model, lq_data, lq_samples):
        """Subject lookup needs the fitted data."""
        grid = make_grid(lq_data, times=[0])
        with pytest.raises(ValueError):
            predict_mean(lq_model, lq_samples, grid, subject=1)

    def test_missing_grid_column(self, lq_model, lq_data, lq_samples):
        """Grid must hold every model covariate."""
        grid = make_grid(lq_data, times=[0]).drop(columns=['age'])
        with pytest.raises(KeyError):
            predict_mean(lq_model, lq_samples, grid)


class TestPredictBand:

    def test_band_brackets_mean(self, lq_model, lq_data, lq_samples):
        """lower <= mean <= upper at every grid point."""
        grid = make_grid(lq_data, times=np.linspace(0, 12, 7), dose=[0, 60])
        band = predict_band(lq_model, lq_samples, grid, n_draws=100, seed=0)
        assert np.all(band['lower'] <= band['mean'])
        assert np.all(band['mean'] <= band['upper'])

    def test_subset_reproducible(self, lq_model, lq_data, lq_samples):
        """Draw subsets are reproducible from the seed."""
        grid = make_grid(lq_data, times=[0, 12])
        a = predict_band(lq_model, lq_samples, grid, n_draws=50, seed=3)
        b = predict_band(lq_model, lq_samples, grid, n_draws=50, seed=3)
        np.testing.assert_array_equal(a['upper'], b['upper'])

    def test_all_draws_mean_equals_point_prediction(self, lq_model, lq_data, lq_samples):
        """The mean function is linear in beta, so averaging curves equals the curve at the mean."""
        grid = make_grid(lq_data, times=[0, 6, 12])
        band = predict_band(lq_model, lq_samples, grid)
        point = predict_mean(lq_model, lq_samples, grid)
        np.testing.assert_allclose(band['mean'], point['mean'], rtol=1e-9)
