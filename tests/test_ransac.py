"""Tests for RANSAC robust estimator."""

import numpy as np
import pytest

from robustfit.estimators import RANSACRobustEstimator, RANSACInliersData, UNBOUNDED_ITERATIONS
from robustfit.exceptions import RobustEstimatorError

from conftest import LineListener, NoCandidatesListener, assert_close_to_true_line


class TestRANSAC:
    """Test RANSAC algorithm."""

    def test_ransac_initialization(self):
        """Test RANSAC defaults."""
        ransac = RANSACRobustEstimator()
        assert not ransac.compute_and_keep_inliers
        assert not ransac.compute_and_keep_residuals
        assert ransac.best_inliers_data is None

    def test_ransac_line_fitting(self, line_data, line_listener, seeded_selector):
        """Test RANSAC with line fitting."""
        _, _, is_outlier = line_data
        ransac = RANSACRobustEstimator(line_listener)
        ransac.subset_selector = seeded_selector
        ransac.compute_and_keep_inliers = True
        ransac.compute_and_keep_residuals = True
        ransac.confidence = 0.999

        model = ransac.estimate()

        assert_close_to_true_line(model)
        inliers_data = ransac.inliers_data
        assert isinstance(inliers_data, RANSACInliersData)
        # gross outliers are never part of the consensus set
        assert not np.any(inliers_data.inliers & is_outlier)
        assert inliers_data.num_inliers == np.count_nonzero(inliers_data.inliers)
        assert inliers_data.num_inliers >= 60
        assert np.all(inliers_data.residuals[inliers_data.inliers] <= 0.5)
        assert ransac.n_iters < UNBOUNDED_ITERATIONS
        assert ransac.iterations <= ransac.n_iters

    def test_all_inliers(self, exact_line_listener):
        """Test exact data stops after a single iteration."""
        ransac = RANSACRobustEstimator(exact_line_listener)
        ransac.compute_and_keep_inliers = True
        model = ransac.estimate()

        assert_close_to_true_line(model, tolerance=1e-6)
        assert ransac.best_inliers_data.num_inliers == 50
        assert ransac.n_iters == 1
        assert ransac.iterations == 1

    def test_inliers_not_kept_by_default(self, exact_line_listener):
        """Test no snapshot without keep flags."""
        ransac = RANSACRobustEstimator(exact_line_listener)
        ransac.estimate()
        assert ransac.best_inliers_data is None

    def test_residuals_only(self, exact_line_listener):
        """Test keeping residuals without the inlier mask."""
        ransac = RANSACRobustEstimator(exact_line_listener)
        ransac.compute_and_keep_residuals = True
        ransac.estimate()
        assert ransac.inliers_data.inliers is None
        assert len(ransac.inliers_data.residuals) == 50

    def test_no_candidates(self):
        """Test failure after exactly max_iterations when nothing is ever fitted."""
        listener = NoCandidatesListener(np.arange(10.0), np.arange(10.0))
        ransac = RANSACRobustEstimator(listener)
        ransac.max_iterations = 25

        with pytest.raises(RobustEstimatorError):
            ransac.estimate()
        assert ransac.iterations == 25
        assert ransac.best_result is None
        assert listener.ended == 0

    def test_negative_threshold(self):
        """Test negative listener threshold."""
        listener = LineListener(np.arange(10.0), np.arange(10.0), threshold=-1.0)
        with pytest.raises(RobustEstimatorError):
            RANSACRobustEstimator(listener).estimate()

    def test_inlier_boundary_inclusive(self):
        """Test residual equal to the threshold counts as inlier."""
        class IdentityLineListener(LineListener):
            def estimate_candidates(self, subset_indices, candidates):
                candidates.append((1.0, 0.0))

        x = np.array([0.0, 1.0, 2.0, 3.0])
        y = np.array([0.0, 1.0, 2.0, 4.0])
        ransac = RANSACRobustEstimator(IdentityLineListener(x, y, threshold=1.0))
        ransac.compute_and_keep_inliers = True
        ransac.estimate()
        # y = x leaves the last sample exactly at the threshold
        assert ransac.best_inliers_data.num_inliers == 4
        assert ransac.iterations == 1

    def test_max_iterations_caps_run(self, line_listener):
        """Test the iteration cap."""
        ransac = RANSACRobustEstimator(line_listener)
        ransac.max_iterations = 2
        ransac.estimate()
        assert ransac.iterations <= 2
