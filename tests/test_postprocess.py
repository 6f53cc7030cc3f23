import numpy as np
import pytest

from pca_anomaly import postprocess_subspace
from pca_anomaly.eigen import gram_matrix, symmetric_eigh
from pca_anomaly.postprocess import PINV_REGULARIZATION, regularized_pinv


class TestPostprocessSubspace:
    def setup_method(self):
        rng = np.random.default_rng(5)
        self.b = rng.normal(size=(4, 10))
        self.eigenvalues, self.eigenvectors = symmetric_eigh(gram_matrix(self.b))

    def test_matches_explicit_formula(self):
        expected = np.diag(regularized_pinv(self.eigenvalues)) @ self.eigenvectors.T @ self.b
        result = postprocess_subspace(self.b.copy(), self.eigenvalues, self.eigenvectors)
        np.testing.assert_allclose(result, expected, atol=1e-12)

    def test_in_place(self):
        b = self.b.copy()
        assert postprocess_subspace(b, self.eigenvalues, self.eigenvectors) is b

    def test_block_size_does_not_change_the_result(self):
        full = postprocess_subspace(self.b.copy(), self.eigenvalues, self.eigenvectors)
        blocked = postprocess_subspace(self.b.copy(), self.eigenvalues, self.eigenvectors, block_size=3)
        np.testing.assert_allclose(blocked, full, atol=1e-14)

    def test_scaled_eigenvectors_of_diagonal_covariance(self):
        """With B = A Q and Q = I, row j becomes lambda_j / (1e-6 + lambda_j^2) u_j."""
        covariance = np.diag([4.0, 2.0, 1.0])
        b = covariance.copy()
        eigenvalues, eigenvectors = symmetric_eigh(gram_matrix(b))
        np.testing.assert_allclose(eigenvalues, [16.0, 4.0, 1.0])

        rows = postprocess_subspace(b, eigenvalues, eigenvectors)
        lambdas = np.array([4.0, 2.0, 1.0])
        expected_norms = lambdas / (PINV_REGULARIZATION + lambdas**2)
        np.testing.assert_allclose(np.linalg.norm(rows, axis=1), expected_norms, rtol=1e-12)
        np.testing.assert_allclose(np.abs(rows), np.diag(expected_norms), atol=1e-15)

    def test_zero_eigenvalue_stays_finite(self):
        b = np.zeros((2, 3))
        b[0, 0] = 1.0
        eigenvalues, eigenvectors = symmetric_eigh(gram_matrix(b))
        rows = postprocess_subspace(b, eigenvalues, eigenvectors)

        assert np.all(np.isfinite(rows))
        np.testing.assert_allclose(rows[1], 0.0, atol=1e-15)

    def test_shape_mismatch(self):
        with pytest.raises(ValueError):
            postprocess_subspace(self.b.copy(), self.eigenvalues[:3], self.eigenvectors)
