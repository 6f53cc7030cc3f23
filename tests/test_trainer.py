import numpy as np
import pytest

from pca_anomaly import (
    EmptyDataError,
    InvalidConfigurationError,
    PcaConfig,
    PcaModel,
    RandomizedPcaTrainer,
    SkippedRowWarning,
    SparseVector,
    TrainerFactory,
    TrainerType,
    WeightedSample,
    train_pca_anomaly,
)

OFFSET = np.array([1.0, -2.0, 0.5, 0.0])


def make_plane_data(n=100, seed=12345):
    """Rows near a 2-D plane: strong spread on axes 0 and 1, tiny noise elsewhere."""
    rng = np.random.default_rng(seed)
    data = np.zeros((n, 4))
    data[:, 0] = rng.normal(0.0, 0.5, size=n)
    data[:, 1] = rng.normal(0.0, 0.2, size=n)
    data[:, 2:] = rng.normal(0.0, 1e-3, size=(n, 2))
    return data + OFFSET


class TestRandomizedPcaTrainer:
    def setup_method(self):
        self.data = make_plane_data()
        self.trainer = RandomizedPcaTrainer(rank=2, oversampling=2, seed=42)

    def test_recovers_the_principal_axes(self):
        model = self.trainer.train(self.data)

        assert model.dimension == 4
        assert model.rank == 2
        vectors = model.get_eigenvectors().astype(np.float64)
        vectors /= np.linalg.norm(vectors, axis=1, keepdims=True)
        assert abs(vectors[0, 0]) > 0.95
        assert abs(vectors[1, 1]) > 0.95
        assert np.sum(vectors[:, 2:] ** 2) < 0.05

    def test_mean_is_the_training_mean(self):
        model = self.trainer.train(self.data)
        np.testing.assert_allclose(model.mean, self.data.mean(axis=0), rtol=1e-6, atol=1e-6)

    def test_training_points_score_low(self):
        model = self.trainer.train(self.data)
        distances = np.linalg.norm(self.data - self.data.mean(axis=0), axis=1)
        farthest = self.data[np.argmax(distances)]

        assert model.score(farthest) < 0.05
        assert np.all(model.score_batch(self.data) < 0.05)

    def test_outlier_scores_high(self):
        model = self.trainer.train(self.data)
        outlier = model.mean.astype(np.float64) + np.array([0.0, 0.0, 10.0, 0.0])
        assert model.score(outlier) > 0.99

    def test_statistics(self):
        self.trainer.train(self.data)
        statistics = self.trainer.get_last_result().statistics

        assert statistics["rows"] == 100
        assert statistics["skipped_rows"] == 0
        assert statistics["total_weight"] == pytest.approx(100.0)
        assert statistics["oversampled_rank"] == 4
        assert statistics["seed"] == 42
        assert statistics["eigen_solver"] == "numpy"
        assert len(statistics["eigenvalues"]) == 4
        assert np.all(np.diff(statistics["eigenvalues"]) <= 0)

    def test_same_seed_gives_same_model(self):
        first = RandomizedPcaTrainer(rank=2, oversampling=2, seed=7).train(self.data)
        second = RandomizedPcaTrainer(rank=2, oversampling=2, seed=7).train(self.data)

        np.testing.assert_allclose(first.eigenvectors, second.eigenvectors, rtol=1e-6, atol=1e-6)
        np.testing.assert_array_equal(first.mean, second.mean)

    def test_process_seed_is_recorded(self):
        trainer = RandomizedPcaTrainer(rank=2, oversampling=2)
        model = trainer.train(self.data)
        seed = trainer.get_last_result().statistics["seed"]
        assert isinstance(seed, int)

        replay = RandomizedPcaTrainer(rank=2, oversampling=2, seed=seed).train(self.data)
        np.testing.assert_allclose(replay.eigenvectors, model.eigenvectors, rtol=1e-6, atol=1e-6)

    def test_full_rank(self):
        rng = np.random.default_rng(99)
        data = rng.normal(0.0, 0.3, size=(200, 5))
        model = RandomizedPcaTrainer(rank=5, oversampling=0, seed=1).train(data)

        assert model.rank == 5
        assert np.mean(model.score_batch(data)) < 0.05

    def test_rank_deficient_data(self):
        """Oversampled rank is clamped to the dimension and dependent directions are zeroed."""
        rng = np.random.default_rng(4)
        data = np.zeros((60, 4))
        data[:, 0] = rng.normal(1.0, 0.5, size=60)
        data[:, 1] = rng.normal(-1.0, 0.2, size=60)

        trainer = RandomizedPcaTrainer(rank=3, oversampling=10, seed=3)
        model = trainer.train(data)
        statistics = trainer.get_last_result().statistics

        assert statistics["oversampled_rank"] == 4
        assert statistics["degenerate_rows"] == 2
        assert np.all(np.isfinite(model.eigenvectors))
        assert np.linalg.norm(model.eigenvectors[2]) < 1e-6

    def test_uncentered(self):
        model = RandomizedPcaTrainer(rank=2, oversampling=2, center=False, seed=5).train(self.data)
        assert not model.center
        assert model.mean is None

    def test_sparse_rows_match_dense_rows(self):
        samples = [WeightedSample(SparseVector.from_dense(row)) for row in self.data]
        sparse_model = self.trainer.train(samples)
        dense_model = RandomizedPcaTrainer(rank=2, oversampling=2, seed=42).train(self.data)

        queries = np.random.default_rng(1).normal(size=(20, 4)) + OFFSET
        np.testing.assert_allclose(
            sparse_model.score_batch(queries), dense_model.score_batch(queries), atol=1e-5
        )

    def test_scipy_solver_matches_numpy(self):
        numpy_model = self.trainer.train(self.data)
        scipy_model = RandomizedPcaTrainer(
            rank=2, oversampling=2, seed=42, eigen_solver="scipy"
        ).train(self.data)

        queries = np.random.default_rng(2).normal(size=(20, 4)) + OFFSET
        np.testing.assert_allclose(
            scipy_model.score_batch(queries), numpy_model.score_batch(queries), atol=1e-5
        )

    def test_skipped_rows_warn(self):
        samples = [WeightedSample(row) for row in self.data]
        samples.append(WeightedSample(None, 1.0))
        samples.append(WeightedSample(self.data[0], -1.0))

        with pytest.warns(SkippedRowWarning, match="Skipped 2"):
            self.trainer.train(samples)
        assert self.trainer.get_last_result().statistics["skipped_rows"] == 2

    def test_zero_total_weight(self):
        samples = [WeightedSample(row, 0.0) for row in self.data]
        with pytest.raises(EmptyDataError):
            self.trainer.train(samples)

    def test_rank_larger_than_dimension(self):
        trainer = RandomizedPcaTrainer(rank=5, seed=1)
        with pytest.raises(InvalidConfigurationError):
            trainer.train(self.data)

    def test_config_and_kwargs_are_exclusive(self):
        with pytest.raises(InvalidConfigurationError):
            RandomizedPcaTrainer(PcaConfig(rank=2), rank=3)

    def test_unknown_solver(self):
        with pytest.raises(InvalidConfigurationError):
            RandomizedPcaTrainer(rank=2, eigen_solver="power")

    def test_model_survives_serialization(self):
        model = self.trainer.train(self.data)
        restored = PcaModel.from_bytes(model.to_bytes())
        np.testing.assert_array_equal(restored.score_batch(self.data), model.score_batch(self.data))

    def test_progress_callback(self):
        counts = []
        trainer = RandomizedPcaTrainer(rank=2, oversampling=2, seed=42, progress_interval=25)
        trainer.train(self.data, progress=counts.append)

        # Two passes, each ending with the full row count
        assert counts.count(100) >= 2


class TestTrainerFactory:
    @pytest.mark.parametrize("name", ["pcaAnomaly", "pcaAnom", "PCA Anomaly Detector", "pcaanomaly"])
    def test_create_by_name(self, name):
        trainer = TrainerFactory.create_trainer(name, rank=3)
        assert isinstance(trainer, RandomizedPcaTrainer)
        assert trainer.config.rank == 3

    def test_create_by_type(self):
        trainer = TrainerFactory.create_trainer(TrainerType.PCA_ANOMALY)
        assert trainer.config.rank == 20

    def test_unknown_name(self):
        with pytest.raises(InvalidConfigurationError, match="Unknown trainer"):
            TrainerFactory.create_trainer("kmeans")

    def test_available_names(self):
        assert TrainerFactory.get_available_names() == [
            "pcaAnomaly",
            "pcaAnom",
            "PCA Anomaly Detector",
        ]


class TestTrainPcaAnomaly:
    def test_weighted_array(self):
        data = make_plane_data(n=50)
        weights = np.linspace(0.5, 1.5, 50)
        model = train_pca_anomaly(data, weights, rank=2, oversampling=1, seed=3)

        expected_mean = weights @ data / weights.sum()
        np.testing.assert_allclose(model.mean, expected_mean, rtol=1e-6, atol=1e-6)
        assert model.rank == 2
