"""
Basic usage examples for pypca-anomaly.

Demonstrates the main functionality and typical workflows.
"""

import numpy as np

from pca_anomaly import (
    PcaModel,
    RandomizedPcaTrainer,
    SparseVector,
    WeightedSample,
    get_package_info,
    train_pca_anomaly,
)


def create_test_data(rows=2000, dimension=50, intrinsic_rank=5, seed=0):
    """Create synthetic rows lying close to a low-dimensional subspace."""
    rng = np.random.default_rng(seed)
    basis, _ = np.linalg.qr(rng.normal(size=(dimension, intrinsic_rank)))
    coefficients = rng.normal(size=(rows, intrinsic_rank)) * 0.5
    noise = 1e-3 * rng.normal(size=(rows, dimension))
    return coefficients @ basis.T + noise + 3.0


def example_basic_training():
    """Train on a feature array and score normal rows and outliers."""
    print("=== Basic Training ===")

    data = create_test_data()
    model = train_pca_anomaly(data, rank=5, oversampling=10, seed=42)

    print(f"Model: {model}")

    normal_scores = model.score_batch(data[:5])
    outlier = data[0] + np.random.default_rng(1).normal(size=data.shape[1])
    print(f"Scores of training rows: {np.round(normal_scores, 4)}")
    print(f"Score of an outlier: {model.score(outlier):.4f}")

    return model


def example_weighted_rows():
    """Train from weighted samples, including a sparse row and a bad row."""
    print("\n=== Weighted and Sparse Rows ===")

    data = create_test_data(rows=500, dimension=20, intrinsic_rank=3)
    samples = [WeightedSample(row, weight=1.0 + (i % 3)) for i, row in enumerate(data)]
    samples.append(WeightedSample(SparseVector(20, [0, 5], [3.0, 3.0]), weight=0.5))
    samples.append(WeightedSample(None, weight=1.0))  # unreadable row, skipped

    trainer = RandomizedPcaTrainer(rank=3, oversampling=5, seed=7)
    model = trainer.train(samples)

    statistics = trainer.get_last_result().statistics
    print(f"Rows used: {statistics['rows']}, skipped: {statistics['skipped_rows']}")
    print(f"Total weight: {statistics['total_weight']:.1f}")

    return model


def example_save_and_load(model):
    """Persist a model and print its summary."""
    print("\n=== Save and Load ===")

    model.save("example_model.pca")
    restored = PcaModel.load("example_model.pca")
    print("Saved and reloaded: example_model.pca")

    with open("example_model.txt", "w", encoding="utf-8") as handle:
        restored.save_text(handle)
    print("Summary written: example_model.txt")

    for name, vector in restored.get_summary()[:2]:
        print(f"{name}: first values {np.round(vector[:4], 4)}")


def example_package_info():
    """Show package information."""
    print("\n=== Package Information ===")

    for key, value in get_package_info().items():
        print(f"{key}: {value}")


if __name__ == "__main__":
    model = example_basic_training()
    example_weighted_rows()
    example_save_and_load(model)
    example_package_info()
