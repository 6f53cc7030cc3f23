"""
Automatic accuracy validation of the randomized PCA trainer with detailed logging.

Generates synthetic low-rank data sets with known structure, trains models
with several (rank, oversampling) settings and compares them against the
exact eigendecomposition of the sample covariance matrix:

- principal angles between the learned and the exact subspaces
- separation between the scores of held-out normal rows and injected outliers

All results of a run are stored in a single timestamped folder for review.
Requires the ``validation`` extra (matplotlib).
"""

import datetime
import json
import logging
from collections import defaultdict
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np

from pca_anomaly import RandomizedPcaTrainer

# Largest principal angle (degrees) per status
ANGLE_THRESHOLDS = {"EXCELLENT": 1.0, "GOOD": 5.0, "ACCEPTABLE": 15.0}

DEFAULT_CASES = [
    # (name, dimension, intrinsic rank, rows, rank, oversampling)
    ("small", 20, 3, 2000, 3, 5),
    ("small_no_oversampling", 20, 3, 2000, 3, 0),
    ("medium", 200, 10, 5000, 10, 20),
    ("wide", 1000, 15, 3000, 15, 20),
    ("full_rank", 12, 12, 2000, 12, 0),
]


def make_low_rank_data(rng, rows, dimension, intrinsic_rank, noise=1e-3):
    """Rows spread over a random ``intrinsic_rank`` subspace plus isotropic noise."""
    basis, _ = np.linalg.qr(rng.normal(size=(dimension, intrinsic_rank)))
    scales = np.linspace(0.8, 0.2, intrinsic_rank)
    coefficients = rng.normal(size=(rows, intrinsic_rank)) * scales
    offset = rng.normal(size=dimension)
    return coefficients @ basis.T + noise * rng.normal(size=(rows, dimension)) + offset, basis


def principal_angles_degrees(learned, exact):
    """Principal angles between the row spaces of two (k x d) matrices."""
    q_learned, _ = np.linalg.qr(learned.T)
    q_exact, _ = np.linalg.qr(exact.T)
    cosines = np.linalg.svd(q_learned.T @ q_exact, compute_uv=False)
    return np.degrees(np.arccos(np.clip(cosines, -1.0, 1.0)))


class AccuracyValidator:
    """Validator for the randomized PCA trainer with logging."""

    def __init__(self, output_base_dir="validation_results", seed=2024):
        self.results = []
        self.seed = seed

        self.timestamp = datetime.datetime.now().strftime("%Y-%m-%d_%H%M%S")
        self.results_dir = Path(output_base_dir) / f"review_{self.timestamp}"
        self.results_dir.mkdir(parents=True, exist_ok=True)

        self.logger = self._setup_logging()
        self.logger.info(f"Validator initialized. All results will be saved to: {self.results_dir}")

    def _setup_logging(self):
        logger = logging.getLogger(__name__)
        logger.setLevel(logging.INFO)

        if logger.hasHandlers():
            logger.handlers.clear()

        formatter = logging.Formatter("%(asctime)s | %(levelname)s | %(message)s")

        log_filepath = self.results_dir / f"validation_log_{self.timestamp}.log"
        file_handler = logging.FileHandler(log_filepath, encoding="utf-8")
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(formatter)

        stream_handler = logging.StreamHandler()
        stream_handler.setLevel(logging.INFO)
        stream_handler.setFormatter(formatter)

        logger.addHandler(file_handler)
        logger.addHandler(stream_handler)

        logger.info("=" * 80)
        logger.info("PCA ANOMALY VALIDATION LOG STARTED")
        logger.info(f"Results Directory: {self.results_dir.resolve()}")
        logger.info("=" * 80)

        return logger

    @staticmethod
    def classify(max_angle):
        for status, threshold in ANGLE_THRESHOLDS.items():
            if max_angle <= threshold:
                return status
        return "NEEDS_ADJUSTMENT"

    def validate_case(self, name, dimension, intrinsic_rank, rows, rank, oversampling):
        """Train on one synthetic data set and compare with the exact solution."""
        self.logger.info(
            f"Validating '{name}': d={dimension}, intrinsic rank={intrinsic_rank}, "
            f"rows={rows}, rank={rank}, oversampling={oversampling}"
        )
        rng = np.random.default_rng(self.seed)
        data, _ = make_low_rank_data(rng, rows, dimension, intrinsic_rank)
        train, held_out = data[: rows * 4 // 5], data[rows * 4 // 5 :]

        try:
            trainer = RandomizedPcaTrainer(rank=rank, oversampling=oversampling, seed=self.seed)
            model = trainer.train(train)
        except Exception as e:
            self.logger.exception(f"CRITICAL VALIDATION ERROR for {name}: {e}")
            return None
        statistics = trainer.get_last_result().statistics

        centered = train - train.mean(axis=0)
        covariance = centered.T @ centered / train.shape[0]
        eigenvalues, eigenvectors = np.linalg.eigh(covariance)
        exact = eigenvectors[:, ::-1][:, :rank].T

        angles = principal_angles_degrees(model.get_eigenvectors().astype(np.float64), exact)

        # Outliers: held-out rows pushed along directions orthogonal to the data
        directions = rng.normal(size=held_out.shape)
        directions -= (directions @ exact.T) @ exact
        directions /= np.linalg.norm(directions, axis=1, keepdims=True)
        outliers = held_out + 5.0 * directions

        normal_scores = model.score_batch(held_out)
        outlier_scores = model.score_batch(outliers)
        threshold = np.quantile(normal_scores, 0.99)
        detection_rate = float(np.mean(outlier_scores > threshold))

        result = {
            "name": name,
            "dimension": dimension,
            "intrinsic_rank": intrinsic_rank,
            "rows": rows,
            "rank": rank,
            "oversampling": oversampling,
            "max_angle": float(angles.max()),
            "mean_angle": float(angles.mean()),
            "normal_score_mean": float(normal_scores.mean()),
            "outlier_score_mean": float(outlier_scores.mean()),
            "detection_rate": detection_rate,
            "elapsed_seconds": statistics["elapsed_seconds"],
            "status": self.classify(float(angles.max())),
            "timestamp": datetime.datetime.now().isoformat(),
        }
        self.logger.info(
            f"  max angle {result['max_angle']:.3f} deg, detection rate "
            f"{detection_rate:.3f} -> {result['status']}"
        )

        self.create_score_plot(name, normal_scores, outlier_scores, result)
        self.results.append(result)
        return result

    def create_score_plot(self, name, normal_scores, outlier_scores, metrics):
        """Histogram of normal and outlier scores, saved in the results folder."""
        fig, axes = plt.subplots(1, 2, figsize=(14, 5))

        bins = np.linspace(0.0, 1.0, 51)
        axes[0].hist(normal_scores, bins=bins, alpha=0.7, color="blue", label="held-out rows")
        axes[0].hist(outlier_scores, bins=bins, alpha=0.7, color="red", label="outliers")
        axes[0].set_title("Score Distribution", fontsize=12)
        axes[0].set_xlabel("Anomaly score")
        axes[0].set_ylabel("Frequency")
        axes[0].legend()

        status_colors = {
            "EXCELLENT": "darkgreen",
            "GOOD": "blue",
            "ACCEPTABLE": "orange",
            "NEEDS_ADJUSTMENT": "red",
        }
        metrics_text = (
            f"VALIDATION METRICS\n\n"
            f"Max angle: {metrics['max_angle']:.3f} deg\n"
            f"Mean angle: {metrics['mean_angle']:.3f} deg\n\n"
            f"Detection rate: {metrics['detection_rate']:.3f}\n"
            f"Time: {metrics['elapsed_seconds']:.2f} s\n\n"
            f"STATUS: {metrics['status']}"
        )
        axes[1].text(
            0.05,
            0.95,
            metrics_text,
            fontsize=12,
            verticalalignment="top",
            color=status_colors.get(metrics["status"], "black"),
            family="monospace",
        )
        axes[1].axis("off")

        plt.suptitle(f"Validation Report: {name}", fontsize=16, fontweight="bold")
        plt.tight_layout(rect=[0, 0.03, 1, 0.95])

        plot_filename = self.results_dir / f"scores_{name}.png"
        plt.savefig(str(plot_filename), dpi=150, bbox_inches="tight")
        plt.close(fig)

        self.logger.debug(f"Score plot saved: {plot_filename}")

    def validate_all(self, cases=DEFAULT_CASES):
        for case in cases:
            self.validate_case(*case)
        self.export_analysis_logs()
        self.generate_report()

    def export_analysis_logs(self):
        """Export CSV and JSON summaries into the results folder."""
        if not self.results:
            self.logger.warning("No results to export.")
            return

        csv_filename = self.results_dir / f"validation_summary_{self.timestamp}.csv"
        headers = [
            "timestamp",
            "name",
            "dimension",
            "rank",
            "oversampling",
            "max_angle",
            "detection_rate",
            "status",
        ]
        with open(csv_filename, "w", newline="", encoding="utf-8") as f:
            f.write(",".join(headers) + "\n")
            for result in self.results:
                f.write(",".join(str(result.get(h, "")) for h in headers) + "\n")

        json_filename = self.results_dir / f"validation_report_{self.timestamp}.json"
        with open(json_filename, "w", encoding="utf-8") as f:
            json.dump(self.results, f, indent=4)

        self.logger.info("Analysis logs exported to results directory:")
        self.logger.info(f"  - CSV Summary: {csv_filename.name}")
        self.logger.info(f"  - Detailed JSON: {json_filename.name}")

    def generate_report(self):
        if not self.results:
            self.logger.warning("No results available for report")
            return

        counts = defaultdict(int)
        for result in self.results:
            counts[result["status"]] += 1

        total = len(self.results)
        self.logger.info("=" * 80)
        self.logger.info("FINAL SUMMARY:")
        self.logger.info(f"  Total validations: {total}")
        for status in ("EXCELLENT", "GOOD", "ACCEPTABLE", "NEEDS_ADJUSTMENT"):
            self.logger.info(f"  {status}: {counts[status]} ({counts[status] / total * 100:.1f}%)")
        success_rate = (counts["EXCELLENT"] + counts["GOOD"]) / total * 100
        self.logger.info(f"  SUCCESS RATE (Excellent + Good): {success_rate:.1f}%")


if __name__ == "__main__":
    validator = AccuracyValidator(output_base_dir="validation_results")
    validator.validate_all()
