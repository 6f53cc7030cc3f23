import numpy as np
import pytest

from pca_anomaly import ArrayDataSource, CsvDataSource, PcaModel
from pca_anomaly.cli import _build_parser, _default_output_path, _score_source, main


def write_training_csv(path, n=80, seed=0):
    rng = np.random.default_rng(seed)
    data = np.zeros((n, 3))
    data[:, 0] = rng.normal(2.0, 0.4, size=n)
    data[:, 1] = rng.normal(-1.0, 0.1, size=n)
    data[:, 2] = rng.normal(0.0, 1e-4, size=n)
    np.savetxt(path, data, delimiter=",")
    return data


class TestCLILogic:
    def test_parser_defaults(self):
        args = _build_parser().parse_args(["train", "data.csv"])

        assert args.command == "train"
        assert args.rank == 20
        assert args.oversampling == 20
        assert args.no_center is False
        assert args.seed is None
        assert args.trainer == "pcaAnomaly"
        assert args.delimiter == ","

    def test_default_output_path(self, tmp_path):
        path = _default_output_path(tmp_path / "rows.csv", "_scores.txt")
        assert path == tmp_path / "rows_scores.txt"

    def test_list_solvers(self, capsys):
        assert main(["--list-solvers"]) == 0
        out = capsys.readouterr().out
        assert "numpy" in out
        assert "scipy" in out

    def test_list_trainers(self, capsys):
        assert main(["--list-trainers"]) == 0
        assert "pcaAnom" in capsys.readouterr().out

    def test_missing_command(self):
        with pytest.raises(SystemExit):
            main([])

    def test_train_score_summary(self, tmp_path, capsys):
        train_path = tmp_path / "train.csv"
        write_training_csv(train_path)
        model_path = tmp_path / "model.pca"
        summary_path = tmp_path / "model.txt"

        code = main(
            [
                "train",
                str(train_path),
                "-o",
                str(model_path),
                "--rank",
                "2",
                "--oversampling",
                "1",
                "--seed",
                "42",
                "--summary",
                str(summary_path),
            ]
        )
        assert code == 0
        model = PcaModel.load(model_path)
        assert model.dimension == 3
        assert model.rank == 2
        assert summary_path.read_text().startswith("Dimension: 3\nRank: 2\n")

        query_path = tmp_path / "query.csv"
        query_path.write_text("2.0,-1.0,0.0\n2.0,-1.0,5.0\nbad,row,here\n")
        assert main(["score", str(model_path), str(query_path)]) == 0

        scores = np.loadtxt(tmp_path / "query_scores.txt")
        assert scores.shape == (3,)
        assert scores[0] < 0.1
        assert scores[1] > 0.9
        assert np.isnan(scores[2])

        capsys.readouterr()
        assert main(["summary", str(model_path)]) == 0
        assert capsys.readouterr().out == model.summary_text()

    def test_train_from_npy_with_weight_column(self, tmp_path):
        rng = np.random.default_rng(1)
        data = np.column_stack([rng.normal(size=(40, 3)) * 0.3, np.full(40, 2.0)])
        npy_path = tmp_path / "train.npy"
        np.save(npy_path, data)

        code = main(["train", str(npy_path), "--rank", "2", "--seed", "1", "--weight-column", "-1"])
        assert code == 0
        model = PcaModel.load(tmp_path / "train.pca")
        assert model.dimension == 3

    def test_uncentered_training(self, tmp_path):
        train_path = tmp_path / "train.csv"
        write_training_csv(train_path)

        assert main(["train", str(train_path), "--rank", "1", "--no-center", "--seed", "3"]) == 0
        assert not PcaModel.load(tmp_path / "train.pca").center

    def test_missing_input(self, tmp_path, capsys):
        assert main(["train", str(tmp_path / "missing.csv")]) == 1
        assert "not found" in capsys.readouterr().err

    def test_invalid_rank_reports_error(self, tmp_path, capsys):
        train_path = tmp_path / "train.csv"
        write_training_csv(train_path)

        assert main(["train", str(train_path), "--rank", "5"]) == 1
        assert "Error:" in capsys.readouterr().err

    def test_corrupt_model(self, tmp_path, capsys):
        model_path = tmp_path / "model.pca"
        model_path.write_bytes(b"garbage")

        assert main(["summary", str(model_path)]) == 1
        assert "too short" in capsys.readouterr().err

    def test_skipped_rows_are_reported(self, tmp_path, capsys):
        train_path = tmp_path / "train.csv"
        write_training_csv(train_path)
        with open(train_path, "a") as handle:
            handle.write("1.0,nan,2.0\n")

        assert main(["train", str(train_path), "--rank", "1", "--seed", "3"]) == 0
        assert "Skipped 1" in capsys.readouterr().err


class TestScoreSource:
    def setup_method(self):
        self.model = PcaModel(1, np.array([[1.0, 0.0]]), np.array([0.0, 0.0]))

    def test_array_source(self):
        features = np.array([[3.0, 4.0], [np.nan, 1.0], [5.0, 0.0]])
        scores = _score_source(self.model, ArrayDataSource(features))

        assert scores[0] == pytest.approx(0.8)
        assert np.isnan(scores[1])
        assert scores[2] == pytest.approx(0.0)

    def test_text_source(self, tmp_path):
        path = tmp_path / "rows.csv"
        path.write_text("3,4\n1,2,3\n0,2\n")
        scores = _score_source(self.model, CsvDataSource(path))

        assert scores[0] == pytest.approx(0.8)
        assert np.isnan(scores[1])
        assert scores[2] == pytest.approx(1.0)
