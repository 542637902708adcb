import numpy as np
import pytest

from sparse_svm.errors import FileAccessError, ParseError
from sparse_svm.parser import parse_line, read_dataset, read_train_file, read_unlabeled_file


def test_example_file_parses_to_expected_dataset(example_file) -> None:
    dataset = read_train_file(example_file)
    assert dataset.labeled
    assert dataset.sparse
    assert dataset.count == 2
    assert dataset.maxdim == 4
    np.testing.assert_array_equal(dataset.targets, [1.0, -1.0])
    np.testing.assert_array_equal(dataset.squared_norms, [5.0, 16.0])
    assert dataset[0].indices.tolist() == [1, 3]
    assert dataset[1].indices.tolist() == [2]


def test_squared_norms_match_the_stored_values(write_file) -> None:
    path = write_file("0.5 1:0.1 7:-2.5 9:3.25\n-0.5 2:1e-3 4:7\n1 3:0.3\n")
    dataset = read_train_file(path)
    for view, norm in zip(dataset, dataset.squared_norms):
        assert norm == pytest.approx(float(np.sum(view.values ** 2)))


def test_unlabeled_file(write_file) -> None:
    dataset = read_unlabeled_file(write_file("1:2.0 3:1.0\n2:4.0\n"))
    assert not dataset.labeled
    assert dataset.targets is None
    assert dataset.maxdim == 4


def test_maxdim_is_one_past_the_largest_index(write_file) -> None:
    same = read_train_file(write_file("1 2:1 5:1\n-1 2:3 5:2\n"))
    assert same.maxdim == 6
    gaps = read_train_file(write_file("1 1:1 10:1 100:1\n", name="gaps.svm"))
    assert gaps.maxdim == 101


def test_zero_feature_sample_gets_an_empty_view(write_file) -> None:
    dataset = read_train_file(write_file("+1\n-1 2:4.0\n"))
    assert dataset.count == 2
    assert len(dataset[0]) == 0
    assert dataset.squared_norms[0] == 0.0


def test_blank_lines_and_comments_are_ignored(write_file) -> None:
    dataset = read_train_file(write_file("# header\n\n+1 1:2.0  # trailing\n   \n-1 2:4.0\n\n\n"))
    assert dataset.count == 2
    np.testing.assert_array_equal(dataset.targets, [1.0, -1.0])


@pytest.mark.parametrize(
    "text, line",
    [
        ("+1 3:1.0 1:2.0\n", 1),
        ("+1 1:1.0\n-1 2:1.0 2:3.0\n", 2),
        ("+1 1:abc\n", 1),
        ("+1 x:1.0\n", 1),
        ("+1 1:1.0\n\nfoo 1:1.0\n", 3),
        ("+1 1\n", 1),
        ("+1 -2:1.0\n", 1),
        ("1:1.0 2:1.0\n", 1),
        ("+1 1_0:2.0\n", 1),
        ("+1 1:1_0.5\n", 1),
        ("+1 1:nan\n", 1),
        ("+1 1:inf\n", 1),
        ("+1 1:-inf\n", 1),
        ("nan 1:1.0\n", 1),
        ("+1 1.5:1.0\n", 1),
    ],
)
def test_malformed_lines_report_their_line_number(write_file, text, line) -> None:
    with pytest.raises(ParseError) as excinfo:
        read_train_file(write_file(text))
    assert excinfo.value.line == line


def test_invalid_utf8_reports_its_line_number(tmp_path) -> None:
    path = tmp_path / "bad.svm"
    path.write_bytes(b"+1 1:2.0\n-1 2:\xff\xfe\n")
    with pytest.raises(ParseError) as excinfo:
        read_train_file(path)
    assert excinfo.value.line == 2
    assert "UTF-8" in str(excinfo.value)


def test_empty_file_is_an_error(write_file) -> None:
    with pytest.raises(ParseError):
        read_train_file(write_file("\n\n"))


def test_missing_file_is_an_access_error(tmp_path) -> None:
    with pytest.raises(FileAccessError) as excinfo:
        read_train_file(tmp_path / "missing.svm")
    assert excinfo.value.path.endswith("missing.svm")
    assert isinstance(excinfo.value.__cause__, FileNotFoundError)


def test_dense_mode_stores_every_index(example_file) -> None:
    dataset = read_train_file(example_file, sparse=False)
    assert not dataset.sparse
    assert dataset.lengths.tolist() == [4, 4]
    assert dataset[0].indices.tolist() == [0, 1, 2, 3]
    np.testing.assert_array_equal(dataset.to_dense(), [[0.0, 2.0, 0.0, 1.0], [0.0, 0.0, 4.0, 0.0]])
    np.testing.assert_array_equal(dataset.squared_norms, [5.0, 16.0])


def test_fixed_maxdim(example_file) -> None:
    wide = read_train_file(example_file, maxdim=10)
    assert wide.maxdim == 10
    with pytest.raises(ParseError) as excinfo:
        read_train_file(example_file, maxdim=3)
    assert excinfo.value.line == 1


def test_parse_line_keeps_indices_verbatim() -> None:
    label, indices, values = parse_line("-0.25 1:5 7:2 15:6", 1, labeled=True)
    assert label == -0.25
    assert indices == [1, 7, 15]
    assert values == [5.0, 2.0, 6.0]


def test_failed_second_pass_releases_the_store(example_file, monkeypatch) -> None:
    from sparse_svm import parser
    from sparse_svm.store import FeatureStore

    created = []
    original_init = FeatureStore.__init__

    def _tracking_init(self, size):
        original_init(self, size)
        created.append(self)

    def _broken_fill(*args, **kwargs):
        raise ParseError(2, "changed under our feet")

    monkeypatch.setattr(FeatureStore, "__init__", _tracking_init)
    monkeypatch.setattr(parser, "_fill", _broken_fill)
    with pytest.raises(ParseError):
        read_dataset(example_file, labeled=True)
    assert len(created) == 1
    assert created[0].released


def test_agrees_with_scikit_learn_reader(write_file) -> None:
    from sklearn.datasets import load_svmlight_file

    path = write_file("1 1:0.5 4:-1.25\n-1 2:3\n1 3:0.125 4:8\n")
    dataset = read_train_file(path)
    X, y = load_svmlight_file(str(path), zero_based=False)
    np.testing.assert_array_equal(dataset.targets, y)
    np.testing.assert_array_equal(dataset.to_dense()[:, 1:], X.toarray())
