import pytest

from src.ingest.travel_matrix import (
    Directory,
    MatrixFormat,
    SingleFile,
    find_matrix_file,
    locate,
    render_source,
    resolve,
)
from src.utils.errors import NoMatrixFilesFound


def test_locate_single_csv_file(csv_matrix_file):
    source = locate(csv_matrix_file)

    assert source == SingleFile(path=csv_matrix_file, format=MatrixFormat.CSV)
    assert resolve(csv_matrix_file) == f"'{csv_matrix_file.as_posix()}'"


def test_locate_single_parquet_file(parquet_matrix_file):
    source = locate(str(parquet_matrix_file))

    assert isinstance(source, SingleFile)
    assert source.format is MatrixFormat.PARQUET


def test_locate_directory_prefers_parquet_over_csv(tmp_path):
    (tmp_path / "a.csv").write_text("from_id,to_id\n")
    (tmp_path / "b.parquet").write_bytes(b"")

    source = locate(tmp_path)

    assert source == Directory(path=tmp_path, format=MatrixFormat.PARQUET)
    assert resolve(tmp_path) == f"'{(tmp_path / '*.parquet').as_posix()}'"


def test_locate_directory_with_only_csv(csv_matrix_dir):
    source = locate(csv_matrix_dir)

    assert isinstance(source, Directory)
    assert source.format is MatrixFormat.CSV
    assert source.location.endswith("/*.csv")


def test_locate_nested_shards_use_recursive_glob(tmp_path):
    nested = tmp_path / "year=2021"
    nested.mkdir()
    (nested / "part_0.parquet").write_bytes(b"")

    source = locate(tmp_path)

    assert source.recursive is True
    assert source.location == (tmp_path / "**" / "*.parquet").as_posix()


def test_locate_empty_directory_fails(tmp_path):
    (tmp_path / "readme.txt").write_text("nothing here")

    with pytest.raises(NoMatrixFilesFound):
        locate(tmp_path)


def test_locate_missing_path_fails(tmp_path):
    with pytest.raises(NoMatrixFilesFound):
        locate(tmp_path / "does_not_exist.csv")


def test_single_quotes_in_path_are_escaped(tmp_path):
    directory = tmp_path / "o'brien"
    directory.mkdir()
    (directory / "ttm.csv").write_text("from_id,to_id\n")

    expression = resolve(directory)

    assert "o''brien" in expression
    assert expression.startswith("'") and expression.endswith("'")


def test_render_source_wraps_csv_in_read_csv(csv_matrix_dir):
    rendered = render_source(locate(csv_matrix_dir), csv_null_string="N/A")

    assert rendered.startswith("read_csv('")
    assert "header=true" in rendered
    assert "auto_detect=true" in rendered
    assert "nullstr='N/A'" in rendered


def test_render_source_uses_default_null_token(csv_matrix_file):
    assert "nullstr='NA'" in render_source(locate(csv_matrix_file))


def test_render_source_leaves_parquet_as_literal(parquet_matrix_dir):
    rendered = render_source(locate(parquet_matrix_dir))

    assert rendered == f"'{(parquet_matrix_dir / '*.parquet').as_posix()}'"


def test_find_matrix_file_matches_name_fragment(tmp_path):
    target = tmp_path / "ptai" / "ttm_pt_2021.csv"
    target.parent.mkdir()
    target.write_text("from_id,to_id\n")
    (tmp_path / "employment_pt.csv").write_text("geo_code\n")

    assert find_matrix_file(tmp_path, "ttm_pt") == target

    with pytest.raises(NoMatrixFilesFound):
        find_matrix_file(tmp_path, "ttm_car")


def test_locate_shards_at_top_level_and_below_are_all_globbed(tmp_path):
    (tmp_path / "part_0.parquet").write_bytes(b"")
    nested = tmp_path / "extra"
    nested.mkdir()
    (nested / "part_1.parquet").write_bytes(b"")

    source = locate(tmp_path)

    assert source.recursive is True
    assert source.location == (tmp_path / "**" / "*.parquet").as_posix()


def test_locate_flat_directory_keeps_top_level_glob(parquet_matrix_dir):
    source = locate(parquet_matrix_dir)

    assert source.recursive is False
    assert source.location == (parquet_matrix_dir / "*.parquet").as_posix()
