import zipfile

import pytest

import src.ingest.datasets as datasets
from src.ingest.datasets import AccessibilityDataProvider, LsoaGeometryProvider
from src.utils.errors import DatasetUnavailable

PUBLISHED_HEADER = "fromId,toId,travel_time_p025,travel_time_p050,travel_time_p075"


def _fake_download(members, calls):
    """Stand-in for download_first_available that writes a zip of members."""
    def _download(sources, save_path, **kwargs):
        calls.append([label for label, url in sources if url])
        with zipfile.ZipFile(save_path, "w") as zf:
            for name, content in members.items():
                zf.writestr(name, content)
        return sources[0][0]
    return _download


def test_accessibility_data_is_downloaded_extracted_and_renamed(tmp_path, monkeypatch):
    calls = []
    members = {
        "ttm/ttm_pt.csv": PUBLISHED_HEADER + "\nE01000001,E01000002,10,12,15\n",
        "indicators/employment_pt.csv": "geo_code,access_30\nE01000001,5\n",
    }
    monkeypatch.setattr(datasets, "download_first_available", _fake_download(members, calls))

    data_dir = AccessibilityDataProvider(data_dir=tmp_path, quiet=True).ensure_available()

    assert data_dir == tmp_path / "accessibility_indicators_gb"
    assert calls == [["Zenodo"]]
    assert not (tmp_path / "accessibility_indicators_gb.zip").exists()

    header, body = (data_dir / "ttm" / "ttm_pt.csv").read_text().split("\n", 1)
    assert header.rstrip() == "from_id,to_id,travel_time_p25,travel_time_p50,travel_time_p75"
    assert len(header) == len(PUBLISHED_HEADER)
    assert body == "E01000001,E01000002,10,12,15\n"
    # Indicator files keep their own header
    assert (data_dir / "indicators" / "employment_pt.csv").read_text().startswith("geo_code,")


def test_cached_dataset_is_not_downloaded_again(tmp_path, monkeypatch):
    cached = tmp_path / "accessibility_indicators_gb"
    cached.mkdir()
    (cached / "ttm_pt.csv").write_text("from_id,to_id\n")

    def no_download(*args, **kwargs):
        raise AssertionError("should use the cached copy")

    monkeypatch.setattr(datasets, "download_first_available", no_download)

    assert AccessibilityDataProvider(data_dir=tmp_path).ensure_available() == cached


def test_force_update_replaces_cached_copy(tmp_path, monkeypatch):
    cached = tmp_path / "accessibility_indicators_gb"
    cached.mkdir()
    (cached / "stale.csv").write_text("old\n")

    calls = []
    monkeypatch.setattr(datasets, "download_first_available", _fake_download({"fresh.csv": "new\n"}, calls))

    data_dir = AccessibilityDataProvider(data_dir=tmp_path, quiet=True).ensure_available(force_update=True)

    assert len(calls) == 1
    assert (data_dir / "fresh.csv").exists()
    assert not (data_dir / "stale.csv").exists()


def test_fallback_source_is_offered_when_configured(tmp_path, monkeypatch):
    calls = []
    monkeypatch.setattr(datasets.settings, "ACCESSIBILITY_FALLBACK_URL", "https://mirror.example/gb.zip")
    monkeypatch.setattr(datasets, "download_first_available", _fake_download({"a.csv": "x\n"}, calls))

    AccessibilityDataProvider(data_dir=tmp_path, quiet=True).ensure_available()

    assert calls == [["Zenodo", "fallback mirror"]]


def test_no_reachable_source_raises(tmp_path, monkeypatch):
    monkeypatch.setattr(datasets, "download_first_available", lambda sources, save_path, **kw: None)

    with pytest.raises(DatasetUnavailable):
        AccessibilityDataProvider(data_dir=tmp_path).ensure_available()

    assert not (tmp_path / "accessibility_indicators_gb").exists()


def test_geometry_cache_requires_a_shapefile(tmp_path, monkeypatch):
    geoms = tmp_path / "lsoa_geoms"
    geoms.mkdir()
    (geoms / "TermsAndConditions.html").write_text("terms")

    calls = []
    members = {"infuse_lsoa_lyr_2011_clipped.shp": b"", "TermsAndConditions.html": "terms"}
    monkeypatch.setattr(datasets, "download_first_available", _fake_download(members, calls))

    provider = LsoaGeometryProvider(data_dir=tmp_path)
    assert provider.is_cached() is False

    provider.ensure_available()

    assert calls == [["UK Data Service"]]
    assert provider.is_cached() is True
