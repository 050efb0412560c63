import json
from datetime import timedelta
from pathlib import Path

import pytest

from lotw_stats.config import Config, find_config_file
from lotw_stats.constants import DATA_PATH_ENV, LOTW_URL


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.delenv(DATA_PATH_ENV, raising=False)
    monkeypatch.chdir(tmp_path)


def write_config(path: Path, data: dict) -> Path:
    path.write_text(json.dumps(data))
    return path


def test_defaults(tmp_path: Path) -> None:
    config = Config.load()
    assert config.data_dir == Path("local-data")
    assert config.adif_path == Path(tmp_path, "local-data", "lotwQso.adif").resolve()
    assert config.snapshot_path.name == "lotwDxcc.json"
    assert config.lotw_url == LOTW_URL
    assert config.min_interval == timedelta(0)
    assert config.backup
    assert not config.keep_backup


def test_load_file(tmp_path: Path) -> None:
    path = write_config(
        Path(tmp_path, "mine.json"),
        {"data_dir": "/srv/lotw", "update_interval_minutes": 90, "retries": 5},
    )
    config = Config.load(path)
    assert config.data_dir == Path("/srv/lotw")
    assert config.min_interval == timedelta(minutes=90)
    assert config.retries == 5


def test_find_config_file(tmp_path: Path) -> None:
    nested = Path(tmp_path, "a", "b")
    nested.mkdir(parents=True)
    assert find_config_file(nested) is None

    path = write_config(Path(tmp_path, "lotw-stats.json"), {})
    assert find_config_file(nested) == path
    # Three levels up is too far
    assert find_config_file(Path(nested, "c")) is None


def test_config_file_found(tmp_path: Path) -> None:
    write_config(Path(tmp_path, "lotw-stats.json"), {"qso_begin_date": "2010-01-01"})
    assert Config.load().qso_begin_date == "2010-01-01"


def test_precedence(tmp_path: Path, monkeypatch) -> None:
    path = write_config(
        Path(tmp_path, "mine.json"), {"data_dir": "/from/file", "keep_backup": False}
    )

    monkeypatch.setenv(DATA_PATH_ENV, "/from/env")
    config = Config.load(path)
    assert config.data_dir == Path("/from/env")

    config = Config.load(path, data_dir=Path("/from/args"), keep_backup=True)
    assert config.data_dir == Path("/from/args")
    assert config.keep_backup

    # Overrides that weren't given don't count
    config = Config.load(path, data_dir=None, update_interval_minutes=None)
    assert config.data_dir == Path("/from/env")
    assert config.update_interval_minutes == 0


@pytest.mark.parametrize("contents", ['{"nope": 1}', "[]"])
def test_load_invalid(tmp_path: Path, contents: str) -> None:
    path = Path(tmp_path, "mine.json")
    path.write_text(contents)
    with pytest.raises(ValueError):
        Config.load(path)
