import os

import pytest

from tastesim.data_model import FileDataModel, GenericDataModel
from tastesim.errors import DataSourceError, InvalidArgumentError, NoSuchItemError, NoSuchUserError
from tastesim.refresh import RefreshedSet


def test_generic_model_counts_and_ids(small_model):
    assert small_model.user_ids() == ["alice", "bob", "carol", "dave"]
    assert small_model.item_ids() == ["i1", "i2", "i3", "i4", "i5"]
    assert small_model.num_users() == 4
    assert small_model.num_items() == 5


def test_item_ids_from_user(small_model):
    assert small_model.item_ids_from_user("alice") == frozenset({"i1", "i2", "i3"})
    assert small_model.item_ids_from_user("dave") == frozenset({"i4", "i5"})


def test_num_users_with_preference_for_one_and_two_items(small_model):
    assert small_model.num_users_with_preference_for("i2") == 3
    assert small_model.num_users_with_preference_for("i1", "i2") == 2
    assert small_model.num_users_with_preference_for("i3", "i4") == 0

    with pytest.raises(InvalidArgumentError):
        small_model.num_users_with_preference_for()
    with pytest.raises(InvalidArgumentError):
        small_model.num_users_with_preference_for("i1", "i2", "i3")


def test_preference_values_keep_zero_and_none_distinct(small_model):
    assert small_model.preference_value("alice", "i1") == 5.0
    assert small_model.preference_value("dave", "i4") == 0.0
    assert small_model.preference_value("dave", "i5") is None
    # Known pair without any preference
    assert small_model.preference_value("alice", "i4") is None
    assert not small_model.has_preference_values()


def test_preferences_from_user_and_for_item(small_model):
    assert small_model.preferences_from_user("carol") == {"i2": 4.5, "i3": 1.0, "i5": None}
    assert small_model.preferences_for_item("i4") == {"bob": 1.0, "dave": 0.0}


def test_unknown_ids_raise_data_source_errors(small_model):
    with pytest.raises(NoSuchUserError) as exc:
        small_model.item_ids_from_user("zed")
    assert exc.value.user_id == "zed"
    assert isinstance(exc.value, DataSourceError)

    with pytest.raises(NoSuchItemError):
        small_model.num_users_with_preference_for("i1", "nope")
    with pytest.raises(NoSuchItemError):
        small_model.preference_value("alice", "nope")


def test_from_records_and_value_flag():
    model = GenericDataModel.from_records([(1, 10, 3.0), (1, 11, 4.0), (2, 10, 2.0)])

    assert model.user_ids() == [1, 2]
    assert model.has_preference_values()
    assert model.preference_value(2, 10) == 2.0

    with pytest.raises(InvalidArgumentError):
        GenericDataModel.from_records([(1,)])


def test_empty_model():
    model = GenericDataModel({})

    assert model.num_users() == 0
    assert model.num_items() == 0
    assert not model.has_preference_values()
    model.refresh()


def test_user_without_preferences_is_counted():
    model = GenericDataModel({"a": {"x": 1.0}, "b": {}})

    assert model.num_users() == 2
    assert model.item_ids_from_user("b") == frozenset()


def test_generic_refresh_registers_in_cascade(small_model):
    refreshed = RefreshedSet()
    small_model.refresh(refreshed)

    assert small_model in refreshed


def _write(path, text):
    path.write_text(text, encoding="utf-8")


def test_file_model_parses_comments_blanks_and_boolean(tmp_path):
    path = tmp_path / "prefs.csv"
    _write(path, "# user,item,value\n\nu1,i1,4.5\nu1,i2\nu2,i1,\nu2,007,1\n")

    model = FileDataModel(path)

    assert model.user_ids() == ["u1", "u2"]
    assert model.preference_value("u1", "i1") == 4.5
    assert model.preference_value("u1", "i2") is None
    assert model.preference_value("u2", "i1") is None
    # Ids stay opaque strings
    assert "007" in model.item_ids_from_user("u2")
    assert model.num_users_with_preference_for("i1") == 2


def test_file_model_detects_tab_delimiter(tmp_path):
    path = tmp_path / "prefs.tsv"
    _write(path, "u1\ti1\t3\nu2\ti1\t5\n")

    model = FileDataModel(path)

    assert model.preferences_for_item("i1") == {"u1": 3.0, "u2": 5.0}
    assert model.has_preference_values()


def test_file_model_reports_missing_and_malformed_files(tmp_path):
    with pytest.raises(DataSourceError):
        FileDataModel(tmp_path / "missing.csv")

    bad = tmp_path / "bad.csv"
    _write(bad, "u1,i1,4\nonly-one-field\n")
    with pytest.raises(DataSourceError) as exc:
        FileDataModel(bad)
    assert ":2:" in str(exc.value)

    bad_value = tmp_path / "bad_value.csv"
    _write(bad_value, "u1,i1,four\n")
    with pytest.raises(DataSourceError):
        FileDataModel(bad_value)


def test_file_model_rejects_negative_reload_interval(tmp_path):
    path = tmp_path / "prefs.csv"
    _write(path, "u1,i1\n")

    with pytest.raises(InvalidArgumentError):
        FileDataModel(path, min_reload_interval=-1)


def test_file_model_reloads_when_file_changes(tmp_path):
    path = tmp_path / "prefs.csv"
    _write(path, "u1,i1,1\n")
    model = FileDataModel(path, min_reload_interval=0)
    assert model.num_users() == 1

    _write(path, "u1,i1,1\nu2,i2,2\n")
    stat = path.stat()
    os.utime(path, (stat.st_atime, stat.st_mtime + 10))
    model.refresh()

    assert model.num_users() == 2
    assert model.preference_value("u2", "i2") == 2.0


def test_file_model_skips_reload_when_unchanged_or_too_soon(tmp_path):
    path = tmp_path / "prefs.csv"
    _write(path, "u1,i1,1\n")
    model = FileDataModel(path, min_reload_interval=0)
    snapshot = model.delegate

    model.refresh()
    assert model.delegate is snapshot

    throttled = FileDataModel(path, min_reload_interval=3600)
    _write(path, "u1,i1,1\nu2,i2,2\n")
    stat = path.stat()
    os.utime(path, (stat.st_atime, stat.st_mtime + 10))
    throttled.refresh()
    assert throttled.num_users() == 1


def test_file_model_keeps_snapshot_when_reload_fails(tmp_path):
    path = tmp_path / "prefs.csv"
    _write(path, "u1,i1,1\n")
    model = FileDataModel(path, min_reload_interval=0)

    path.unlink()
    with pytest.raises(DataSourceError):
        model.refresh()

    assert model.num_users() == 1


def test_file_model_wraps_undecodable_bytes(tmp_path):
    path = tmp_path / "prefs.csv"
    path.write_bytes(b"u1,i1,4\nu2,\xff\xfe,3\n")

    with pytest.raises(DataSourceError) as exc:
        FileDataModel(path)

    assert isinstance(exc.value.__cause__, UnicodeDecodeError)


def test_file_model_reload_of_undecodable_file_keeps_snapshot(tmp_path):
    path = tmp_path / "prefs.csv"
    _write(path, "u1,i1,1\n")
    model = FileDataModel(path, min_reload_interval=0)

    path.write_bytes(b"u1,\xff,3\n")
    stat = path.stat()
    os.utime(path, (stat.st_atime, stat.st_mtime + 10))
    with pytest.raises(DataSourceError):
        model.refresh()

    assert model.preference_value("u1", "i1") == 1.0


@pytest.mark.parametrize("raw", ["nan", "inf", "-Infinity"])
def test_file_model_rejects_non_finite_values(tmp_path, raw):
    path = tmp_path / "prefs.csv"
    _write(path, f"u1,i1,{raw}\n")

    with pytest.raises(DataSourceError) as exc:
        FileDataModel(path)
    assert ":1:" in str(exc.value)


@pytest.mark.parametrize("value", [float("nan"), float("inf"), "nan"])
def test_generic_model_rejects_non_finite_values(value):
    with pytest.raises(InvalidArgumentError):
        GenericDataModel({"u1": {"i1": value}})
