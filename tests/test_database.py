from workout_mapper.database import KeyValueStorage


def test_get_missing_key_is_none(storage):
    assert storage.get("workouts") is None


def test_set_then_get_and_overwrite(storage):
    storage.set("workouts", "[]")
    assert storage.get("workouts") == "[]"
    storage.set("workouts", '[{"id": "1"}]')
    assert storage.get("workouts") == '[{"id": "1"}]'


def test_delete_and_clear(storage):
    storage.set("a", "1")
    storage.set("b", "2")
    storage.delete("a")
    assert storage.get("a") is None
    assert storage.get("b") == "2"
    storage.clear()
    assert storage.get("b") is None


def test_values_survive_a_new_connection(tmp_path):
    url = f"sqlite:///{tmp_path / 'persist.db'}"
    KeyValueStorage(url).set("workouts", "blob")
    assert KeyValueStorage(url).get("workouts") == "blob"
