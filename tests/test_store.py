"""Tests for Store."""

import pytest

from vortex import Store


class TestStore:
    def test_creation_from_initial(self):
        s = Store({"x": 10, "y": "hello"}, lambda path: None)
        assert s.get("x") == 10
        assert s.get("y") == "hello"

    def test_none_initial_is_empty(self):
        s = Store(None, lambda path: None)
        assert len(s.state) == 0

    def test_initial_dict_is_not_copied(self):
        data = {"x": 1}
        s = Store(data, lambda path: None)
        s.set("x", 2)
        assert data["x"] == 2

    def test_get_nonexistent_is_empty(self):
        s = Store({"x": 1}, lambda path: None)
        assert s.get("nope") == ""
        assert s.get("nope.deeper") == ""

    def test_set_nested_path(self):
        log = []
        s = Store({"user": {"name": "Ada"}}, log.append)
        s.set("user.name", "Bob")
        assert s.get("user.name") == "Bob"
        assert log == ["user.name"]

    def test_set_through_list_index(self):
        log = []
        s = Store({"todos": [{"done": False}]}, log.append)
        s.set("todos.0.done", True)
        assert log == ["todos.0.done"]
        assert s.get("todos.0.done") is True

    def test_get_follows_list_indices(self):
        s = Store({"todos": [{"title": "a"}, {"title": "b"}]}, lambda path: None)
        assert s.get("todos.1.title") == "b"
        assert s.get("todos.5.title") == ""
        assert s.get("todos.x") == ""
        assert s.get("todos.0.title.deeper") == ""

    def test_set_missing_parent_raises(self):
        s = Store({}, lambda path: None)
        with pytest.raises(KeyError):
            s.set("missing.x", 1)

    def test_set_malformed_path_raises(self):
        s = Store({}, lambda path: None)
        with pytest.raises(ValueError):
            s.set("a..b", 1)

    def test_update_is_shallow_merge(self):
        log = []
        s = Store({"x": 0, "y": {"z": 1}}, log.append)
        s.update({"x": 1, "w": 2})
        assert s.get("x") == 1
        assert s.get("y.z") == 1
        assert s.get("w") == 2
        assert log == ["x", "w"]
