"""Tests for the quiz JSON store and the device-local list store."""

import json
import threading

import pytest

from trivia_cms.storage.device_store import DeviceStore
from trivia_cms.storage.json_store import QuizJsonStore


class TestQuizJsonStore:
    def test_missing_file_is_created_empty(self, tmp_path):
        path = tmp_path / "nested" / "quizzes.json"
        store = QuizJsonStore(path=str(path))
        assert store.list_quizzes() == []
        assert json.loads(path.read_text(encoding="utf-8")) == {"quizzes": []}

    def test_path_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("QUIZ_DATA_FILE", str(tmp_path / "env.json"))
        store = QuizJsonStore()
        assert store.path == str(tmp_path / "env.json")

    def test_corrupted_file_degrades_to_empty(self, tmp_path):
        path = tmp_path / "quizzes.json"
        path.write_text("{not json", encoding="utf-8")
        store = QuizJsonStore(path=str(path))
        assert store.list_quizzes() == []
        assert json.loads(path.read_text(encoding="utf-8")) == {"quizzes": []}

    def test_wrong_structure_degrades_to_empty(self, tmp_path):
        path = tmp_path / "quizzes.json"
        path.write_text(json.dumps([{"id": "1"}]), encoding="utf-8")
        assert QuizJsonStore(path=str(path)).list_quizzes() == []

    def test_add_get_list(self, quiz_store):
        quiz_store.add_quiz({"id": "1", "question": "First?"})
        quiz_store.add_quiz({"id": "2", "question": "Second?"})
        assert [q["id"] for q in quiz_store.list_quizzes()] == ["1", "2"]
        assert quiz_store.get_quiz("2")["question"] == "Second?"
        assert quiz_store.get_quiz("3") is None

    def test_replace_and_update(self, quiz_store):
        quiz_store.add_quiz({"id": "1", "question": "First?"})
        replaced = quiz_store.replace_quiz("1", {"id": "1", "question": "Changed?"})
        assert replaced["question"] == "Changed?"
        assert quiz_store.get_quiz("1")["question"] == "Changed?"
        assert quiz_store.replace_quiz("missing", {"id": "missing"}) is None

    def test_delete(self, quiz_store):
        quiz_store.add_quiz({"id": "1", "question": "First?"})
        assert quiz_store.delete_quiz("1") is True
        assert quiz_store.delete_quiz("1") is False
        assert quiz_store.list_quizzes() == []

    def test_failed_transaction_writes_nothing(self, quiz_store):
        quiz_store.add_quiz({"id": "1", "question": "First?"})
        with pytest.raises(RuntimeError):
            with quiz_store.transaction() as quizzes:
                quizzes.append({"id": "2"})
                raise RuntimeError("abort")
        assert [q["id"] for q in quiz_store.list_quizzes()] == ["1"]

    def test_save_all_rejects_bad_structure(self, quiz_store):
        with pytest.raises(ValueError):
            quiz_store.save_all({"items": []})

    def test_concurrent_adds_are_not_lost(self, quiz_store):
        threads = [
            threading.Thread(target=quiz_store.add_quiz, args=({"id": str(i), "question": f"Q{i}?"},))
            for i in range(20)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert sorted(int(q["id"]) for q in quiz_store.list_quizzes()) == list(range(20))


class TestDeviceStore:
    def test_missing_key_is_empty(self, device_store):
        assert device_store.get_all("quiz_history") == []
        assert device_store.get_blob("quiz_settings") is None

    def test_set_and_get(self, device_store):
        device_store.set_all("quiz_history", [{"id": "1"}, {"id": "2"}])
        assert device_store.get_all("quiz_history") == [{"id": "1"}, {"id": "2"}]

    def test_corrupt_payload_is_empty(self, device_store, tmp_path):
        (tmp_path / "device" / "quiz_history.json").write_text("[{oops", encoding="utf-8")
        assert device_store.get_all("quiz_history") == []

    def test_non_list_payload_is_empty(self, device_store):
        device_store.set_blob("quiz_history", {"id": "1"})
        assert device_store.get_all("quiz_history") == []

    def test_update_returns_previous(self, device_store):
        device_store.set_all("quiz_history", [1])
        previous = device_store.update("quiz_history", lambda items: [2, *items])
        assert previous == [1]
        assert device_store.get_all("quiz_history") == [2, 1]

    def test_remove(self, device_store):
        device_store.set_all("quiz_reviews", [1])
        device_store.remove("quiz_reviews")
        device_store.remove("quiz_reviews")
        assert device_store.get_all("quiz_reviews") == []

    def test_rejects_path_like_keys(self, device_store):
        with pytest.raises(ValueError):
            device_store.set_all("../escape", [])

    def test_directory_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("DEVICE_DATA_DIR", str(tmp_path / "env-device"))
        store = DeviceStore()
        assert store.directory == str(tmp_path / "env-device")
        assert (tmp_path / "env-device").is_dir()
