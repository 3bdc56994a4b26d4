import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional

from trivia_cms.core.config import quiz_data_file

logger = logging.getLogger(__name__)


# PUBLIC_INTERFACE
def atomic_write_json(path: str, data: Any) -> None:
    """
    Write JSON to a temporary file next to `path` and atomically replace it.

    Readers never see a partially-written file.
    """
    directory = os.path.dirname(path) or "."
    prefix = "." + os.path.basename(path) + "."
    fd, tmp_path = tempfile.mkstemp(prefix=prefix, suffix=".tmp", dir=directory, text=True)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as tmp_file:
            json.dump(data, tmp_file, indent=2, ensure_ascii=False)
            tmp_file.flush()
            os.fsync(tmp_file.fileno())
        os.replace(tmp_path, path)
    finally:
        # If os.replace succeeded, tmp_path no longer exists
        try:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
        except OSError:
            pass


class QuizJsonStore:
    """
    A JSON file store for quiz records with atomic, serialized writes.

    Data model:
    {
        "quizzes": [ { ...quiz dict... }, ... ]
    }

    Every operation reads and writes the whole collection. Read-modify-write
    operations hold the store lock for their full duration so concurrent
    requests cannot lose each other's updates.
    """

    # PUBLIC_INTERFACE
    def __init__(self, path: Optional[str] = None) -> None:
        """
        Initialize the JSON store.

        - Determines the storage path from the provided argument, the QUIZ_DATA_FILE
          environment variable, or falls back to the default data file.
        - Ensures the parent directory exists.
        """
        self.path = os.path.abspath(path or quiz_data_file())
        self._lock = threading.RLock()

        parent_dir = os.path.dirname(self.path) or "."
        os.makedirs(parent_dir, exist_ok=True)

    # PUBLIC_INTERFACE
    def load_all(self) -> Dict[str, Any]:
        """
        Load and return the entire data structure from the JSON file.
        A missing or corrupted file is reset to the empty structure.

        Returns:
            dict: The data in the form {"quizzes": [ ... ]}.
        """
        with self._lock:
            if not os.path.exists(self.path):
                default_data: Dict[str, Any] = {"quizzes": []}
                atomic_write_json(self.path, default_data)
                return default_data

            try:
                with open(self.path, "r", encoding="utf-8") as f:
                    data = json.load(f)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                logger.warning("Quiz data file %s is corrupted (%s); resetting", self.path, e)
                data = None

            if not isinstance(data, dict) or not isinstance(data.get("quizzes"), list):
                data = {"quizzes": []}
                atomic_write_json(self.path, data)

            return data

    # PUBLIC_INTERFACE
    def save_all(self, data: Dict[str, Any]) -> None:
        """
        Persist the provided data to the JSON file using an atomic write.

        Args:
            data (dict): The full data structure to persist.
        """
        if not isinstance(data, dict):
            raise ValueError("Data must be a dict")
        if "quizzes" not in data or not isinstance(data["quizzes"], list):
            raise ValueError("Data must contain 'quizzes' as a list")

        with self._lock:
            atomic_write_json(self.path, data)

    @contextmanager
    def transaction(self) -> Iterator[List[Dict[str, Any]]]:
        """
        Yield the mutable quiz list under the store lock and persist it on exit.

        Nothing is written if the block raises.
        """
        with self._lock:
            data = self.load_all()
            quizzes: List[Dict[str, Any]] = data["quizzes"]
            yield quizzes
            data["quizzes"] = quizzes
            self.save_all(data)

    # PUBLIC_INTERFACE
    def add_quiz(self, quiz: Dict[str, Any]) -> Dict[str, Any]:
        """
        Append a quiz to the store and persist.

        Args:
            quiz (dict): Quiz object. Expected to contain an 'id' key for retrieval.

        Returns:
            dict: The same quiz object after persistence.
        """
        with self.transaction() as quizzes:
            quizzes.append(quiz)
        return quiz

    # PUBLIC_INTERFACE
    def get_quiz(self, quiz_id: str) -> Optional[Dict[str, Any]]:
        """
        Retrieve a quiz by its identifier.

        Returns:
            dict | None: The quiz dict if found, otherwise None.
        """
        for q in self.list_quizzes():
            if isinstance(q, dict) and str(q.get("id")) == str(quiz_id):
                return q
        return None

    # PUBLIC_INTERFACE
    def list_quizzes(self) -> List[Dict[str, Any]]:
        """Return the list of all quizzes in insertion order."""
        data = self.load_all()
        return list(data.get("quizzes", []))

    # PUBLIC_INTERFACE
    def update_quiz(
        self, quiz_id: str, fn: Callable[[Dict[str, Any]], Dict[str, Any]]
    ) -> Optional[Dict[str, Any]]:
        """
        Replace the quiz with the given id by `fn(current)`, atomically.

        `fn` runs while the store lock is held, so it sees the latest
        persisted version. Exceptions raised by `fn` abort the update.

        Returns:
            dict | None: The replacement quiz, or None if the id is unknown.
        """
        with self._lock:
            data = self.load_all()
            quizzes = data["quizzes"]
            for index, q in enumerate(quizzes):
                if isinstance(q, dict) and str(q.get("id")) == str(quiz_id):
                    replacement = fn(dict(q))
                    quizzes[index] = replacement
                    self.save_all(data)
                    return replacement
            return None

    # PUBLIC_INTERFACE
    def replace_quiz(self, quiz_id: str, quiz: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """Replace a stored quiz wholesale. Returns None if the id is unknown."""
        return self.update_quiz(quiz_id, lambda _current: quiz)

    # PUBLIC_INTERFACE
    def delete_quiz(self, quiz_id: str) -> bool:
        """
        Remove a quiz by id.

        Returns:
            bool: True if a quiz was removed, False if it was not found.
        """
        with self._lock:
            data = self.load_all()
            quizzes = data["quizzes"]
            remaining = [
                q for q in quizzes if not (isinstance(q, dict) and str(q.get("id")) == str(quiz_id))
            ]
            if len(remaining) == len(quizzes):
                return False
            data["quizzes"] = remaining
            self.save_all(data)
            return True
