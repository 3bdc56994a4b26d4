"""Shared fixtures: temporary stores and quiz payload factories."""

import pytest

from trivia_cms.models import QuizInput
from trivia_cms.storage.device_store import DeviceStore
from trivia_cms.storage.json_store import QuizJsonStore


@pytest.fixture
def quiz_store(tmp_path):
    return QuizJsonStore(path=str(tmp_path / "quizzes.json"))


@pytest.fixture
def device_store(tmp_path):
    return DeviceStore(directory=str(tmp_path / "device"))


def make_quiz_payload(**overrides):
    payload = {
        "question": "What is the capital of Japan?",
        "options": ["Tokyo", "Osaka", "Kyoto", "Nagoya"],
        "correct_answer": 0,
        "explanation": "Tokyo has been the capital since 1868.",
        "difficulty": "easy",
        "category": "geography",
        "tags": ["capital", "cities"],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def quiz_payload():
    return make_quiz_payload


@pytest.fixture
def quiz_input():
    def factory(**overrides):
        return QuizInput.model_validate(make_quiz_payload(**overrides))

    return factory
