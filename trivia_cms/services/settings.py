import logging

from pydantic import ValidationError

from trivia_cms.models import QuestionCountOption, Settings
from trivia_cms.storage.device_store import DeviceStore

logger = logging.getLogger(__name__)

SETTINGS_KEY = "quiz_settings"


class SettingsService:
    """Loads and saves user settings; construct one per process."""

    # PUBLIC_INTERFACE
    def __init__(self, store: DeviceStore) -> None:
        self.store = store

    # PUBLIC_INTERFACE
    def load(self) -> Settings:
        """Stored settings, or the defaults when none are stored or they are unreadable."""
        raw = self.store.get_blob(SETTINGS_KEY)
        if raw is None:
            return Settings()
        try:
            return Settings.model_validate(raw)
        except ValidationError as e:
            logger.warning("Failed to load settings, using defaults: %s", e)
            return Settings()

    # PUBLIC_INTERFACE
    def save(self, settings: Settings) -> bool:
        """Persist settings. Returns False (after logging) when the write failed."""
        try:
            self.store.set_blob(SETTINGS_KEY, settings.model_dump(mode="json"))
        except OSError as e:
            logger.error("Failed to save settings: %s", e)
            return False
        return True

    # PUBLIC_INTERFACE
    def default_question_count(self) -> QuestionCountOption:
        return self.load().default_question_count

    # PUBLIC_INTERFACE
    def set_default_question_count(self, count: QuestionCountOption) -> Settings:
        settings = Settings.model_validate({**self.load().model_dump(), "default_question_count": count})
        self.save(settings)
        return settings
