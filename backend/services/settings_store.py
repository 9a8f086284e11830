"""Persistence of credential and model selection."""
import logging
from typing import List, Optional

from config import DEFAULT_MODEL
from models.settings import ChatSettings, API_KEY_PREFIX
from .context import AppContext
from .storage import StorageError

logger = logging.getLogger(__name__)


class SettingsStore:
    """Loads and saves ChatSettings through the context's key-value store."""

    def __init__(self, context: AppContext):
        self.context = context
        self.keys = context.storage_keys

    def load(self) -> ChatSettings:
        """Read settings from storage into the context and return them."""
        storage = self.context.storage
        try:
            settings = ChatSettings(
                api_key=storage.get(self.keys["API_KEY"]) or "",
                selected_model=storage.get(self.keys["MODEL"]) or DEFAULT_MODEL,
                custom_model=storage.get(self.keys["CUSTOM_MODEL"]) or "",
            )
        except StorageError as e:
            logger.error(f"Error reading settings, using defaults: {e}")
            self.context.notifier.error("Failed to load settings")
            settings = ChatSettings()
        self.context.settings = settings
        logger.info(
            f"Loaded settings: model={settings.effective_model}, "
            f"credential={'set' if settings.has_credential else 'missing'}"
        )
        return settings

    def save(
        self,
        api_key: str = "",
        selected_model: Optional[str] = None,
        custom_model: str = "",
    ) -> List[str]:
        """
        Persist new settings.

        A key without the ``sk-or-`` prefix is still saved; the returned
        warnings let the UI tell the user it looks wrong.

        Returns:
            List of warning strings (empty when nothing looks off)
        """
        settings = ChatSettings(
            api_key=(api_key or "").strip(),
            selected_model=(selected_model or "").strip() or DEFAULT_MODEL,
            custom_model=(custom_model or "").strip(),
        )

        warnings = []
        if not settings.api_key_looks_valid():
            warnings.append(
                f'API key format looks incorrect. OpenRouter keys usually start with "{API_KEY_PREFIX}".'
            )

        storage = self.context.storage
        try:
            storage.set(self.keys["API_KEY"], settings.api_key)
            storage.set(self.keys["MODEL"], settings.selected_model)
            storage.set(self.keys["CUSTOM_MODEL"], settings.custom_model)
        except StorageError as e:
            logger.error(f"Error saving settings: {e}")
            self.context.notifier.error("Failed to save settings")
            raise

        self.context.settings = settings
        self.context.notifier.info("Settings saved successfully!")
        return warnings
