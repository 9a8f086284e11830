"""Chat settings model."""
from dataclasses import dataclass

from config import DEFAULT_MODEL

API_KEY_PREFIX = "sk-or-"


@dataclass
class ChatSettings:
    """Credential and model selection for the completion endpoint."""
    api_key: str = ""
    selected_model: str = DEFAULT_MODEL
    custom_model: str = ""

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key)

    @property
    def effective_model(self) -> str:
        """The custom model override when set, otherwise the selected model."""
        return self.custom_model or self.selected_model or DEFAULT_MODEL

    @property
    def masked_api_key(self) -> str:
        if not self.api_key:
            return ""
        if len(self.api_key) <= 10:
            return "*" * len(self.api_key)
        return f"{self.api_key[:6]}...{self.api_key[-4:]}"

    def api_key_looks_valid(self) -> bool:
        """OpenRouter keys start with ``sk-or-``; an empty key is not flagged."""
        return not self.api_key or self.api_key.startswith(API_KEY_PREFIX)
