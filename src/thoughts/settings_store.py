"""Persisted user settings blob with change notification."""

from __future__ import annotations

from contextlib import closing
from datetime import datetime
import logging
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from config import settings
from models import UserSettings
from time_utils import ensure_utc, utc_now

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_ID = "default"


class UserPreferences(BaseModel):
    """User-editable settings relevant to thought processing."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    allow_background_processing: bool = Field(default=False, alias="allowBackgroundProcessing")
    openai_api_key: str | None = Field(default=None, alias="openaiApiKey")
    ai_model: str | None = Field(default=None, alias="aiModel")

    def resolved_api_key(self) -> str | None:
        """Return the user's key, falling back to the configured one."""
        key = (self.openai_api_key or "").strip() or (settings.openai_api_key or "").strip()
        return key or None

    def has_api_key(self) -> bool:
        """Return True when a provider key is available."""
        return self.resolved_api_key() is not None


SettingsListener = Callable[[UserPreferences], None]


class SettingsStore:
    """Stores the settings blob and notifies subscribers on update."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        settings_id: str = DEFAULT_SETTINGS_ID,
        now_provider: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize the store for a single settings row."""
        self._session_factory = session_factory
        self._settings_id = settings_id
        self._now_provider = now_provider or utc_now
        self._listeners: list[SettingsListener] = []

    def get(self) -> UserPreferences:
        """Return the stored preferences, or defaults when none are saved."""
        with closing(self._session_factory()) as session:
            row = session.get(UserSettings, self._settings_id)
            data = dict(row.data or {}) if row is not None else {}
        return UserPreferences.model_validate(data)

    def update(self, **changes: Any) -> UserPreferences:
        """Merge changes (snake_case or camelCase keys), persist, and notify."""
        current = self.get()
        merged = UserPreferences.model_validate(
            {**current.model_dump(by_alias=True), **_aliased(changes)}
        )
        data = merged.model_dump(by_alias=True)
        with closing(self._session_factory()) as session:
            try:
                row = session.get(UserSettings, self._settings_id)
                if row is None:
                    row = UserSettings(id=self._settings_id)
                    session.add(row)
                row.data = data
                row.updated_at = ensure_utc(self._now_provider())
                session.commit()
            except Exception:
                session.rollback()
                raise
        self._notify(merged)
        return merged

    def subscribe(self, listener: SettingsListener) -> Callable[[], None]:
        """Register a change listener and return a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, preferences: UserPreferences) -> None:
        for listener in list(self._listeners):
            try:
                listener(preferences)
            except Exception:
                logger.exception("Settings listener failed")


def _aliased(changes: dict[str, Any]) -> dict[str, Any]:
    fields = UserPreferences.model_fields
    aliased: dict[str, Any] = {}
    for key, value in changes.items():
        field = fields.get(key)
        aliased[field.alias if field is not None and field.alias else key] = value
    return aliased
