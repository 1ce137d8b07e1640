"""Unit tests for the persisted user settings blob."""

from config import settings
from thoughts.settings_store import SettingsStore, UserPreferences


def test_defaults_when_nothing_saved(sqlite_session_factory, monkeypatch) -> None:
    """An empty store returns defaults with background processing off."""
    monkeypatch.setattr(settings, "openai_api_key", None)
    store = SettingsStore(sqlite_session_factory)

    preferences = store.get()

    assert preferences.allow_background_processing is False
    assert preferences.openai_api_key is None
    assert preferences.has_api_key() is False


def test_update_accepts_either_spelling(sqlite_session_factory) -> None:
    """Snake case and camelCase keys both update the blob."""
    store = SettingsStore(sqlite_session_factory)

    store.update(allow_background_processing=True)
    store.update(openaiApiKey="sk-user", theme="dark")
    preferences = store.get()

    assert preferences.allow_background_processing is True
    assert preferences.openai_api_key == "sk-user"
    assert preferences.model_extra == {"theme": "dark"}


def test_resolved_key_falls_back_to_config(monkeypatch) -> None:
    """The configured key is used when the blob has none."""
    monkeypatch.setattr(settings, "openai_api_key", "sk-config")

    assert UserPreferences(openaiApiKey="  ").resolved_api_key() == "sk-config"
    assert UserPreferences(openaiApiKey="sk-user").resolved_api_key() == "sk-user"


def test_subscribers_are_notified(sqlite_session_factory) -> None:
    """Listeners receive the merged preferences until they unsubscribe."""
    store = SettingsStore(sqlite_session_factory)
    seen = []
    unsubscribe = store.subscribe(lambda preferences: seen.append(preferences))

    store.update(allowBackgroundProcessing=True)
    unsubscribe()
    store.update(allowBackgroundProcessing=False)

    assert [preferences.allow_background_processing for preferences in seen] == [True]


def test_failing_listener_does_not_block_others(sqlite_session_factory) -> None:
    """A listener error is logged and the remaining listeners still run."""
    store = SettingsStore(sqlite_session_factory)
    seen = []

    def broken(preferences):
        raise RuntimeError("boom")

    store.subscribe(broken)
    store.subscribe(seen.append)

    store.update(aiModel="gpt-4o")

    assert seen[0].ai_model == "gpt-4o"
