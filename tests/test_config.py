from config import DEFAULT_LLM_MODEL, Settings, get_settings


def test_defaults_without_environment():
    settings = Settings.from_env()
    assert settings.openrouter_api_key is None
    assert not settings.llm_configured
    assert settings.llm_model == DEFAULT_LLM_MODEL
    assert settings.synthesize_configs is False
    assert settings.cors_origins == ["http://localhost:3000"]


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY", "sk-or-test")
    monkeypatch.setenv("SYNTHESIZE_RETAILER_CONFIGS", "yes")
    monkeypatch.setenv("FETCH_RETRIES", "0")
    monkeypatch.setenv("CORS_ORIGINS", "https://app.example.com, http://localhost:5173,")

    settings = Settings.from_env()

    assert settings.llm_configured
    assert settings.synthesize_configs is True
    assert settings.fetch_retries == 0
    assert settings.cors_origins == ["https://app.example.com", "http://localhost:5173"]


def test_get_settings_is_cached(monkeypatch):
    first = get_settings()
    monkeypatch.setenv("OPENROUTER_API_KEY", "late")
    assert get_settings() is first
    get_settings.cache_clear()
    assert get_settings().openrouter_api_key == "late"
