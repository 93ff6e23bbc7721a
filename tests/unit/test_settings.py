from dishscan.config.settings import ScanSettings, Settings


def test_scan_defaults():
    config = ScanSettings()
    assert config.match_threshold == 0.4
    assert config.preload_timeout_ms == 3000
    assert (config.completion_delay_ms, config.failure_abort_delay_ms, config.quota_abort_delay_ms) == (300, 3000, 5000)
    assert config.ocr_languages == ["chi_sim", "eng"]


def test_language_hints_from_env(monkeypatch):
    monkeypatch.setenv("SCAN_OCR_LANGUAGES", "jpn+eng")
    assert ScanSettings().ocr_languages == ["jpn", "eng"]

    monkeypatch.setenv("SCAN_OCR_LANGUAGES", "kor, eng")
    assert ScanSettings().ocr_languages == ["kor", "eng"]


def test_cors_origins_from_env(monkeypatch):
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example.com,https://b.example.com")
    settings = Settings(_env_file=None)
    assert settings.get_cors_config()["allow_origins"] == ["https://a.example.com", "https://b.example.com"]
