from src.settings import Settings


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("MAX_MILESTONE_DOCUMENTS", "5")
    monkeypatch.setenv("NOTIFICATION_WEBHOOK_URL", "https://notify.example.edu/events")
    configured = Settings()
    assert configured.MAX_MILESTONE_DOCUMENTS == 5
    assert configured.NOTIFICATION_WEBHOOK_URL == "https://notify.example.edu/events"
    assert Settings.model_config["env_file"] == ".env"
