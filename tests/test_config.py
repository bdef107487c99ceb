from expense_approval.config import Settings

def test_defaults_carry_no_credentials(monkeypatch):
    monkeypatch.delenv("MONGODB_URL", raising=False)
    config = Settings(_env_file=None)

    assert config.MONGODB_URL == "mongodb://localhost:27017"
    assert "@" not in config.MONGODB_URL

def test_tunables_read_from_environment(monkeypatch):
    monkeypatch.setenv("PARALLEL_AUTO_CLOSE_RATIO", "0.75")
    monkeypatch.setenv("ESCALATED_STEPS_DECIDABLE", "false")
    config = Settings(_env_file=None)

    assert config.PARALLEL_AUTO_CLOSE_RATIO == 0.75
    assert config.ESCALATED_STEPS_DECIDABLE is False
