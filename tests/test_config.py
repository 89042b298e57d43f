from soft_delete.config import DEFAULT_SKIP_ENTITIES, SoftDeleteSettings


def test_defaults(monkeypatch):
    for name in (
        "SOFT_DELETE_SKIP_ENTITIES",
        "SOFT_DELETE_STAMP_UPDATES",
        "SOFT_DELETE_FLAG_FIELD",
        "SOFT_DELETE_DELETED_AT_FIELD",
        "SOFT_DELETE_UPDATED_AT_FIELD",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = SoftDeleteSettings.from_env()

    assert list(settings.skip_registry) == sorted(name.lower() for name in DEFAULT_SKIP_ENTITIES)
    assert settings.flag_field == "is_deleted"
    assert settings.deleted_at_field == "deleted_at"
    assert settings.updated_at_field == "updated_at"
    assert settings.stamp_updates is False


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("SOFT_DELETE_SKIP_ENTITIES", "AuditLog, Country")
    monkeypatch.setenv("SOFT_DELETE_STAMP_UPDATES", "true")
    monkeypatch.setenv("SOFT_DELETE_FLAG_FIELD", "tombstoned")
    monkeypatch.setenv("SOFT_DELETE_DELETED_AT_FIELD", "tombstoned_at")

    settings = SoftDeleteSettings.from_env()

    assert "auditlog" in settings.skip_registry
    assert "Country" in settings.skip_registry
    assert "Organization" not in settings.skip_registry
    assert settings.stamp_updates is True
    assert settings.not_deleted == {"tombstoned": False}
    assert set(settings.tombstone()) == {"tombstoned", "tombstoned_at"}


def test_explicit_skip_entities_win_over_environment(monkeypatch):
    monkeypatch.setenv("SOFT_DELETE_SKIP_ENTITIES", "AuditLog")

    settings = SoftDeleteSettings.from_env(skip_entities=["Country"])

    assert list(settings.skip_registry) == ["country"]
