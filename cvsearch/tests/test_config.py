import pytest
from pydantic import ValidationError

from cvworker.config import Settings


class TestSettings:
    def test_defaults(self):
        settings = Settings()

        assert settings.cv_retention_warning_days == 365
        assert settings.cv_retention_purge_days == 730
        assert settings.parser_version == "v1"
        assert settings.suggestion_similarity_threshold == 0.6

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("CVSEARCH_CV_RETENTION_WARNING_DAYS", "30")
        monkeypatch.setenv("CVSEARCH_CV_RETENTION_PURGE_DAYS", "60")
        monkeypatch.setenv("CVSEARCH_BLOB_BACKEND", "filesystem")

        settings = Settings()

        assert settings.cv_retention_warning_days == 30
        assert settings.cv_retention_purge_days == 60
        assert settings.blob_backend == "filesystem"

    def test_purge_must_exceed_warning(self):
        with pytest.raises(ValidationError, match="cv_retention_purge_days"):
            Settings(cv_retention_warning_days=60, cv_retention_purge_days=60)

    def test_unknown_blob_backend_rejected(self):
        with pytest.raises(ValidationError):
            Settings(blob_backend="ftp")
