"""Unit tests for settings and process wiring."""

from unittest.mock import MagicMock, patch

import httpx

from publish_worker.infrastructure.config.settings import Settings
from publish_worker.infrastructure.github.repository_store import GitHubRepositoryStore
from publish_worker.infrastructure.runtime.main import build_dependencies, export_aws_credentials

REQUIRED = {
    "aws_s3_bucket": "publish-bucket",
    "aws_sqs_publish_job_queue_url": "https://sqs.example/queue",
    "aws_sns_dataset_events_topic_arn": "arn:aws:sns:us-east-1:123:dataset-events",
    "github_token": "token",
    "github_login": "octopub",
}


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **{**REQUIRED, **overrides})


def test_settings_defaults():
    """Test optional settings fall back to their defaults."""
    settings = _settings()

    assert settings.github_pages_branch == "gh-pages"
    assert settings.build_poll_max_attempts == 20
    assert settings.aws_sqs_publish_job_queue_enabled is True


def test_export_aws_credentials(monkeypatch):
    """Test credentials from settings are exported for boto3."""
    for name in ("AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY"):
        monkeypatch.setenv(name, "unset")
        monkeypatch.delenv(name)

    assert export_aws_credentials(_settings()) is False
    assert export_aws_credentials(_settings(aws_access_key_id="id", aws_secret_access_key="secret")) is True


def test_build_dependencies_applies_poll_settings():
    """Test the build poll policy comes from settings."""
    settings = _settings(build_poll_max_attempts=3, build_poll_initial_seconds=2)

    with (
        patch("publish_worker.infrastructure.aws.s3_io.boto3") as s3_boto3,
        patch("publish_worker.infrastructure.aws.sns_notifier.boto3") as sns_boto3,
    ):
        s3_boto3.client.return_value = MagicMock()
        sns_boto3.client.return_value = MagicMock()
        deps = build_dependencies(settings, httpx.AsyncClient(), httpx.AsyncClient())

    assert deps.poll_policy.max_attempts == 3
    assert deps.poll_policy.initial_seconds == 2
    assert isinstance(deps.repository_store, GitHubRepositoryStore)
    assert deps.repository_store.login == "octopub"
