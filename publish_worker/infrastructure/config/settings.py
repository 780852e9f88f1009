"""Application settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    aws_region: str = "us-east-1"
    aws_s3_bucket: str
    aws_sqs_publish_job_queue_url: str
    aws_sqs_publish_job_queue_enabled: bool = True
    # Notification channels are delivered through this topic
    aws_sns_dataset_events_topic_arn: str

    github_api_url: str = "https://api.github.com"
    github_token: str
    github_login: str
    github_pages_branch: str = "gh-pages"

    certificate_service_url: str = "https://certificates.theodi.org"
    certificate_api_key: str | None = None

    site_assets_dir: str = "assets/site"

    worker_concurrency: int = 4
    dataset_lease_timeout_seconds: float = 30
    build_poll_initial_seconds: float = 5
    build_poll_max_interval_seconds: float = 60
    build_poll_max_attempts: int = 20
    build_poll_deadline_seconds: float = 900
    http_timeout_seconds: float = 30

    prometheus_port: int = 9300
    log_level: str = "INFO"
    log_json: bool = True

    # AWS Credentials (optional - loaded from .env but not used directly)
    # These are automatically picked up by boto3 from environment variables
    aws_access_key_id: str | None = None
    aws_secret_access_key: str | None = None
    aws_session_token: str | None = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="",
        # Allow extra fields to be loaded but not validated
        extra="ignore",
    )
