"""Prometheus metrics."""

from prometheus_client import Counter, Histogram

jobs_started = Counter(
    "publish_jobs_started_total",
    "Total number of publish jobs started",
)

jobs_succeeded = Counter(
    "publish_jobs_succeeded_total",
    "Total number of publish jobs succeeded",
)

jobs_failed = Counter(
    "publish_jobs_failed_total",
    "Total number of publish jobs failed",
    ["reason"],
)

remote_pushes = Counter(
    "remote_pushes_total",
    "Total number of pushes to remote repositories",
)

job_duration_seconds = Histogram(
    "publish_job_duration_seconds",
    "Duration of publish jobs in seconds",
    buckets=[1, 5, 10, 30, 60, 120, 300, 600, 1800],
)

build_poll_attempts = Histogram(
    "build_poll_attempts",
    "Number of build status polls per published dataset",
    buckets=[1, 2, 3, 5, 10, 20, 50],
)
