"""S3 path utilities."""


class S3Path:
    """S3 path utilities for normalizing and handling S3 paths."""

    S3_PREFIX = "s3://"
    S3_PREFIX_LENGTH = len(S3_PREFIX)

    @staticmethod
    def is_s3_url(path: str) -> bool:
        return path.startswith(S3Path.S3_PREFIX)

    @staticmethod
    def normalize(path: str) -> str:
        """Normalize S3 path by removing s3:// prefix if present.

        Args:
            path: S3 path (with or without s3:// prefix)

        Returns:
            Normalized path without s3:// prefix
        """
        if path.startswith(S3Path.S3_PREFIX):
            return path[S3Path.S3_PREFIX_LENGTH:]
        return path

    @staticmethod
    def to_full_path(bucket: str, key: str) -> str:
        """Build full S3 path from bucket and key.

        Args:
            bucket: S3 bucket name
            key: S3 object key

        Returns:
            Full S3 path (s3://bucket/key)
        """
        return f"{S3Path.S3_PREFIX}{bucket}/{key.lstrip('/')}"

    @staticmethod
    def split(path: str) -> tuple[str, str]:
        """Split a full S3 path into bucket and key.

        Args:
            path: Full S3 path (s3://bucket/key)

        Returns:
            Tuple of (bucket, key)

        Raises:
            ValueError: the path names no key
        """
        bucket, _, key = S3Path.normalize(path).partition("/")
        if not bucket or not key:
            raise ValueError(f"Not a full S3 object path: {path}")
        return bucket, key

    @staticmethod
    def join(*parts: str) -> str:
        """Join path parts, normalizing separators.

        Args:
            *parts: Path parts to join

        Returns:
            Joined path with normalized separators
        """
        normalized_parts = [part.strip("/") for part in parts if part]
        return "/".join(normalized_parts)
