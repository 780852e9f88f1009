"""Static-site scaffold templates read from disk."""

from pathlib import Path

from publish_worker.domain.ports import SiteAssetsPort


class FileSystemSiteAssets(SiteAssetsPort):
    """Reads templates below a base directory, caching them after first use."""

    def __init__(self, base_dir: str | Path) -> None:
        """Initialize site assets."""
        self.base_dir = Path(base_dir)
        self._cache: dict[str, bytes] = {}

    def read(self, name: str) -> bytes:
        if name not in self._cache:
            self._cache[name] = (self.base_dir / name).read_bytes()
        return self._cache[name]
