class CatalogError(Exception):
    """Catalog could not be loaded or persisted; aborts the run."""


class CatalogFormatError(CatalogError):
    def __init__(self, path, reason: str, line: int | None = None):
        self.path = str(path)
        self.line = line
        self.reason = reason
        where = f"{self.path}:{line}" if line is not None else self.path
        super().__init__(f"{where}: {reason}")


class CatalogWriteError(CatalogError):
    pass


class FetchError(Exception):
    """One listing could not be fetched or extracted."""

    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"{url}: {reason}")


class SingleTargetError(Exception):
    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Failed to scrape URL {url}: {reason}")
