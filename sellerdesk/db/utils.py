ASYNC_DRIVERS = {
    "postgres://": "postgresql+asyncpg://",
    "postgresql://": "postgresql+asyncpg://",
    "sqlite://": "sqlite+aiosqlite://",
}


def _normalize_db_url(url: str | None) -> str | None:
    # hosted dbs hand out sync urls , the async engine needs the async driver in the scheme
    if not url:
        return None
    for prefix, async_prefix in ASYNC_DRIVERS.items():
        if url.startswith(prefix):
            return url.replace(prefix, async_prefix, 1)
    return url
