"""Application configuration.

AppConfig is a frozen dataclass: immutable after creation, IDE-autocompletable,
no string-key dict lookups.
"""

from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(app_name="shop", debug=True, secret_key="s3cr3t")
    """

    # Identity: sent as X-Powered-By on every response
    app_name: str = "rampart"

    # Error pages
    debug: bool = False

    # Request parsing switches
    parse_cookies: bool = True
    parse_body: bool = True

    # Sessions
    session_cookie_name: str = "rampart_session_id"
    session_max_age: int = 86400  # 24 hours
    secret_key: str = ""  # When set, session ids are signed

    # Views (requires the "views" extra)
    template_dir: str | Path | None = None

    # Static files
    static_dir: str | Path | None = "static"
    static_index: str = "index.html"
    static_cache_control: str = "public, max-age=3600"

    # Limits
    max_content_length: int = 16 * 1024 * 1024  # 16 MB
