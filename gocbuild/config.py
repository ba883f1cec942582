"""gocbuild configuration loaded from environment variables.

Uses ``pydantic-settings`` for env-var loading, type coercion and
``.env`` file support.  Every variable is prefixed with ``GOCBUILD_``
(e.g. ``GOCBUILD_GO_BINARY=/usr/local/go/bin/go``).
"""

VERSION = "0.1.0"

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings -- sourced from environment / ``.env`` file."""

    model_config = SettingsConfigDict(
        env_prefix="GOCBUILD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Go toolchain binary used for list / build / run.
    GO_BINARY: str = "go"

    # Parent directory for relocated workspaces.  Blank → system temp dir.
    TMP_ROOT: str = ""

    # Keep the relocated workspace after build/run for inspection.
    DEBUG: bool = False

    # 0 disables the timeout; a hung toolchain then hangs until cancelled.
    BUILD_TIMEOUT_S: float = Field(default=0, ge=0)

    # Coverage center queried by ``gocbuild list``.
    CENTER_HOST: str = "http://127.0.0.1:7777"
    LIST_TIMEOUT_S: float = Field(default=10.0, gt=0)

    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""


settings = Settings()
