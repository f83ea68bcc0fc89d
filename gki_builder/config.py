"""Configuration settings for gki_builder.

Uses pydantic-settings for config parsing from environment variables,
an optional YAML file and defaults. Configuration precedence:
CLI flags > env vars > .env > YAML file > defaults.
"""

import os
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field, SecretStr, computed_field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

# Prebuilt AOSP clang used for GKI builds
DEFAULT_CLANG_URL = (
    "https://android.googlesource.com/platform/prebuilts/clang/host/linux-x86/"
    "+archive/167e11df8c330bced88cdf5808f61f41d9eab330/clang-r584948.tar.gz"
)
DEFAULT_ANYKERNEL_REPO = "https://github.com/Axelin76/AnyKernel3.git"
DEFAULT_CONFIG_FILE = "gki-build.yaml"


def _config_file() -> Path:
    """Return the YAML config file path (may not exist)."""
    return Path(os.environ.get("GKI_CONFIG_FILE", DEFAULT_CONFIG_FILE))


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the GKI_ prefix.
    Telegram credentials are also accepted as plain BOT_TOKEN / CHAT_ID.
    Paths left unset are derived from kernel_dir.
    """

    model_config = SettingsConfigDict(
        env_prefix="GKI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Paths
    kernel_dir: Path = Field(
        default_factory=Path.cwd,
        description="Kernel source tree (build runs here)",
    )
    toolchain_dir: Path | None = Field(
        default=None,
        description="Toolchain root (defaults to <kernel_dir>/../toolchains)",
    )
    clang_dir: Path | None = Field(
        default=None,
        description="Clang install directory (defaults to <toolchain_dir>/clang)",
    )
    anykernel_dir: Path | None = Field(
        default=None,
        description="AnyKernel3 template directory (defaults to <kernel_dir>/AK)",
    )
    out_dir: Path = Field(
        default=Path("out"),
        description="Kernel build output directory, relative to kernel_dir",
    )
    build_log: Path = Field(
        default=Path("build.log"),
        description="Build log file, relative to kernel_dir",
    )

    # Toolchain
    clang_url: str = Field(
        default=DEFAULT_CLANG_URL,
        description="URL of the clang prebuilt archive",
    )
    clang_sha256: str | None = Field(
        default=None,
        description="Expected SHA-256 of the clang archive (skip check if unset)",
    )

    # Kernel build
    arch: str = Field(default="arm64", description="Kernel ARCH")
    cross_compile: str = Field(
        default="aarch64-linux-gnu-",
        description="CROSS_COMPILE prefix",
    )
    defconfig: str = Field(default="gki_defconfig", description="Defconfig target")
    make_target: str = Field(default="Image", description="Kernel image target")
    jobs: int | None = Field(
        default=None,
        ge=1,
        description="Parallel make jobs (defaults to all available CPUs)",
    )

    # Packaging
    anykernel_repo: str = Field(
        default=DEFAULT_ANYKERNEL_REPO,
        description="AnyKernel3 template repository",
    )
    anykernel_branch: str = Field(
        default="gki",
        description="AnyKernel3 template branch",
    )
    zip_prefix: str = Field(default="gki", description="Flashable zip name prefix")
    zip_excludes: list[str] = Field(
        default_factory=lambda: [".git", ".gitignore", "README.md"],
        description="Names left out of the flashable zip",
    )

    # Telegram
    bot_token: SecretStr | None = Field(
        default=None,
        validation_alias=AliasChoices("GKI_BOT_TOKEN", "BOT_TOKEN"),
        description="Telegram bot token",
    )
    chat_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("GKI_CHAT_ID", "CHAT_ID"),
        description="Telegram chat id",
    )
    telegram_api_base: str = Field(
        default="https://api.telegram.org",
        description="Telegram Bot API base URL",
    )

    # Operational modes
    offline: bool = Field(
        default=False,
        description="Offline mode - do not download the toolchain",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="WARNING",
        description="Logging level",
    )

    # Timeouts (in seconds)
    download_timeout: int = Field(
        default=3600,
        ge=60,
        description="Timeout for the toolchain download",
    )
    upload_timeout: int = Field(
        default=300,
        ge=10,
        description="Timeout for the Telegram upload",
    )
    build_timeout: int | None = Field(
        default=None,
        ge=60,
        description="Timeout for each make phase (no timeout if unset)",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Insert the YAML file source below env and .env."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=_config_file()),
            file_secret_settings,
        )

    @computed_field
    @property
    def toolchain_root(self) -> Path:
        """Toolchain root, <kernel_dir>/../toolchains unless set."""
        if self.toolchain_dir is not None:
            return self.toolchain_dir
        return self.kernel_dir.parent / "toolchains"

    @computed_field
    @property
    def clang_root(self) -> Path:
        """Clang install directory, <toolchain_root>/clang unless set."""
        if self.clang_dir is not None:
            return self.clang_dir
        return self.toolchain_root / "clang"

    @computed_field
    @property
    def anykernel_root(self) -> Path:
        """AnyKernel3 template directory, <kernel_dir>/AK unless set."""
        if self.anykernel_dir is not None:
            return self.anykernel_dir
        return self.kernel_dir / "AK"

    @property
    def out_path(self) -> Path:
        """Absolute kernel build output directory."""
        return self.kernel_dir / self.out_dir

    @property
    def build_log_path(self) -> Path:
        """Absolute build log path."""
        return self.kernel_dir / self.build_log

    @property
    def telegram_token(self) -> str:
        """Bot token as plain text, empty when unset."""
        return self.bot_token.get_secret_value() if self.bot_token else ""

    @property
    def telegram_configured(self) -> bool:
        """True when both Telegram credentials are non-empty."""
        return bool(self.telegram_token) and bool(self.chat_id)

    def resolved_jobs(self) -> int:
        """Return the make job count, defaulting to all available CPUs."""
        if self.jobs is not None:
            return self.jobs
        return os.cpu_count() or 1


def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Secrets are masked.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = ["Settings", "get_settings", "print_settings_json"]
