"""Settings resolution with 5-step profile precedence chain."""

from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path

import tomlkit
import typer
from pydantic import SecretStr
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

CONFIG_PATH = Path.home() / ".config" / "ghdash" / "config.toml"


class GhdashSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="GHDASH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    default_profile: str | None = None

    # GitHub
    owner: str | None = None  # organization (or user) whose repos and projects are shown
    github_token: SecretStr | None = None
    github_auth: str = "token"  # "token" | "gh-cli"
    api_url: str = "https://api.github.com"
    graphql_url: str = "https://api.github.com/graphql"

    # Fetching
    batch_size: int = 5  # repositories fetched concurrently per batch
    batch_delay: float = 0.1  # seconds between batches
    page_size: int = 100
    timeout: float = 30.0

    log_level: str = "WARNING"

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # profile values arrive as init kwargs; the environment overrides them
        return env_settings, dotenv_settings, init_settings, file_secret_settings


@lru_cache(maxsize=1)
def _load_toml() -> tomlkit.TOMLDocument:
    """Load ~/.config/ghdash/config.toml, returning empty document if missing."""
    if not CONFIG_PATH.exists():
        return tomlkit.document()
    return tomlkit.load(CONFIG_PATH.open())


def _list_profiles(config: Mapping) -> list[str]:
    # tomlkit Table implements MutableMapping but not dict, so check Mapping
    return [k for k, v in config.items() if isinstance(v, Mapping)]


def _cwd_env_profile() -> str | None:
    """Read GHDASH_PROFILE from .env in cwd without full settings instantiation."""
    env_file = Path(".env")
    if not env_file.exists():
        return None
    for line in env_file.read_text().splitlines():
        line = line.strip()
        if line.startswith("GHDASH_PROFILE="):
            return line.split("=", 1)[1].strip().strip("\"'")
    return None


def get_settings(profile: str | None = None) -> GhdashSettings:
    """Resolve the active profile and return a fully populated GhdashSettings.

    Precedence (highest to lowest):
    1. profile argument (--profile CLI flag)
    2. GHDASH_DEFAULT_PROFILE env var
    3. default_profile key in ~/.config/ghdash/config.toml
    4. GHDASH_PROFILE in .env in cwd
    5. First profile defined in ~/.config/ghdash/config.toml
    """
    import os

    toml_config = _load_toml()

    active = (
        profile
        or os.environ.get("GHDASH_DEFAULT_PROFILE")
        or toml_config.get("default_profile")
        or _cwd_env_profile()
        or ((_profiles := _list_profiles(toml_config)) and _profiles[0] or None)
    )

    profile_defaults: dict = {}
    if active:
        if active in toml_config and isinstance(toml_config[active], Mapping):
            profile_defaults = dict(toml_config[active])
        elif active not in toml_config:
            profiles = _list_profiles(toml_config)
            typer.echo(f"Profile '{active}' not found in {CONFIG_PATH}. Available: {profiles or '(none)'}")
            raise typer.Exit(1)

    # GHDASH_* variables and .env override the profile values
    settings = GhdashSettings(**profile_defaults)

    if not settings.owner:
        typer.echo(
            "Missing GitHub owner. Set GHDASH_OWNER or "
            f"owner in the [{active or 'profile'}] section of {CONFIG_PATH}"
        )
        raise typer.Exit(1)
    if settings.github_auth == "token" and not settings.github_token:
        typer.echo(
            "Missing GitHub credentials. Set GHDASH_GITHUB_TOKEN or "
            f"github_token in the [{active or 'profile'}] section of {CONFIG_PATH}, "
            'or set github_auth = "gh-cli" to use the gh CLI.'
        )
        raise typer.Exit(1)

    return settings
