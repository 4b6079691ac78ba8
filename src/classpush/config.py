import json
from pathlib import Path
from urllib.parse import urlsplit

from pydantic import AliasChoices, Field, computed_field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # API
    app_name: str = "classpush"
    app_version: str = "0.3.0"
    app_url: str = "http://localhost:3000"

    # Paths
    state_dir: str = Field(
        default=str(Path.home() / ".classpush"),
        validation_alias=AliasChoices("state_dir", "CLASSPUSH_STATE"),
        description="Directory for state files (config.json, subscriptions, keys)",
    )

    # VAPID
    vapid_public_key: str | None = Field(
        default=None,
        description="Base64url uncompressed P-256 point; generated if unset",
    )
    vapid_private_key: str | None = Field(
        default=None,
        description="Base64url 32-byte P-256 scalar",
    )
    vapid_subject: str | None = Field(
        default=None,
        description="mailto: or https: contact; defaults to admin@<app_url host>",
    )
    vapid_token_ttl_seconds: int = Field(default=12 * 3600, gt=0, le=24 * 3600)

    # Delivery
    push_ttl_seconds: int = Field(default=24 * 3600, ge=0)
    push_timeout_s: float = 10.0

    @computed_field  # type: ignore[prop-decorator]
    @property
    def push_subs_path(self) -> Path:
        """JSON file for push subscriptions."""
        return Path(self.state_dir) / "push_subscriptions.json"

    @property
    def contact_uri(self) -> str:
        if self.vapid_subject:
            return self.vapid_subject
        host = urlsplit(self.app_url).hostname or "localhost"
        return f"mailto:admin@{host}"

    @property
    def vapid_configured(self) -> bool:
        """True when either key half comes from the environment."""
        return bool(self.vapid_public_key or self.vapid_private_key)

    model_config = {
        "env_file": ".env",
        "extra": "ignore",
    }


_override: Settings | None = None


def get_settings() -> Settings:
    """Return the active settings instance."""
    if _override:
        return _override
    settings = Settings()
    return _load_config_file(settings)


def _load_config_file(settings: Settings) -> Settings:
    """Load and merge config.json if it exists."""
    config_path = Path(settings.state_dir) / "config.json"
    if not config_path.exists():
        return settings

    try:
        data = json.loads(config_path.read_text())
        if not isinstance(data, dict):
            return settings

        # Expand ~ in path fields
        if "state_dir" in data and isinstance(data["state_dir"], str):
            data["state_dir"] = str(Path(data["state_dir"]).expanduser())

        return settings.model_copy(update=data)
    except Exception:
        return settings


def override_settings(s: Settings | None) -> None:
    """Swap in a custom Settings (use None to reset)."""
    global _override  # noqa: PLW0603
    _override = s
