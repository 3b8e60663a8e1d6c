"""Configuration management for postcheck.

This module provides configuration profile management: creating, listing,
deleting and switching between target servers, plus environment variable
overrides for running the harness in CI.
"""

import os
import tomllib
import json
from pathlib import Path
from typing import Dict, List, Optional, Any
from urllib.parse import urlparse

from pydantic import BaseModel, Field, field_validator, HttpUrl, ValidationError

from .exceptions import ConfigurationError

ENV_BASE_URL = "POSTCHECK_BASE_URL"
ENV_TIMEOUT = "POSTCHECK_TIMEOUT"
ENV_SEED = "POSTCHECK_SEED"
ENV_WORKERS = "POSTCHECK_WORKERS"


class Profile(BaseModel):
    """Configuration profile for one server under test."""

    name: str = Field(..., description="Profile name")
    base_url: HttpUrl = Field(..., description="Base URL of the posts API")
    timeout: int = Field(default=30, description="Request timeout in seconds")
    max_workers: int = Field(default=1, description="Scenarios run concurrently")
    seed: Optional[int] = Field(default=None, description="Seed for fixture generation")
    read_after_delete_retries: int = Field(
        default=0, description="Retries for reads that expect a deleted post to be gone"
    )
    retry_base_delay: float = Field(default=0.5, description="Base delay between retries in seconds")
    active: bool = Field(default=False, description="Whether this is the active profile")

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: int) -> int:
        """Validate timeout value."""
        if v <= 0:
            raise ValueError("Timeout must be greater than 0")
        if v > 300:  # 5 minutes max
            raise ValueError("Timeout cannot exceed 300 seconds")
        return v

    @field_validator("max_workers")
    @classmethod
    def validate_max_workers(cls, v: int) -> int:
        """Validate worker count."""
        if v < 1:
            raise ValueError("At least one worker is required")
        if v > 32:
            raise ValueError("Worker count cannot exceed 32")
        return v

    @field_validator("read_after_delete_retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        """Validate retry attempts value."""
        if v < 0:
            raise ValueError("Retry attempts cannot be negative")
        if v > 10:
            raise ValueError("Retry attempts cannot exceed 10")
        return v

    @field_validator("retry_base_delay")
    @classmethod
    def validate_retry_base_delay(cls, v: float) -> float:
        """Validate retry delay value."""
        if v <= 0:
            raise ValueError("Retry delay must be greater than 0")
        return v

    def model_dump(self, **kwargs: Any) -> Dict[str, Any]:
        """Convert profile to dictionary with proper string conversion."""
        data = super().model_dump(**kwargs)
        # Convert HttpUrl to string and remove trailing slash for consistency
        if "base_url" in data:
            data["base_url"] = str(data["base_url"]).rstrip("/")
        return data


class ConfigManager:
    """Manages configuration profiles for target servers."""

    def __init__(self, config_dir: Optional[Path] = None) -> None:
        """Initialize configuration manager.

        Args:
            config_dir: Configuration directory path. If None, uses default.
        """
        self.config_dir = config_dir or Path.home() / ".postcheck"
        self.config_file = self.config_dir / "config.toml"
        self.profiles_dir = self.config_dir / "profiles"

        self._profiles: Dict[str, Profile] = {}
        self._active_profile: Optional[str] = None
        self._load_config()

    def create_profile(
        self,
        name: str,
        base_url: str,
        timeout: int = 30,
        max_workers: int = 1,
        seed: Optional[int] = None,
        read_after_delete_retries: int = 0,
    ) -> Profile:
        """Create a new configuration profile.

        Args:
            name: Profile name
            base_url: Base URL of the posts API
            timeout: Request timeout in seconds
            max_workers: Scenarios run concurrently
            seed: Seed for fixture generation
            read_after_delete_retries: Retries for read-after-delete checks

        Returns:
            Created profile

        Raises:
            ConfigurationError: If profile creation fails
        """
        if name in self._profiles:
            raise ConfigurationError(f"Profile '{name}' already exists")

        parsed_url = urlparse(base_url)
        if not parsed_url.scheme or not parsed_url.netloc:
            raise ConfigurationError("Invalid URL format")

        try:
            profile = Profile(
                name=name,
                base_url=base_url,
                timeout=timeout,
                max_workers=max_workers,
                seed=seed,
                read_after_delete_retries=read_after_delete_retries,
            )
        except ValidationError as e:
            raise ConfigurationError(f"Failed to create profile: {e}")

        self._profiles[name] = profile
        self._save_profile(profile)
        if self._active_profile is None:
            self._active_profile = name
            profile.active = True
        self._save_config()

        return profile

    def list_profiles(self) -> List[Dict[str, Any]]:
        """List all available profiles.

        Returns:
            List of profile configurations
        """
        profiles = []
        for profile in self._profiles.values():
            profile_dict = profile.model_dump()
            profile_dict["active"] = profile.name == self._active_profile
            profiles.append(profile_dict)

        return profiles

    def set_active_profile(self, name: str) -> None:
        """Set the active profile.

        Raises:
            ConfigurationError: If profile doesn't exist
        """
        if name not in self._profiles:
            raise ConfigurationError(f"Profile '{name}' not found")

        for profile in self._profiles.values():
            profile.active = profile.name == name

        self._active_profile = name
        self._save_config()

    def get_active_profile(self) -> Optional[str]:
        """Get the name of the active profile, or None if no profile is active."""
        return self._active_profile

    def get_default_profile(self) -> Profile:
        """Get the default (active) profile.

        Raises:
            ConfigurationError: If no default profile is set
        """
        if not self._active_profile:
            raise ConfigurationError("No default profile set")

        return self._profiles[self._active_profile]

    def get_profile(self, name: str) -> Profile:
        """Get a specific profile by name.

        Raises:
            ConfigurationError: If profile doesn't exist
        """
        if name not in self._profiles:
            raise ConfigurationError(f"Profile '{name}' not found")

        return self._profiles[name]

    def delete_profile(self, name: str) -> None:
        """Delete a configuration profile.

        Raises:
            ConfigurationError: If profile doesn't exist
        """
        if name not in self._profiles:
            raise ConfigurationError(f"Profile '{name}' not found")

        if self._active_profile == name:
            self._active_profile = None

        del self._profiles[name]

        profile_file = self.profiles_dir / f"{name}.json"
        if profile_file.exists():
            profile_file.unlink()

        self._save_config()

    def has_environment_config(self) -> bool:
        """Check if environment variables provide a target server."""
        return bool(os.getenv(ENV_BASE_URL))

    def get_environment_config(self) -> Dict[str, Any]:
        """Get configuration values present in environment variables.

        Returns:
            Dictionary of profile fields set through the environment

        Raises:
            ConfigurationError: If a numeric variable is not an integer
        """
        config: Dict[str, Any] = {}
        if os.getenv(ENV_BASE_URL):
            config["base_url"] = os.getenv(ENV_BASE_URL)

        for var, field in ((ENV_TIMEOUT, "timeout"), (ENV_SEED, "seed"), (ENV_WORKERS, "max_workers")):
            raw = os.getenv(var)
            if raw is None or raw == "":
                continue
            try:
                config[field] = int(raw)
            except ValueError:
                raise ConfigurationError(f"{var} must be an integer, got '{raw}'")

        return config

    def resolve_profile(self, name: Optional[str] = None, **overrides: Any) -> Profile:
        """Build the effective profile for a run.

        Precedence is explicit overrides, then environment variables, then
        the named (or active) profile, then field defaults.

        Args:
            name: Profile to start from. Uses the active profile if None.
            **overrides: Explicit values; None entries are ignored

        Returns:
            Effective profile

        Raises:
            ConfigurationError: If no base URL is available or values are invalid
        """
        data: Dict[str, Any] = {"name": "default"}
        if name is not None:
            data.update(self.get_profile(name).model_dump())
        elif self._active_profile:
            data.update(self.get_default_profile().model_dump())

        env_config = self.get_environment_config()
        if env_config and name is None and not self._active_profile:
            data["name"] = "env"
        data.update(env_config)
        data.update({key: value for key, value in overrides.items() if value is not None})

        if not data.get("base_url"):
            raise ConfigurationError(
                "No target server configured. Please either:\n"
                "  1. Run 'postcheck config add' to set up a profile,\n"
                f"  2. Set the {ENV_BASE_URL} environment variable, or\n"
                "  3. Pass --base-url"
            )

        try:
            return Profile(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

    def _load_config(self) -> None:
        """Load configuration from file."""
        if not self.config_file.exists():
            return

        try:
            with open(self.config_file, "rb") as f:
                config_data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ConfigurationError(f"Failed to load configuration: {e}")

        self._active_profile = config_data.get("active_profile") or None

        for profile_file in self.profiles_dir.glob("*.json"):
            try:
                with open(profile_file, "r") as f:
                    profile_data = json.load(f)
                profile = Profile(**profile_data)
            except (OSError, ValueError) as e:
                # Skip the broken file but keep loading the others
                print(f"Warning: Failed to load profile {profile_file}: {e}")
                continue
            self._profiles[profile.name] = profile

        if self._active_profile not in self._profiles:
            self._active_profile = None

    def _save_config(self) -> None:
        """Save configuration to file."""
        # tomllib is read-only, so the file is written by hand
        active = f'"{self._active_profile}"' if self._active_profile else '""'
        toml_content = f"""# postcheck configuration
version = "1.0"
active_profile = {active}
"""
        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, "w") as f:
                f.write(toml_content)
        except OSError as e:
            raise ConfigurationError(f"Failed to save configuration: {e}")

    def _save_profile(self, profile: Profile) -> None:
        """Save individual profile to file."""
        try:
            self.profiles_dir.mkdir(parents=True, exist_ok=True)
            profile_file = self.profiles_dir / f"{profile.name}.json"
            with open(profile_file, "w") as f:
                json.dump(profile.model_dump(), f, indent=2, default=str)
        except OSError as e:
            raise ConfigurationError(f"Failed to save profile: {e}")
