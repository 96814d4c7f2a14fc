"""
Pydantic model for the user preferences consumed by the installation manager.
"""

from pydantic import BaseModel, field_validator


class Preferences(BaseModel):
    """Validated user preferences."""

    installation_path: str
    auto_remove: bool = False

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("installation_path")
    @classmethod
    def validate_installation_path(cls, v: str) -> str:
        """Ensures an installation base path is configured."""
        if not v:
            raise ValueError("Installation path cannot be empty.")
        return v

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the INI file."""
        return set(cls.model_fields)
