"""
Configuration settings for collection views.
Loads environment variables (``COLLECTION_VIEW_*``) and provides defaults
that controllers and the URL codec fall back to.
"""
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Collection view settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="COLLECTION_VIEW_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Pagination
    default_page_size: int = 25
    page_size_options: str = ""  # comma-separated, e.g. "10,25,50,100"

    # Sorting
    default_sort_mode: str = "additive"  # additive or exclusive

    # URL parameter limits
    max_url_params: int = 50
    max_url_param_length: int = 1000

    # Logging
    log_level: str = "INFO"

    @property
    def page_size_option_list(self) -> list[int]:
        """Parse page_size_options into a list of positive ints, skipping junk."""
        sizes: list[int] = []
        for part in self.page_size_options.split(","):
            part = part.strip()
            if part.isdigit() and int(part) > 0:
                sizes.append(int(part))
        return sizes


# Global settings instance
settings = Settings()
