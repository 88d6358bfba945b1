import json
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from app.utils.domains import normalize_domain


def _split_list(v):
    """
    Accept list settings in two formats:
      - JSON array string: '["a.it","b.it"]'
      - Comma/semicolon/newline separated: "a.it, b.it"
    """
    if v is None:
        return v
    if isinstance(v, str):
        s = v.strip()
        if not s:
            return []
        if s.startswith("["):
            return json.loads(s)
        for sep in (";", "\n"):
            s = s.replace(sep, ",")
        return [item.strip() for item in s.split(",") if item.strip()]
    return v


class SiteOverride(BaseModel):
    """Per-domain probing override for sites that need bespoke handling."""

    model_config = ConfigDict(frozen=True)

    domain: str
    timeout_seconds: Optional[float] = None
    verify_tls: bool = True
    prefer_wp_json: bool = False
    template_family: Optional[str] = None
    url_templates: tuple[str, ...] = ()

    @field_validator("domain")
    @classmethod
    def _normalize(cls, v: str) -> str:
        return normalize_domain(v)


DEFAULT_URL_TEMPLATES = (
    "https://{domain}/video/{slug}/",
    "https://{domain}/{slug}/",
)

# Sites not reliably indexed by search engines; resolved by crawling their own search.
DEFAULT_INTERNAL_SEARCH_DOMAINS = (
    "ilsussidiario.net",
    "notiziedi.it",
    "video.italiaoggi.it",
)

DEFAULT_SITE_OVERRIDES = (
    # Slow origin with a broken certificate chain; its REST API is more reliable than the HTML.
    SiteOverride(
        domain="ilsussidiario.net",
        timeout_seconds=22.0,
        verify_tls=False,
        prefer_wp_json=True,
        template_family="cards",
    ),
)


class Settings(BaseSettings):
    """
    Site article finder settings

    All settings are read from the environment once at startup. The model is
    frozen: components receive it explicitly and never mutate it.

    Sources, in order:
      1. environment variables
      2. .env.local / .env files
    """

    model_config = SettingsConfigDict(
        env_file=(
            Path(__file__).parent.parent.parent / ".env.local",
            Path(__file__).parent.parent.parent / ".env",
            ".env",
        ),
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
        frozen=True,
    )

    # ===== Application =====
    app_name: str = "Site Article Finder API"
    debug: bool = False
    port: int = 10000

    # ===== CORS =====
    # Override via CORS_ORIGINS (JSON array string or comma-separated list)
    cors_origins: Annotated[tuple[str, ...], NoDecode] = Field(
        default=("http://localhost:5173",),
        validation_alias=AliasChoices("CORS_ORIGINS"),
    )

    # ===== Provider API keys =====
    # General provider (Google engine): VALUESERP_KEY
    valueserp_key: str = Field(default="", validation_alias=AliasChoices("VALUESERP_KEY"))
    # Alternate provider (Bing engine): SERPAPI_KEY
    serpapi_key: str = Field(default="", validation_alias=AliasChoices("SERPAPI_KEY"))

    # ===== Routing =====
    internal_search_domains: Annotated[tuple[str, ...], NoDecode] = DEFAULT_INTERNAL_SEARCH_DOMAINS
    alternate_engine_domains: Annotated[tuple[str, ...], NoDecode] = ("msn.com",)
    site_overrides: tuple[SiteOverride, ...] = DEFAULT_SITE_OVERRIDES

    # ===== Timeouts (seconds) =====
    search_timeout_seconds: float = 9.0
    probe_timeout_seconds: float = 8.0

    # ===== Search locale =====
    search_location: str = "Italy"
    search_gl: str = "it"
    search_hl: str = "it"
    search_country_code: str = "IT"
    search_num_results: int = 10

    # ===== Batch =====
    batch_max_pairs: int = 200

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        return _split_list(v)

    @field_validator("internal_search_domains", "alternate_engine_domains", mode="before")
    @classmethod
    def parse_domain_lists(cls, v):
        items = _split_list(v) or []
        normalized = [normalize_domain(item) for item in items]
        return tuple(dict.fromkeys(d for d in normalized if d))

    @model_validator(mode="after")
    def validate_cors_origins(self):
        """Validate that CORS origins do not contain wildcard '*'."""
        if "*" in self.cors_origins:
            raise ValueError(
                "CORS wildcard '*' is not allowed. "
                "Please specify explicit origins in CORS_ORIGINS environment variable."
            )
        return self


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
