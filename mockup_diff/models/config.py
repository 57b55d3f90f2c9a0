"""Configuration models for the visual comparison run."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from mockup_diff.url_utils import safe_filename_part


def _check_distinct_filenames(kind: str, values: list[str]) -> None:
    seen: dict[str, str] = {}
    for value in values:
        part = safe_filename_part(value)
        if part in seen:
            raise ValueError(
                f"{kind}s '{seen[part]}' and '{value}' map to the same file name part '{part}'"
            )
        seen[part] = value


class _ConfigModel(BaseModel):
    # Accept both snake_case and the camelCase keys used by older config files
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ViewportConfig(_ConfigModel):
    name: str = "desktop"
    width: int = 1440
    height: int = 900

    @field_validator("width", "height")
    @classmethod
    def _positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("viewport dimensions must be positive")
        return v

    def as_playwright(self) -> dict:
        return {"width": self.width, "height": self.height}


class PageConfig(_ConfigModel):
    id: str
    path: str = "/"
    reference_images: dict[str, str] = Field(default_factory=dict)  # viewport name -> file path

    @field_validator("id")
    @classmethod
    def _non_empty_id(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("page id must not be empty")
        return v


class RunConfig(_ConfigModel):
    # Target
    base_url: str
    pages: list[PageConfig]
    viewports: list[ViewportConfig] = Field(
        default_factory=lambda: [
            ViewportConfig(name="desktop", width=1440, height=900),
            ViewportConfig(name="mobile", width=375, height=812),
        ]
    )

    # Scoring
    pass_threshold: float = Field(default=95.0, ge=0.0, le=100.0)
    diff_threshold: float = Field(default=0.1, ge=0.0, le=1.0)
    include_anti_aliasing: bool = False

    # Paths
    output_dir: str = "./visual-comparison-results"
    reference_dir: Optional[str] = None

    # Capture
    max_workers: int = Field(default=1, ge=1)
    navigation_timeout_ms: int = Field(default=30000, gt=0)
    font_timeout_ms: int = Field(default=10000, gt=0)
    settle_delay_ms: int = Field(default=1000, ge=0)
    task_timeout_seconds: float = Field(default=120.0, gt=0)
    full_page: bool = True
    headless: bool = True

    # Layout heuristics evaluated on every capture (see capture.layout_rules)
    layout_rules: list[str] = Field(default_factory=list)

    @field_validator("base_url")
    @classmethod
    def _http_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"base_url must be an http(s) URL, got '{v}'")
        return v

    @field_validator("layout_rules")
    @classmethod
    def _known_rules(cls, v: list[str]) -> list[str]:
        # Imported here: layout_rules depends on the capture models, which depend on this module
        from mockup_diff.capture.layout_rules import LAYOUT_RULES

        unknown = [n for n in v if n not in LAYOUT_RULES]
        if unknown:
            raise ValueError(
                f"unknown layout rule(s): {', '.join(unknown)}. "
                f"Available: {', '.join(sorted(LAYOUT_RULES))}"
            )
        return v

    @model_validator(mode="after")
    def _check_matrix(self) -> "RunConfig":
        page_ids = [p.id for p in self.pages]
        if len(set(page_ids)) != len(page_ids):
            raise ValueError("page ids must be unique")
        names = [v.name for v in self.viewports]
        if not names:
            raise ValueError("at least one viewport is required")
        if len(set(names)) != len(names):
            raise ValueError("viewport names must be unique")
        # Screenshot and diff file names are built from these, so they must stay distinct on disk
        _check_distinct_filenames("page id", page_ids)
        _check_distinct_filenames("viewport name", names)
        for page in self.pages:
            unknown = sorted(set(page.reference_images) - set(names))
            if unknown:
                raise ValueError(
                    f"page '{page.id}' references unknown viewport(s): {', '.join(unknown)}"
                )
        return self

    def get_page(self, page_id: str) -> PageConfig | None:
        return next((p for p in self.pages if p.id == page_id), None)

    def get_viewport(self, name: str) -> ViewportConfig | None:
        return next((v for v in self.viewports if v.name == name), None)

    @classmethod
    def load(cls, path: str | Path) -> "RunConfig":
        """Load config from a JSON file."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        with open(path) as f:
            data = json.load(f)
        return cls(**data)

    def save(self, path: str | Path) -> None:
        """Save config to a JSON file."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.model_dump(), f, indent=2)
