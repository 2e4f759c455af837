from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel


class RuleName(str, Enum):
    DATA_CY = "data-cy"
    DATA_TESTID = "data-testid"
    ARIA_LABEL = "aria-label"
    ROLE = "role"
    LABEL = "label"
    TEXT = "text"
    CLASS = "class"
    ID = "id"


DEFAULT_PRIORITY = [
    "data-cy",
    "data-testid",
    "aria-label",
    "role",
    "text",
    "label",
    "class",
    "id",
]

DEFAULT_EXCLUDE_PATTERNS = ["^ember-", "^react-", "^ng-", "^[0-9]+$", "^temp-"]


class _ConfigModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class HeuristicOptions(_ConfigModel):
    model_config = ConfigDict(frozen=True)

    priority: list[str] = Field(default_factory=lambda: list(DEFAULT_PRIORITY))
    exclude_patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_PATTERNS))
    logging: bool = True
    min_text_length: int = Field(default=1, ge=0)
    max_text_length: int = Field(default=50, ge=0)

    @field_validator("priority")
    @classmethod
    def deduplicate_priority(cls, value: list[str]) -> list[str]:
        seen: set[str] = set()
        ordered: list[str] = []
        for item in value:
            if item not in seen:
                seen.add(item)
                ordered.append(item)
        return ordered

    @model_validator(mode="after")
    def validate_text_bounds(self) -> HeuristicOptions:
        if self.max_text_length < self.min_text_length:
            raise ValueError("maxTextLength must be greater than or equal to minTextLength")
        return self

    def merged(self, overrides: dict[str, Any] | None = None) -> HeuristicOptions:
        """Returns a new options object with ``overrides`` applied key by key.

        Keys may use either the camelCase or the snake_case spelling. A key
        whose value is ``None`` is treated as not overridden.
        """

        if not overrides:
            return self
        payload = self.model_dump()
        aliases = {field.alias: name for name, field in type(self).model_fields.items()}
        for key, value in overrides.items():
            if value is None:
                continue
            name = aliases.get(key, key)
            if name in payload:
                payload[name] = value
        return type(self).model_validate(payload)


class ProviderSettings(_ConfigModel):
    api_key: str | None = None
    endpoint: str | None = None
    model: str | None = None
    temperature: float = 0.0


class AIConfig(_ConfigModel):
    enabled: bool = False
    provider: str = "openai"
    timeout: float = Field(default=10.0, gt=0)
    max_context_chars: int = Field(default=5000, gt=0)
    providers: dict[str, ProviderSettings] = Field(default_factory=dict)

    @field_validator("provider")
    @classmethod
    def normalize_provider(cls, value: str) -> str:
        return value.strip().lower()


class HealingSettings(_ConfigModel):
    auto_heal: bool = True
    save_healed: bool = True
    healed_selectors_file: str = "artifacts/healed_selectors.json"
    manual_healing_file: str = "artifacts/manual_healing.json"


class HealingConfig(_ConfigModel):
    ai: AIConfig = Field(default_factory=AIConfig)
    heuristics: HeuristicOptions = Field(default_factory=HeuristicOptions)
    healing: HealingSettings = Field(default_factory=HealingSettings)
