"""
Content Catalog Models

Immutable records for modules and submodules, validated once when the
catalog is loaded. Field names follow the authoring format (camelCase),
exposed in Python as snake_case attributes.

Example record (YAML):

    id: present-tense
    title: Present Tense
    localization:
      de: {title: Präsens}
    primaryTask: Conjugate regular verbs in the present tense
    supportedSourceLanguages: [en, de]
    moduleOverrides:
      fill-in-gap:
        markingPromptOverride: "Mark {userAnswer} against {questionDataJSON}"
    submodules:
      - id: regular-verbs
        title: Regular verbs
        supportedModalSchemaIds: [multiple-choice, fill-in-gap]
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CatalogModel(BaseModel):
    """Frozen base for catalog records; unknown keys are a shape error."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class LocalizedText(CatalogModel):
    """Translated strings for one language."""

    title: str = Field(..., min_length=1)


class SchemaOverride(CatalogModel):
    """Per-schema overrides declared on a module or submodule."""

    marking_prompt_override: Optional[str] = Field(None, alias="markingPromptOverride")
    ui_component_override: Optional[str] = Field(None, alias="uiComponentOverride")


class SubmoduleDefinition(CatalogModel):
    """A focused exercise topic and the interaction schemas it supports."""

    id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    localization: dict[str, LocalizedText] = Field(default_factory=dict)
    primary_task: str = Field("", alias="primaryTask")
    context: str = ""
    supported_modal_schema_ids: tuple[str, ...] = Field(
        default=(), alias="supportedModalSchemaIds"
    )
    overrides: dict[str, SchemaOverride] = Field(default_factory=dict)


class ModuleDefinition(CatalogModel):
    """Top-level content grouping; immutable after load."""

    id: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    localization: dict[str, LocalizedText] = Field(default_factory=dict)
    primary_task: str = Field("", alias="primaryTask")
    supported_source_languages: frozenset[str] = Field(
        default_factory=frozenset, alias="supportedSourceLanguages"
    )
    module_overrides: dict[str, SchemaOverride] = Field(
        default_factory=dict, alias="moduleOverrides"
    )
    submodules: tuple[SubmoduleDefinition, ...] = ()

    def get_submodule(self, submodule_id: str) -> Optional[SubmoduleDefinition]:
        """Find a submodule by id, or None."""
        for submodule in self.submodules:
            if submodule.id == submodule_id:
                return submodule
        return None

    def resolve_override(self, submodule_id: str, schema_id: str, attribute: str) -> Optional[str]:
        """
        Resolve an override value for a (submodule, schema) pair.

        Resolution order is submodule override, then module override.
        Returns None when neither declares the attribute; callers fall back
        to the schema default.
        """
        submodule = self.get_submodule(submodule_id)
        if submodule is not None:
            override = submodule.overrides.get(schema_id)
            if override is not None and getattr(override, attribute) is not None:
                return getattr(override, attribute)
        override = self.module_overrides.get(schema_id)
        if override is not None:
            return getattr(override, attribute)
        return None
