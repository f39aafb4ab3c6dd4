"""
Content Catalog

Immutable in-memory index of modules and their submodules, loaded once.

Loading is all-or-nothing: any parse, shape, duplicate-id or unknown-schema
error fails the whole load and leaves the catalog uninitialized. Reads
before initialize() completes raise NotInitializedError.

Records are authored as YAML or JSON files (see models/catalog.py for the
record shape):

    records = await load_catalog_records(settings.CATALOG_PATH)
    catalog = ContentCatalog()
    catalog.initialize(records, schema_registry=registry)

    module = catalog.get_module("present-tense", language="de")
"""

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Union

import aiofiles
import yaml
from pydantic import ValidationError as PydanticValidationError

from lingo_engine.config.settings import settings
from lingo_engine.middleware.error_handling import ConfigurationError, NotInitializedError
from lingo_engine.models.catalog import ModuleDefinition, SubmoduleDefinition
from lingo_engine.services.learning.schema_registry import InteractionSchemaRegistry

logger = logging.getLogger(__name__)

CATALOG_SUFFIXES = {".yaml", ".yml", ".json"}


async def load_catalog_records(path: Union[str, Path]) -> list[dict[str, Any]]:
    """
    Read module records from a catalog file or directory.

    Each file holds one module record or a list of them.

    Args:
        path: A *.yaml / *.yml / *.json file, or a directory of them

    Returns:
        List of raw module records

    Raises:
        ConfigurationError: If the path is missing or any file fails to parse
    """
    source = Path(path)
    if not source.exists():
        raise ConfigurationError(f"Catalog path not found: {source}")

    if source.is_dir():
        files = sorted(p for p in source.iterdir() if p.suffix.lower() in CATALOG_SUFFIXES)
    else:
        files = [source]

    records: list[dict[str, Any]] = []
    for file in files:
        async with aiofiles.open(file, "r", encoding="utf-8") as f:
            content = await f.read()

        try:
            if file.suffix.lower() == ".json":
                data = json.loads(content)
            else:
                data = yaml.safe_load(content)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to parse catalog file {file.name}: {e}") from e

        if isinstance(data, list):
            records.extend(data)
        elif isinstance(data, dict):
            records.append(data)
        else:
            raise ConfigurationError(
                f"Catalog file {file.name} must contain a module record or a list of them"
            )

    logger.debug(f"Read {len(records)} module records from {len(files)} catalog files")
    return records


class ContentCatalog:
    """
    Load-once module index with localized projections.

    Attributes:
        default_language: Language whose strings are used when a translation
            is missing
    """

    def __init__(self, default_language: Optional[str] = None):
        self.default_language = default_language or settings.DEFAULT_LANGUAGE
        self._modules: Mapping[str, ModuleDefinition] = MappingProxyType({})
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def initialize(
        self,
        records: Iterable[Mapping[str, Any]],
        schema_registry: Optional[InteractionSchemaRegistry] = None,
    ) -> None:
        """
        Validate and index all module records atomically.

        Args:
            records: Raw module records
            schema_registry: When given, every submodule's supported schema
                ids must be registered there

        Raises:
            ConfigurationError: On any invalid record, a second call, or a
                reference to an unregistered schema
        """
        if self._initialized:
            raise ConfigurationError("Content catalog is already initialized")

        known_schemas = schema_registry.schema_ids() if schema_registry is not None else None
        staged: dict[str, ModuleDefinition] = {}

        for record in records:
            module = self._parse_record(record)
            if module.id in staged:
                raise ConfigurationError(f"Duplicate module id: {module.id}")
            self._check_submodules(module, known_schemas)
            staged[module.id] = module

        self._modules = MappingProxyType(staged)
        self._initialized = True
        submodule_count = sum(len(m.submodules) for m in staged.values())
        logger.info(
            f"Content catalog initialized with {len(staged)} modules, "
            f"{submodule_count} submodules"
        )

    @staticmethod
    def _parse_record(record: Any) -> ModuleDefinition:
        record_id = record.get("id", "?") if isinstance(record, Mapping) else "?"
        try:
            return ModuleDefinition.model_validate(record)
        except PydanticValidationError as e:
            raise ConfigurationError(
                f"Invalid module record {record_id}: {e.error_count()} error(s)",
                details={"errors": [err["msg"] for err in e.errors()]},
            ) from e

    @staticmethod
    def _check_submodules(
        module: ModuleDefinition, known_schemas: Optional[frozenset[str]]
    ) -> None:
        seen: set[str] = set()
        for submodule in module.submodules:
            if submodule.id in seen:
                raise ConfigurationError(
                    f"Duplicate submodule id {submodule.id} in module {module.id}"
                )
            seen.add(submodule.id)

            if not submodule.supported_modal_schema_ids:
                logger.warning(
                    f"Submodule {module.id}/{submodule.id} supports no interaction schemas"
                )
            if known_schemas is not None:
                unknown = set(submodule.supported_modal_schema_ids) - known_schemas
                if unknown:
                    raise ConfigurationError(
                        f"Submodule {module.id}/{submodule.id} references unknown "
                        f"interaction schemas: {sorted(unknown)}"
                    )

        if not module.submodules:
            logger.warning(f"Module {module.id} has no submodules")

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise NotInitializedError("Content catalog not initialized. Call initialize() first.")

    def _resolve_title(self, entity: Union[ModuleDefinition, SubmoduleDefinition], language: str) -> str:
        entry = entity.localization.get(language) or entity.localization.get(self.default_language)
        return entry.title if entry else entity.title

    def _localize(self, module: ModuleDefinition, language: Optional[str]) -> ModuleDefinition:
        if language is None:
            return module
        submodules = tuple(
            submodule.model_copy(update={"title": self._resolve_title(submodule, language)})
            for submodule in module.submodules
        )
        return module.model_copy(
            update={"title": self._resolve_title(module, language), "submodules": submodules}
        )

    def get_module(self, module_id: str, language: Optional[str] = None) -> Optional[ModuleDefinition]:
        """
        Get a module, with titles resolved to `language` when given.

        Returns:
            Localized copy of the module, or None for an unknown id
        """
        self._require_initialized()
        module = self._modules.get(module_id)
        if module is None:
            return None
        return self._localize(module, language)

    def require_module(self, module_id: str, language: Optional[str] = None) -> ModuleDefinition:
        """Get a module; an unknown id is a configuration error."""
        module = self.get_module(module_id, language)
        if module is None:
            raise ConfigurationError(f"Module not found: {module_id}")
        return module

    def get_all_modules(self, language: Optional[str] = None) -> list[ModuleDefinition]:
        self._require_initialized()
        return [self._localize(m, language) for m in self._modules.values()]

    def get_modules_for_language(self, language: str) -> list[ModuleDefinition]:
        """Modules supporting `language` as a source language, localized to it."""
        self._require_initialized()
        return [
            self._localize(m, language)
            for m in self._modules.values()
            if language in m.supported_source_languages
        ]
