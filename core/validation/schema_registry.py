"""
Schema Registry.

Loads JSON Schemas by name, compiles each once and validates values
against them.

Schema files live under the schema directory as
<domain>/<name>.schema.json. A schema is cached under its $id when it
declares one, otherwise under its file-derived name.

Failure policy:
- critical schema fails to load/compile -> SchemaRegistryError (abort boot)
- any other schema -> warning, validator becomes "always valid"

Read-mostly after boot: validators are immutable and safe to share
between concurrent workflow invocations.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
import json
import logging

from jsonschema import Draft7Validator, FormatChecker
from jsonschema.exceptions import SchemaError


logger = logging.getLogger(__name__)


SCHEMA_SUFFIX = ".schema.json"
DEFAULT_SCHEMA_DIR = Path(__file__).resolve().parents[1] / "schemas"
CRITICAL_SCHEMAS = ("compliance-event", "audit-log-entry")


class SchemaRegistryError(Exception):
    """Raised when a critical schema cannot be loaded."""
    pass


@dataclass(frozen=True)
class ValidationError:
    """
    A single schema violation.
    
    path: JSON pointer into the validated value ("" for the root)
    params: violated constraint, e.g. {"minimum": 0}
    """
    
    path: str
    message: str
    keyword: str
    params: Dict[str, Any] = field(default_factory=dict)
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "message": self.message,
            "keyword": self.keyword,
            "params": dict(self.params),
        }


@dataclass(frozen=True)
class ValidationReport:
    """Result of validating one value."""
    
    valid: bool
    errors: Tuple[ValidationError, ...] = ()


def _json_pointer(parts: Iterable[Union[str, int]]) -> str:
    return "".join(
        "/" + str(part).replace("~", "~0").replace("/", "~1")
        for part in parts
    )


class CompiledValidator:
    """A compiled schema (or the always-valid placeholder)."""
    
    def __init__(self, name: str, schema: Optional[Dict[str, Any]]):
        self.name = name
        self.schema = schema
        self.schema_id = schema.get("$id") if isinstance(schema, dict) else None
        self._validator = (
            Draft7Validator(schema, format_checker=FormatChecker())
            if schema is not None
            else None
        )
    
    @property
    def always_valid(self) -> bool:
        return self._validator is None
    
    def validate(self, value: Any) -> ValidationReport:
        if self._validator is None:
            return ValidationReport(valid=True)
        
        errors = sorted(
            (
                ValidationError(
                    path=_json_pointer(error.absolute_path),
                    message=error.message,
                    keyword=str(error.validator),
                    params={str(error.validator): error.validator_value},
                )
                for error in self._validator.iter_errors(value)
            ),
            key=lambda e: (e.path, e.keyword, e.message),
        )
        return ValidationReport(valid=not errors, errors=tuple(errors))
    
    __call__ = validate


class SchemaRegistry:
    """
    Registry of compiled schemas.
    
    Usage:
        registry = SchemaRegistry()
        registry.load_all()
        report = registry.validate("voucher-create", payload)
    """
    
    def __init__(
        self,
        schema_dir: Optional[Union[str, Path]] = None,
        critical_schemas: Iterable[str] = CRITICAL_SCHEMAS,
    ):
        """
        Initialize registry.
        
        Args:
            schema_dir: Root directory of *.schema.json files
            critical_schemas: Names whose load failure aborts initialization
        """
        self.schema_dir = Path(schema_dir) if schema_dir else DEFAULT_SCHEMA_DIR
        self.critical_schemas = frozenset(critical_schemas)
        self._validators: Dict[str, CompiledValidator] = {}
        self._aliases: Dict[str, str] = {}
        self._files: Optional[Dict[str, Path]] = None
    
    # =========================================================================
    # LOADING
    # =========================================================================
    
    def load(self, schema_name: str) -> CompiledValidator:
        """
        Load and compile a schema by name (cached).
        
        Args:
            schema_name: File-derived schema name (e.g. "voucher-create")
        
        Returns:
            Compiled validator (always-valid placeholder on non-critical failure)
        
        Raises:
            SchemaRegistryError: If a critical schema cannot be loaded
        """
        if schema_name in self._aliases:
            return self._validators[self._aliases[schema_name]]
        
        path = self._schema_files().get(schema_name)
        if path is None:
            return self._handle_failure(
                schema_name,
                FileNotFoundError(f"no {schema_name}{SCHEMA_SUFFIX} under {self.schema_dir}"),
            )
        
        try:
            schema = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            return self._handle_failure(schema_name, e)
        
        return self.register(schema_name, schema)
    
    def register(self, schema_name: str, schema: Dict[str, Any]) -> CompiledValidator:
        """
        Compile and register an in-memory schema.
        
        A schema whose $id is already registered is not compiled again:
        the first registration wins and schema_name becomes an alias of it.
        """
        if schema_name in self._aliases:
            return self._validators[self._aliases[schema_name]]
        
        try:
            Draft7Validator.check_schema(schema)
        except SchemaError as e:
            return self._handle_failure(schema_name, e)
        
        key = schema.get("$id") if isinstance(schema, dict) else None
        key = key or schema_name
        
        existing = self._validators.get(key)
        if existing is not None:
            logger.warning(
                f"Schema with $id {key} already registered by '{existing.name}', "
                f"skipping '{schema_name}'"
            )
            self._aliases[schema_name] = key
            return existing
        
        compiled = CompiledValidator(schema_name, schema)
        self._validators[key] = compiled
        self._aliases[schema_name] = key
        logger.debug(f"Registered schema '{schema_name}' ({key})")
        return compiled
    
    def load_all(self) -> List[str]:
        """
        Load every schema file under the schema directory.
        
        Returns:
            Names of all registered schemas
        
        Raises:
            SchemaRegistryError: If any critical schema is missing or invalid
        """
        for schema_name in sorted(self._schema_files()):
            self.load(schema_name)
        
        for schema_name in sorted(self.critical_schemas):
            self.load(schema_name)
        
        logger.info(f"Schema registry ready: {len(self._aliases)} schema(s) from {self.schema_dir}")
        return self.names()
    
    # =========================================================================
    # VALIDATION
    # =========================================================================
    
    def validate(self, schema_name: str, value: Any) -> ValidationReport:
        """
        Validate a value against a named schema (loading it if needed).
        
        Returns:
            ValidationReport with per-field errors
        """
        return self.load(schema_name).validate(value)
    
    def names(self) -> List[str]:
        return sorted(self._aliases)
    
    def is_loaded(self, schema_name: str) -> bool:
        return schema_name in self._aliases
    
    # =========================================================================
    # INTERNALS
    # =========================================================================
    
    def _schema_files(self) -> Dict[str, Path]:
        if self._files is None:
            files: Dict[str, Path] = {}
            if self.schema_dir.is_dir():
                for path in sorted(self.schema_dir.rglob(f"*{SCHEMA_SUFFIX}")):
                    name = path.name[: -len(SCHEMA_SUFFIX)]
                    if name in files:
                        logger.warning(f"Duplicate schema file name '{name}': {path} ignored")
                        continue
                    files[name] = path
            else:
                logger.warning(f"Schema directory not found: {self.schema_dir}")
            self._files = files
        return self._files
    
    def _handle_failure(self, schema_name: str, error: Exception) -> CompiledValidator:
        if schema_name in self.critical_schemas:
            logger.error(f"Critical schema '{schema_name}' failed to load: {error}")
            raise SchemaRegistryError(
                f"Critical schema '{schema_name}' failed to load: {error}"
            ) from error
        
        logger.warning(
            f"Schema '{schema_name}' failed to load ({error}); "
            f"validating it as always valid"
        )
        placeholder = CompiledValidator(schema_name, None)
        self._validators[schema_name] = placeholder
        self._aliases[schema_name] = schema_name
        return placeholder
