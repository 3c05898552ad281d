"""Boundary to the schema rule engine, with a jsonschema-backed implementation."""

from __future__ import annotations

import json
import os
import sys
from dataclasses import dataclass
from glob import glob
from typing import Any, Mapping, Protocol, Sequence

from .jsonwalk import JsonPath, path_key


def _log(msg: str) -> None:
    from ..runtime import get_verbose_logging

    if get_verbose_logging():
        print(msg, file=sys.stderr, flush=True)


@dataclass(frozen=True)
class ValidationFailure:
    path: str
    json_path: JsonPath
    message: str

    @property
    def key(self) -> str:
        return path_key(self.json_path)


class ValidationFailures(Exception):
    """A batch of rule-engine failures raised as one error."""

    def __init__(self, failures: Sequence[ValidationFailure]):
        self.failures = list(failures)
        super().__init__(f"{len(self.failures)} validation error(s)")


class RuleEngine(Protocol):
    def validate(
        self, documents: Sequence[tuple[str, Any]]
    ) -> list[ValidationFailure]: ...


class JsonSchemaEngine:
    """Validates each document against the schema named by its ``schema`` field."""

    def __init__(self, schemas: Mapping[str, dict], *, strict: bool = False):
        self.schemas = dict(schemas)
        self.strict = strict
        self._validators: dict[str, Any] = {}

    @classmethod
    def from_directory(cls, directory: str, *, strict: bool = False) -> "JsonSchemaEngine":
        schemas: dict[str, dict] = {}
        for path in sorted(glob(os.path.join(directory, "*.json"))):
            with open(path, "r", encoding="utf-8") as f:
                schemas[os.path.basename(path)] = json.load(f)
        if not schemas:
            raise ValueError(f"No schemas found in {directory}")
        return cls(schemas, strict=strict)

    def _validator(self, name: str) -> Any:
        validator = self._validators.get(name)
        if validator is None:
            from jsonschema.validators import validator_for

            schema = self.schemas[name]
            validator = validator_for(schema)(schema)
            self._validators[name] = validator
        return validator

    def validate(
        self, documents: Sequence[tuple[str, Any]]
    ) -> list[ValidationFailure]:
        failures: list[ValidationFailure] = []
        for path, data in documents:
            name = data.get("schema") if isinstance(data, dict) else None
            if not isinstance(name, str) or name not in self.schemas:
                if self.strict:
                    failures.append(
                        ValidationFailure(path, ("schema",), f"Unknown schema {name!r}")
                    )
                else:
                    _log(f"{path}: unknown schema {name!r}, not validated")
                continue
            for error in self._validator(name).iter_errors(data):
                failures.append(
                    ValidationFailure(path, tuple(error.absolute_path), error.message)
                )
        return failures
