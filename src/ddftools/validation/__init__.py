from .engine import JsonSchemaEngine, RuleEngine, ValidationFailure, ValidationFailures
from .errors import LocalizedError, handle_error, log_errors
from .jsonwalk import JsonVisitor, JsonWalkError, path_key, walk
from .localize import group_failures, localize_errors, localize_failures

__all__ = [
    "JsonSchemaEngine",
    "RuleEngine",
    "ValidationFailure",
    "ValidationFailures",
    "LocalizedError",
    "handle_error",
    "log_errors",
    "JsonVisitor",
    "JsonWalkError",
    "path_key",
    "walk",
    "group_failures",
    "localize_errors",
    "localize_failures",
]
