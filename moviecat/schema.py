"""Config and catalog document schema validation."""

from __future__ import annotations

from typing import Any

from jsonschema import Draft7Validator


def config_schema() -> dict[str, Any]:
    return {
        "type": "object",
        "additionalProperties": True,
        "properties": {
            "catalog": {
                "type": "object",
                "additionalProperties": True,
                "properties": {
                    "source": {"type": ["string", "null"]},
                    "cache_bust_param": {"type": "string"},
                    "timeout": {"type": "number", "exclusiveMinimum": 0},
                    "merge_policy": {"type": "string"},
                },
            },
            "api": {
                "type": "object",
                "additionalProperties": True,
                "properties": {
                    "url": {"type": ["string", "null"]},
                    "timeout": {"type": "number", "exclusiveMinimum": 0},
                    "upload_timeout": {"type": "number", "exclusiveMinimum": 0},
                    "headers": {"type": ["object", "null"], "additionalProperties": {"type": "string"}},
                },
            },
            "uploads": {
                "type": "object",
                "additionalProperties": True,
                "properties": {
                    "max_bytes": {"type": "integer", "minimum": 1},
                    "field": {"type": "string"},
                },
            },
            "defaults": {"type": "object", "additionalProperties": {"type": "string"}},
            "overlay": {
                "type": "object",
                "additionalProperties": True,
                "properties": {
                    "key": {"type": "string", "pattern": "^[A-Za-z0-9_.-]+$"},
                    "path": {"type": ["string", "null"]},
                },
            },
            "logging": {"type": "object", "additionalProperties": True},
            "retries": {"type": "object", "additionalProperties": True},
        },
    }


def catalog_schema() -> dict[str, Any]:
    source = {
        "type": "object",
        "additionalProperties": True,
        "required": ["embed_url"],
        "properties": {
            "provider": {"type": "string"},
            "embed_url": {"type": "string", "minLength": 1},
            "download_url": {"type": ["string", "null"]},
            "quality": {"type": ["string", "null"]},
        },
    }
    optional_text = {"type": ["string", "number", "null"]}
    return {
        "type": "object",
        "additionalProperties": True,
        "required": ["movies"],
        "properties": {
            "movies": {
                "type": "array",
                "items": {
                    "type": "object",
                    "additionalProperties": True,
                    "required": ["id", "title"],
                    "properties": {
                        "id": {"type": "string", "minLength": 1},
                        "title": {"type": "string"},
                        "alternative_title": optional_text,
                        "description": optional_text,
                        "poster": optional_text,
                        "backdrop": optional_text,
                        "year": optional_text,
                        "duration": optional_text,
                        "rating": optional_text,
                        "genres": {"type": ["array", "string", "null"]},
                        "type": {"type": "string"},
                        "status": {"type": "string"},
                        "sources": {"type": ["array", "null"], "items": source},
                        "created_at": {"type": ["string", "null"]},
                        "updated_at": {"type": ["string", "null"]},
                    },
                },
            },
        },
    }


def _collect(validator: Draft7Validator, document: Any) -> list[str]:
    errors = []
    for error in sorted(validator.iter_errors(document), key=lambda e: [str(p) for p in e.path]):
        path = ".".join(str(part) for part in error.path)
        prefix = f"{path}: " if path else ""
        errors.append(prefix + error.message)
    return errors


def validate_config_schema(config: dict[str, Any]) -> list[str]:
    return _collect(Draft7Validator(config_schema()), config)


def validate_catalog_document(document: Any) -> list[str]:
    return _collect(Draft7Validator(catalog_schema()), document)
