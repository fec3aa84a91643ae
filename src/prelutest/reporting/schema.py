"""JSON schema definition for reporter output."""
from __future__ import annotations

SCHEMA_VERSION = "1.0.0"

JSON_SCHEMA_V1 = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "prelutest report",
    "type": "object",
    "required": ["schema_version", "generated_at", "summary", "cases"],
    "properties": {
        "schema_version": {"type": "string"},
        "generated_at": {"type": "string", "format": "date-time"},
        "summary": {
            "type": "object",
            "required": ["total", "passed", "failed", "errors", "reference", "accelerated", "seed", "duration_s"],
            "properties": {
                "total": {"type": "integer"},
                "passed": {"type": "integer"},
                "failed": {"type": "integer"},
                "errors": {"type": "integer"},
                "reference": {"type": "string"},
                "accelerated": {"type": "string"},
                "seed": {"type": ["integer", "null"]},
                "duration_s": {"type": "number"},
            },
        },
        "cases": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["id", "name", "status", "duration_ms", "weights", "input_shape", "slope_shape"],
                "properties": {
                    "id": {"type": "string"},
                    "name": {"type": "string"},
                    "status": {"type": "string", "enum": ["passed", "failed", "error"]},
                    "duration_ms": {"type": "number"},
                    "weights": {"type": "string", "enum": ["dense", "fp16", "sparse"]},
                    "threads": {"type": ["integer", "null"]},
                    "seed": {"type": ["integer", "null"]},
                    "input_shape": {"type": "array", "items": {"type": "integer"}, "minItems": 1},
                    "slope_shape": {"type": "array", "items": {"type": "integer"}},
                    "tags": {"type": "array", "items": {"type": "string"}},
                    "error": {"type": "string"},
                    "stage": {"type": "string"},
                    "comparison": {
                        "type": "object",
                        "required": ["passed", "mismatched", "total", "engines_compared"],
                        "properties": {
                            "passed": {"type": "boolean"},
                            "mismatched": {"type": "integer"},
                            "total": {"type": "integer"},
                            "engines_compared": {"type": "integer"},
                            "first_mismatch_index": {"type": ["integer", "null"]},
                            "reference_value": {"type": ["number", "null"]},
                            "accelerated_value": {"type": ["number", "null"]},
                        },
                    },
                },
            },
        },
    },
}
