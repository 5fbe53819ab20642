"""
JSON schemas sent to the model as the ``provide_output`` tool input.

Each schema mirrors a response model in ``policyascode.models``; the
client validates the tool input against that model on the way back.
"""

PRIORITY_ENUM = ["low", "medium", "high"]
RESULT_ENUM = ["pass", "fail", "n/a", "unknown"]


RULES_SCHEMA = {
    "type": "object",
    "properties": {
        "rules": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "title": {"type": "string", "description": "2-8 word summary of body"},
                    "body": {"type": "string"},
                    "priority": {"type": "string", "enum": PRIORITY_ENUM},
                    "rationale": {"type": "string"},
                    "quotes": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "Verbatim excerpts from the document supporting the rule",
                    },
                },
                "required": ["title", "body", "priority", "rationale", "quotes"],
                "additionalProperties": False,
            },
        },
    },
    "required": ["rules"],
    "additionalProperties": False,
}


EDITS_SCHEMA = {
    "type": "object",
    "properties": {
        "edits": {
            "type": "array",
            "items": {
                "anyOf": [
                    {
                        "type": "object",
                        "properties": {
                            "edit": {"type": "string", "const": "delete"},
                            "ids": {"type": "array", "items": {"type": "string"}, "minItems": 1},
                            "reason": {"type": "string"},
                        },
                        "required": ["edit", "ids", "reason"],
                        "additionalProperties": False,
                    },
                    {
                        "type": "object",
                        "properties": {
                            "edit": {"type": "string", "const": "merge"},
                            "ids": {"type": "array", "items": {"type": "string"}, "minItems": 2},
                            "title": {"type": "string", "description": "2-8 word summary of body"},
                            "body": {"type": "string", "description": "Merge .body of merged items"},
                            "priority": {"type": "string", "enum": PRIORITY_ENUM},
                            "rationale": {"type": "string", "description": "Merge .rationale of merged items"},
                            "reason": {"type": "string", "description": "Explain reason for merging"},
                        },
                        "required": ["edit", "ids", "title", "body", "priority", "rationale", "reason"],
                        "additionalProperties": False,
                    },
                ],
            },
        },
    },
    "required": ["edits"],
    "additionalProperties": False,
}


VALIDATION_SCHEMA = {
    "type": "object",
    "properties": {
        "validations": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "id": {"type": "string"},
                    "result": {"type": "string", "enum": RESULT_ENUM},
                    "reason": {"type": "string"},
                },
                "required": ["id", "result", "reason"],
                "additionalProperties": False,
            },
        },
    },
    "required": ["validations"],
    "additionalProperties": False,
}
