"""JSON Schemas for API request bodies."""

from typing import Optional

import jsonschema

from ..errors import ErrorCode, Result

POSITIVE_INT = {"type": "integer", "minimum": 1}

ATTACHMENT = {
    "type": "object",
    "properties": {
        "name": {"type": "string", "minLength": 1},
        "format": {"type": "string", "minLength": 1},
        "url": {"type": "string", "minLength": 1},
        "size": {"type": ["integer", "null"], "minimum": 0},
    },
    "required": ["name", "format", "url"],
}

TERMS_PROPERTIES = {
    "amount": POSITIVE_INT,
    "timeline": POSITIVE_INT,
    "milestones": {
        "type": "array",
        "items": {"type": "string", "minLength": 1},
        "minItems": 1,
    },
    "revisions": {"type": "integer", "minimum": 0},
    "scope_notes": {"type": "string"},
    "expiry": {"type": "string"},
}

REQUEST_CREATE = {
    "type": "object",
    "properties": {
        "service_type": {"type": "string"},
        "topic": {"type": "string"},
        "details": {"type": "string"},
        "deadline": {"type": ["string", "null"]},
        "attachments": {"type": "array", "items": ATTACHMENT},
    },
    "required": ["service_type", "topic", "details"],
}

QUOTE_CREATE = {
    "type": "object",
    "properties": {"request_id": {"type": "string"}, **TERMS_PROPERTIES},
    "required": ["request_id", "amount", "timeline", "milestones"],
}

QUOTE_NEGOTIATE = {
    "type": "object",
    "properties": {
        "message": {"type": "string", "minLength": 1},
        "related_amount": POSITIVE_INT,
        "terms": {
            "type": "object",
            "properties": TERMS_PROPERTIES,
            "required": ["amount"],
        },
    },
    "required": ["message"],
}

QUOTE_ACCEPT = {
    "type": "object",
    "properties": {
        "payment_method": {"type": "string", "minLength": 1},
        "transaction_id": {"type": "string", "minLength": 1},
    },
    "required": ["payment_method", "transaction_id"],
}

ORDER_ASSIGN = {
    "type": "object",
    "properties": {
        "expert_id": {"type": "string"},
        "expected_version": {"type": "integer", "minimum": 0},
        "reassign": {"type": "boolean"},
    },
    "required": ["expert_id"],
}

MILESTONE_UPDATE = {
    "type": "object",
    "properties": {
        "action": {"enum": ["submit", "approve", "reject"]},
        "files": {"type": "array", "items": ATTACHMENT},
        "feedback": {"type": "string"},
    },
    "required": ["action"],
}

DISPUTE_OPEN = {
    "type": "object",
    "properties": {"reason": {"type": "string", "minLength": 1}},
    "required": ["reason"],
}

DISPUTE_RESOLVE = {
    "type": "object",
    "properties": {"resolution": {"type": "string"}},
}

ANNOTATION_CREATE = {
    "type": "object",
    "properties": {
        "file_url": {"type": "string", "minLength": 1},
        "x": {"type": "number", "minimum": 0, "maximum": 100},
        "y": {"type": "number", "minimum": 0, "maximum": 100},
        "text": {"type": "string", "minLength": 1},
    },
    "required": ["file_url", "x", "y", "text"],
}

WITHDRAWAL_CREATE = {
    "type": "object",
    "properties": {
        "kind": {"enum": ["expert", "student"]},
        "amount": POSITIVE_INT,
        "method_id": {"type": "string"},
        "amount_credits": POSITIVE_INT,
        "method": {"type": "string"},
        "phone_number": {"type": "string"},
        "method_details": {"type": "object"},
    },
    "required": ["kind"],
    "allOf": [
        {
            "if": {"properties": {"kind": {"const": "expert"}}},
            "then": {"required": ["amount", "method_id"]},
        },
        {
            "if": {"properties": {"kind": {"const": "student"}}},
            "then": {"required": ["amount_credits", "method"]},
        },
    ],
}

WITHDRAWAL_UPDATE = {
    "type": "object",
    "properties": {"status": {"enum": ["CONFIRMED", "PAID", "REJECTED"]}},
    "required": ["status"],
}

REVIEW_MODERATE = {
    "type": "object",
    "properties": {"status": {"enum": ["PENDING", "APPROVED", "REJECTED"]}},
    "required": ["status"],
}

REVIEW_FEEDBACK = {
    "type": "object",
    "properties": {
        "rating": {"type": "integer", "minimum": 1, "maximum": 5},
        "text": {"type": "string"},
    },
    "required": ["rating"],
}

EXPERT_REGISTER = {
    "type": "object",
    "properties": {
        "specialty": {"type": "string"},
        "skills": {"type": "array", "items": {"type": "string"}},
        "bio": {"type": "string"},
    },
}

EXPERT_UPDATE = {
    "type": "object",
    "properties": {
        "status": {"enum": ["Pending", "Active", "Suspended"]},
        "online": {"type": "boolean"},
        "specialty": {"type": "string"},
        "skills": {"type": "array", "items": {"type": "string"}},
        "bio": {"type": "string"},
    },
    "minProperties": 1,
    "additionalProperties": False,
}


def validate_body(data, schema: dict) -> Optional[Result]:
    """Return a failure Result if ``data`` does not match ``schema``."""
    if data is None:
        return Result.failure(ErrorCode.MISSING_FIELD, "Request body required")
    try:
        jsonschema.validate(data, schema)
    except jsonschema.ValidationError as e:
        location = ".".join(str(p) for p in e.absolute_path)
        code = ErrorCode.MISSING_FIELD if e.validator == "required" else ErrorCode.INVALID_FIELD
        message = f"{location}: {e.message}" if location else e.message
        return Result.failure(code, message)
    return None
