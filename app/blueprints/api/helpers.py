"""
API helper functions: pagination, error formatting, request parsing.
"""
from flask import request, jsonify
from marshmallow import ValidationError as SchemaValidationError

from app.errors import ValidationError


def paginate_query(query, serialize, key='items', default_per_page=20, max_per_page=100):
    """Apply offset-based pagination to a SQLAlchemy query.

    Query params:
        page (int): Page number (1-indexed, default 1)
        per_page (int): Items per page (default 20, max 100)

    Returns:
        JSON-ready dict with the serialized items under ``key`` and pagination.
    """
    page = request.args.get('page', 1, type=int)
    per_page = request.args.get('per_page', default_per_page, type=int)

    # Clamp values
    page = max(1, page)
    per_page = max(1, min(per_page, max_per_page))

    pagination = query.paginate(page=page, per_page=per_page, error_out=False)

    return {
        key: [serialize(item) for item in pagination.items],
        'pagination': {
            'page': page,
            'limit': per_page,
            'total': pagination.total,
            'totalPages': pagination.pages or 1,
        },
    }


def api_error(error):
    """Build the JSON response for a ServiceError."""
    return jsonify(error.to_dict()), error.status_code


def load_json(schema):
    """Validate the JSON body against a marshmallow schema.

    Raises ValidationError carrying the first field message; all field
    errors are returned under ``fields``.
    """
    data = request.get_json(silent=True)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError('요청 본문이 올바른 JSON이 아닙니다', code='invalid_json')

    try:
        return schema.load(data)
    except SchemaValidationError as err:
        raise ValidationError(_first_message(err.messages), details={'fields': err.messages})


def _first_message(messages):
    if isinstance(messages, dict):
        for value in messages.values():
            return _first_message(value)
    if isinstance(messages, list) and messages:
        return _first_message(messages[0])
    if isinstance(messages, str):
        return messages
    return ValidationError.default_message
