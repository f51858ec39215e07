# ideamarket/utils.py

from flask import request

from .errors import ValidationError


def json_body():
    """The request's JSON object, or an API_001 error."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def query_args():
    # Blank query parameters are treated as absent
    return {k: v for k, v in request.args.items() if v != ''}


def contains_pattern(text):
    """An ILIKE pattern matching ``text`` literally anywhere. Use with escape='\\'."""
    escaped = text.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
    return f"%{escaped}%"
