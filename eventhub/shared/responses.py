from flask import jsonify, request

from .results import OperationResult


def json_result(result: OperationResult):
    return jsonify(result.to_dict()), result.status_code


def payload() -> dict:
    """Request fields from a JSON body or a submitted form."""
    data = request.get_json(silent=True)
    if isinstance(data, dict):
        return data
    return request.form.to_dict()
