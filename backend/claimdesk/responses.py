# Overview: JSON response envelope helpers.
#
# Every response body is {success, data?, message?, errors?}.

from flask import jsonify

from .errors import ClaimdeskError


def success_response(data=None, message: str | None = None, status: int = 200, **extra):
    body = {"success": True}
    if data is not None:
        body["data"] = data
    if message:
        body["message"] = message
    body.update(extra)
    return jsonify(body), status


def error_response(message: str, status: int, errors: list[dict] | None = None):
    body = {"success": False, "message": message}
    if errors:
        body["errors"] = errors
    return jsonify(body), status


def domain_error_response(exc: ClaimdeskError):
    return error_response(exc.message, exc.status_code, exc.errors)
