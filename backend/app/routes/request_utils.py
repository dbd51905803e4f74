"""
routes/request_utils.py — Request-parsing helpers shared by the route modules.

Bodies arrive as JSON or, when files are uploaded, as multipart form data.
Routes hand the result straight to a marshmallow schema.
"""

from __future__ import annotations

from flask import request
from werkzeug.datastructures import FileStorage


def request_payload() -> dict:
    """
    JSON body if the request has one, else the form fields.

    A form field sent more than once becomes a list; a single value stays a
    string (list-valued schema fields accept both).
    """
    if request.is_json:
        body = request.get_json(silent=True)
        return body if isinstance(body, dict) else {}

    payload: dict = {}
    for key in request.form.keys():
        values = request.form.getlist(key)
        payload[key] = values[0] if len(values) == 1 else values
    return payload


def query_args() -> dict:
    return request.args.to_dict()


def uploaded_file(name: str) -> FileStorage | None:
    file = request.files.get(name)
    if file is None or not file.filename:
        return None
    return file


def uploaded_files(name: str) -> list[FileStorage]:
    return [f for f in request.files.getlist(name) if f and f.filename]
