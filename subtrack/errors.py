import logging

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class AppError(Exception):
    """Expected failure of a service call, rendered as a problem response."""

    status = 500
    title = "internal_error"

    def __init__(self, detail: str = None, *, title: str = None, status: int = None):
        super().__init__(detail or self.title)
        self.detail = detail
        if title:
            self.title = title
        if status:
            self.status = status


class ValidationError(AppError):
    status = 422
    title = "validation_error"


class NotFound(AppError):
    status = 404
    title = "not_found"


class Forbidden(AppError):
    status = 403
    title = "forbidden"


class Conflict(AppError):
    status = 409
    title = "conflict"


def problem(status:int, title:str, detail:str=None, type_:str="about:blank", **ext):
    payload = {"type": type_, "title": title, "status": status}
    if detail: payload["detail"] = detail
    payload.update(ext)
    return jsonify(payload), status, {"Content-Type": "application/problem+json"}

def register_error_handlers(app: Flask):
    @app.errorhandler(AppError)
    def app_error(e): return problem(e.status, e.title, e.detail)
    @app.errorhandler(400)
    def bad_request(e): return problem(400, "Bad Request", str(e))
    @app.errorhandler(404)
    def notfound(e): return problem(404, "Not Found", str(e))
    @app.errorhandler(405)
    def not_allowed(e): return problem(405, "Method Not Allowed", str(e))
    @app.errorhandler(409)
    def conflict(e): return problem(409, "Conflict", str(e))
    @app.errorhandler(422)
    def unproc(e): return problem(422, "Unprocessable Entity", str(e))

    @app.errorhandler(Exception)
    def server(e):
        if isinstance(e, HTTPException):
            return problem(e.code or 500, e.name, e.description)
        logger.exception("Unhandled error")
        return problem(500, "Internal Server Error", "Unexpected server error")
