from flask import jsonify
from schooldesk.extensions import db


class SchoolDeskError(Exception):
    status_code = 500

    def __init__(self, message, details=None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_response(self):
        body = {"error": self.message}
        if self.details:
            body["details"] = self.details
        return jsonify(body), self.status_code


class ValidationError(SchoolDeskError):
    status_code = 400


class NotFoundError(SchoolDeskError):
    status_code = 404


class GatewayError(SchoolDeskError):
    """The SMS provider could not be reached or answered with an HTTP error."""
    status_code = 502


class GatewayRejected(GatewayError):
    """The SMS provider answered but refused the message."""
    status_code = 422


def register_error_handlers(app):
    @app.errorhandler(SchoolDeskError)
    def handle_domain_error(error):
        db.session.rollback()
        return error.to_response()

    @app.errorhandler(PermissionError)
    def handle_permission_error(error):
        return jsonify({"error": str(error) or "Access forbidden"}), 403

    @app.errorhandler(404)
    def handle_not_found(error):
        return jsonify({"error": "Not found"}), 404
