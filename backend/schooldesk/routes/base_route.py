from flask import Blueprint, jsonify
from sqlalchemy.exc import SQLAlchemyError
from schooldesk.models import Student

base_bp = Blueprint("base", __name__)

@base_bp.route("/")
def home():
    return jsonify({"message": "School administration API"})

@base_bp.route("/health")
def health():
    try:
        count = Student.query.count()
        return {"status": "ok", "students": count}
    except SQLAlchemyError as e:
        return {"status": "error", "message": str(e)}, 500
