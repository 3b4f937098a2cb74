import os
from datetime import timedelta
from dotenv import load_dotenv


load_dotenv()

class Config:
    SECRET_KEY = os.getenv("JWT_SECRET_KEY")  # used for both Flask and JWT
    JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "fallback-jwt")
    SQLALCHEMY_DATABASE_URI = os.getenv("SQLALCHEMY_DATABASE_URI", "sqlite:///schooldesk.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    REDIS_URL = os.getenv("REDIS_URL")
    RATELIMIT_STORAGE_URI = os.getenv("REDIS_URL", "memory://")
    RATELIMIT_ENABLED = True
    UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", "static/uploads/")
    PUBLIC_UPLOAD_URL = os.getenv("PUBLIC_UPLOAD_URL", "/settings/files")
    FLASK_ENV = os.getenv("FLASK_ENV", "development")
    MAX_CONTENT_LENGTH = 16 * 1024 * 1024  # 16 MB upload cap
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")

    JWT_ACCESS_TOKEN_EXPIRES = timedelta(hours=1)
    JWT_REFRESH_TOKEN_EXPIRES = timedelta(days=7)
    JWT_TOKEN_LOCATION = ["cookies", "headers"]
    JWT_COOKIE_SECURE = True  # only over HTTPS
    JWT_COOKIE_SAMESITE = "Lax"
    JWT_COOKIE_CSRF_PROTECT = False

    # Saudi national / iqama numbers are ten digits
    NATIONAL_ID_PATTERN = os.getenv("NATIONAL_ID_PATTERN", r"^\d{10}$")

    SMS_PROVIDER = os.getenv("SMS_PROVIDER", "msegat")
    SMS_USERNAME = os.getenv("SMS_USERNAME")
    SMS_API_KEY = os.getenv("SMS_API_KEY")
    SMS_SENDER_ID = os.getenv("SMS_SENDER_ID")
    SMS_COUNTRY_CODE = os.getenv("SMS_COUNTRY_CODE", "966")
    SMS_TRUNK_PREFIX = os.getenv("SMS_TRUNK_PREFIX", "0")
    SMS_TIMEOUT = int(os.getenv("SMS_TIMEOUT", "10"))


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    JWT_SECRET_KEY = "test-jwt-secret-key-that-is-long-enough"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    RATELIMIT_ENABLED = False
    RATELIMIT_STORAGE_URI = "memory://"
    JWT_COOKIE_SECURE = False
    SMS_USERNAME = "tester"
    SMS_API_KEY = "secret"
    SMS_SENDER_ID = "SCHOOL"
