# coding: utf8
import os


class Config(object):
    SECRET_KEY = os.environ.get("SECRET_KEY") or "<your secret key>"

    SQLALCHEMY_DATABASE_URI = "{engine}://{user}:{password}@{host}:{port}/{db}".format(
        engine=os.environ.get("SQLALCHEMY_ENGINE") or "mysql+pymysql",
        user=os.environ.get("SQLALCHEMY_USER") or "root",
        password=os.environ.get("SQLALCHEMY_PASSWORD") or "",
        host=os.environ.get("SQLALCHEMY_HOST") or "127.0.0.1",
        port=int(os.environ.get("SQLALCHEMY_PORT", 3306)),
        db=os.environ.get("SQLALCHEMY_DATABASE") or "carrental",
    )

    SQLALCHEMY_ENGINE_OPTIONS = {
        "pool_size": 20,
        "max_overflow": 50,
        "pool_timeout": 10,
        "pool_recycle": 900,
        "pool_pre_ping": True,
    }

    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Payment gateway (Chapa hosted checkout)
    CHAPA_SECRET_KEY = os.environ.get("CHAPA_SECRET_KEY") or "<your chapa secret key>"
    CHAPA_BASE_URL = os.environ.get("CHAPA_BASE_URL") or "https://api.chapa.co/v1"
    CHAPA_TIMEOUT = int(os.environ.get("CHAPA_TIMEOUT") or 30)
    CHAPA_WEBHOOK_SECRET = os.environ.get("CHAPA_WEBHOOK_SECRET") or ""

    # Public URLs handed to the gateway
    BASE_URL = os.environ.get("BASE_URL") or "http://localhost:3001"
    FRONTEND_URL = os.environ.get("FRONTEND_URL") or "http://localhost:5173"

    # External session provider exposing /api/me
    AUTH_PROVIDER_URL = os.environ.get("AUTH_PROVIDER_URL") or "http://localhost:3000"
    AUTH_TIMEOUT = int(os.environ.get("AUTH_TIMEOUT") or 5)

    CELERY_BROKER_URL = (
        os.environ.get("CELERY_BROKER_URL") or "redis://localhost:6379/0"
    )
    CELERY_RESULT_BACKEND = (
        os.environ.get("CELERY_RESULT_BACKEND") or "redis://localhost:6379/0"
    )
    CELERY_TASK_ALWAYS_EAGER = False

    EMAIL_HOST = os.environ.get("EMAIL_HOST") or "smtp.gmail.com"
    EMAIL_PORT = int(os.environ.get("EMAIL_PORT") or 587)
    EMAIL_HOST_USER = os.environ.get("EMAIL_HOST_USER") or ""
    EMAIL_HOST_PASSWORD = os.environ.get("EMAIL_HOST_PASSWORD") or ""
    EMAIL_FROM_NAME = os.environ.get("EMAIL_FROM_NAME") or "Vehicle Rental"
    EMAIL_ENCRYPTION = (os.environ.get("EMAIL_ENCRYPTION") or "tls").lower()

    CORS_SCHEME = os.environ.get("CORS_SCHEME") or "*"

    PROPAGATE_EXCEPTIONS = os.environ.get("FLASK_CONFIG") == "production"


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    SQLALCHEMY_ENGINE_OPTIONS = {}

    CHAPA_SECRET_KEY = "test-secret"
    CHAPA_BASE_URL = "https://gateway.test/v1"
    CHAPA_WEBHOOK_SECRET = "webhook-secret"
    BASE_URL = "http://api.test"
    FRONTEND_URL = "http://front.test"
    AUTH_PROVIDER_URL = "http://auth.test"

    CELERY_BROKER_URL = "memory://"
    CELERY_RESULT_BACKEND = "cache+memory://"
    CELERY_TASK_ALWAYS_EAGER = True


class DevelopmentConfig(Config):
    DEBUG = True


class ProductionConfig(Config):
    DEBUG = False
    TESTING = False


configs = {
    "develop": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
    "default": DevelopmentConfig,
}
