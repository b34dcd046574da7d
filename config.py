import os
from dotenv import load_dotenv

# Load the .env file immediately
load_dotenv()

basedir = os.path.abspath(os.path.dirname(__file__))

class Config:
    # 1. Security
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-fallback-key'
    AUTH_TOKEN_EXPIRES_SEC = int(os.environ.get('AUTH_TOKEN_EXPIRES_SEC') or 7 * 24 * 3600)
    # Bearer-token API, no browser forms
    WTF_CSRF_ENABLED = False

    # 2. Database
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'campus_requests.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # 3. Uploads (medical certificates, supporting documents)
    UPLOAD_FOLDER = os.environ.get('UPLOAD_FOLDER') or os.path.join(basedir, 'uploads')
    ALLOWED_EXTENSIONS = {'pdf', 'png', 'jpg', 'jpeg'}
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024

    # 4. Email Configuration
    MAIL_SERVER = os.environ.get('MAIL_SERVER') or 'smtp.gmail.com'
    MAIL_PORT = int(os.environ.get('MAIL_PORT') or 587)
    MAIL_USE_TLS = os.environ.get('MAIL_USE_TLS') == 'True'
    MAIL_USERNAME = os.environ.get('MAIL_USERNAME')
    MAIL_PASSWORD = os.environ.get('MAIL_PASSWORD')
    MAIL_DEFAULT_SENDER = os.environ.get('MAIL_DEFAULT_SENDER') or MAIL_USERNAME

    # 5. Celery Configuration
    CELERY_BROKER_URL = os.environ.get('CELERY_BROKER_URL') or 'redis://localhost:6379/0'
    CELERY_RESULT_BACKEND = os.environ.get('CELERY_RESULT_BACKEND') or 'redis://localhost:6379/0'
    CELERY_TASK_ALWAYS_EAGER = os.environ.get('CELERY_TASK_ALWAYS_EAGER') == 'True'

    # 6. Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL')


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = 'testing-secret-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    UPLOAD_FOLDER = os.path.join(basedir, 'instance', 'test_uploads')
    MAIL_SUPPRESS_SEND = True
    MAIL_DEFAULT_SENDER = 'noreply@campus.test'
    CELERY_TASK_ALWAYS_EAGER = True
