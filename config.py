import os
from dotenv import load_dotenv

# Load the .env file immediately
load_dotenv()

basedir = os.path.abspath(os.path.dirname(__file__))


class Config:
    # 1. Security
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'dev-fallback-key'

    # 2. Database
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'eventflow.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # 3. Uploads
    FILE_STORAGE_BACKEND = os.environ.get('FILE_STORAGE_BACKEND') or 'local'
    UPLOAD_FOLDER = os.environ.get('UPLOAD_FOLDER') or os.path.join(basedir, 'uploads')
    UPLOAD_BASE_URL = os.environ.get('UPLOAD_BASE_URL') or '/uploads'
    DOCUMENT_EXTENSIONS = {'pdf', 'doc', 'docx', 'xls', 'xlsx'}
    MEDIA_EXTENSIONS = {'jpg', 'jpeg', 'png', 'mp4', 'mov', 'avi', 'wmv', 'webm'}
    MAX_UPLOAD_SIZE = 10 * 1024 * 1024

    AWS_REGION = os.environ.get('AWS_REGION') or 'ap-south-1'
    AWS_ACCESS_KEY_ID = os.environ.get('AWS_ACCESS_KEY_ID')
    AWS_SECRET_ACCESS_KEY = os.environ.get('AWS_SECRET_ACCESS_KEY')
    S3_BUCKET_NAME = os.environ.get('S3_BUCKET_NAME')

    # 4. Email Configuration
    MAIL_SERVER = os.environ.get('MAIL_SERVER') or 'smtp.gmail.com'
    MAIL_PORT = int(os.environ.get('MAIL_PORT') or 587)
    MAIL_USE_TLS = os.environ.get('MAIL_USE_TLS') == 'True'
    MAIL_USERNAME = os.environ.get('MAIL_USERNAME')
    MAIL_PASSWORD = os.environ.get('MAIL_PASSWORD')
    MAIL_DEFAULT_SENDER = os.environ.get('MAIL_DEFAULT_SENDER') or MAIL_USERNAME or 'noreply@eventflow.local'
    APP_URL = os.environ.get('APP_URL') or 'http://localhost:5000'

    # 5. Business thresholds
    REJECTION_REASON_MIN_LENGTH = 10
    REOPEN_JUSTIFICATION_MIN_LENGTH = 10
    ZFD_COMMENT_MIN_LENGTH = 10
    ZFD_COMMENT_REQUIRED_AT_OR_BELOW = 3
    OBJECTIVES_MIN_LENGTH = 10

    # Password given to the default accounts created by 'flask seed-users'
    SEED_USER_PASSWORD = os.environ.get('SEED_USER_PASSWORD') or 'password123'
    SEED_USER_DOMAIN = os.environ.get('SEED_USER_DOMAIN') or 'eventflow.local'

    # 6. Celery Configuration
    CELERY_BROKER_URL = os.environ.get('CELERY_BROKER_URL') or 'redis://localhost:6379/0'
    CELERY_RESULT_BACKEND = os.environ.get('CELERY_RESULT_BACKEND') or 'redis://localhost:6379/0'
    CELERY_TASK_ALWAYS_EAGER = False

    # 7. Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL') or 'INFO'
    LOG_FORMAT = os.environ.get('LOG_FORMAT') or 'readable'


class TestingConfig(Config):
    TESTING = True
    SECRET_KEY = 'testing-key'
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    WTF_CSRF_ENABLED = False

    # Mail is recorded, never sent
    MAIL_SUPPRESS_SEND = True
    MAIL_DEFAULT_SENDER = 'noreply@eventflow.local'

    CELERY_BROKER_URL = 'memory://'
    CELERY_RESULT_BACKEND = 'cache+memory://'
    CELERY_TASK_ALWAYS_EAGER = True

    FILE_STORAGE_BACKEND = 'local'
    LOG_LEVEL = 'WARNING'
