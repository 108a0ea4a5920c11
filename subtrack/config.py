import os
from dotenv import load_dotenv
load_dotenv()

class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev_secret_change_me")
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URI", "sqlite:///subtrack.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    BASE_CURRENCY = os.getenv("BASE_CURRENCY", "CNY")
    PROJECTION_MONTHS = int(os.getenv("PROJECTION_MONTHS", "12"))
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    LOG_LEVEL = "DEBUG"
