import os

class Config:
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///haneen.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret")
    APP_NAME = os.getenv("APP_NAME", "حنين الشرق للاستقدام")

    # money
    USD_TO_SAR = os.getenv("USD_TO_SAR", "3.75")
    AGENCY_FEE = os.getenv("AGENCY_FEE", "136")
    TAX_RATE = os.getenv("TAX_RATE", "0.15")  # 15%
    MUSANED_FEE_FIXED = os.getenv("MUSANED_FEE_FIXED", "125.35")
    MUSANED_FEE_PERCENT = os.getenv("MUSANED_FEE_PERCENT", "0.024")  # 2.4%

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    LOG_FILE = os.getenv("LOG_FILE")

class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    LOG_FILE = None
