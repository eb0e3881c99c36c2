import logging
import os
import sys
from pathlib import Path
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# In case pytest tests/ -v -s is run, it will only read .env.test
if "pytest" in sys.modules or os.environ.get("TESTING") == "True":
    test_env_path = Path(__file__).parent.parent / "tests" / ".env.test"
    if test_env_path.exists():
        load_dotenv(test_env_path, override=True)
else:
    load_dotenv()

TESTING = os.environ.get("TESTING") == "True" or "pytest" in sys.modules
FLASK_ENV = os.environ.get("FLASK_ENV")

REQUIRED_SETTINGS = (
    "SQLALCHEMY_DATABASE_URI",
    "JWT_KEY",
    "JWT_ISSUER",
    "JWT_AUDIENCE",
)


def is_production_database(db_url: str) -> bool:
    """Check if a database URL appears to be production."""
    if not db_url:
        return False

    dangerous_patterns = [
        "rlwy.net",
        "railway.internal",
        "production",
        "powerup_prod",
        "amazonaws.com",
        "azure.com",
        "database.windows.net",
    ]

    for pattern in dangerous_patterns:
        if pattern in db_url.lower():
            return True
    return False


def normalize_database_url(url):
    # PyMySQL is the only MySQL driver we ship
    if url and url.startswith("mysql://"):
        url = url.replace("mysql://", "mysql+pymysql://", 1)
    return url


if TESTING or FLASK_ENV == "testing":
    url = os.environ.get("DATABASE_TEST_URL") or "sqlite://"

    if is_production_database(url):
        logger.critical("Test run is pointed at a production database: %s", url)
        sys.exit(1)

    prod_url = os.environ.get("DATABASE_URL")
    if prod_url and is_production_database(prod_url):
        os.environ.pop("DATABASE_URL", None)
        logger.warning("Blocked access to production database during testing")

else:
    url = os.environ.get("DATABASE_URL")

    if not url and FLASK_ENV == "development":
        url = "sqlite:///powerup_dev.db"
        logger.warning("DATABASE_URL not set, using local development database")

url = normalize_database_url(url)


class Config:
    SQLALCHEMY_DATABASE_URI = url
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    TESTING = TESTING

    # Token signing
    JWT_KEY = os.environ.get("JWT_KEY")
    JWT_ISSUER = os.environ.get("JWT_ISSUER")
    JWT_AUDIENCE = os.environ.get("JWT_AUDIENCE")
    JWT_EXPIRES_HOURS = int(os.environ.get("JWT_EXPIRES_HOURS", "24"))

    CORS_ORIGINS = [
        origin.strip()
        for origin in os.environ.get("CORS_ORIGINS", "http://localhost:4200").split(",")
        if origin.strip()
    ]


def missing_settings(config) -> list:
    """Names of required settings that are absent or empty in ``config``."""
    return [key for key in REQUIRED_SETTINGS if not config.get(key)]
