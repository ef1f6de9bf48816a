import os
import secrets
import logging
from dotenv import load_dotenv

# Load environment variables from .env file(s)
# 1) Project root .env
load_dotenv()

basedir = os.path.abspath(os.path.dirname(__file__))

logger = logging.getLogger(__name__)


def ensure_data_directory():
    """Ensure the data directory exists (database and client state live here)."""
    data_dir = os.environ.get('YOMU_DATA_DIR') or os.path.join(basedir, 'data')
    os.makedirs(data_dir, exist_ok=True)
    return data_dir

# Initialize data directory
data_dir = ensure_data_directory()

# 2) Overlay data/.env so settings saved at runtime persist via the mounted volume
data_env_path = os.path.join(data_dir, '.env')
if os.path.exists(data_env_path):
    load_dotenv(dotenv_path=data_env_path, override=True)


class Config:
    # Expose data directory path for other modules
    DATA_DIR = data_dir

    # Security
    SECRET_KEY = os.environ.get('SECRET_KEY')
    if not SECRET_KEY:
        # Tokens signed with a per-process key stop verifying after a restart
        SECRET_KEY = secrets.token_hex(32)
        logger.warning("Using temporary SECRET_KEY. Set SECRET_KEY in .env for production!")

    # Bearer tokens
    JWT_SECRET = os.environ.get('JWT_SECRET') or SECRET_KEY
    JWT_ALGORITHM = os.environ.get('JWT_ALGORITHM', 'HS256')
    JWT_EXPIRES_DAYS = int(os.environ.get('JWT_EXPIRES_DAYS', 30))

    # Database configuration
    DATABASE_PATH = os.environ.get('DATABASE_PATH') or os.path.join(data_dir, 'yomu.db')

    # Application settings
    SITE_NAME = os.environ.get('SITE_NAME', 'Yomu')
    TIMEZONE = os.environ.get('TIMEZONE') or 'UTC'

    # Logging
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    DEBUG_REQUESTS = os.environ.get('YOMU_DEBUG_REQUESTS', 'false').lower() in ['true', 'on', '1']


class ClientConfig:
    """Settings for the reading-tracker client (gateway, local state file, calendar day)."""

    def __init__(self, api_base=None, state_path=None, timezone=None):
        self.api_base = (api_base or os.environ.get('YOMU_API_BASE') or 'http://localhost:3001').rstrip('/')
        self.state_path = state_path or os.environ.get('YOMU_STATE_PATH') or os.path.join(data_dir, 'client_state.json')
        self.timezone = timezone or os.environ.get('YOMU_TIMEZONE') or 'UTC'

    def __repr__(self):
        return f'<ClientConfig api_base={self.api_base!r} state_path={self.state_path!r} timezone={self.timezone!r}>'
