import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    """League Arc configuration settings"""

    # Database settings
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///league_arc.db')

    # Runtime settings
    DEBUG = os.getenv('DEBUG', 'False').lower() == 'true'
    LOG_DIR = os.getenv('LOG_DIR', 'logs')

    # Redis settings (optional, enables cross-process generation locking)
    REDIS_URL = os.getenv('REDIS_URL', '')

    # Fixture generation settings
    GENERATION_LOCK_TTL = int(os.getenv('GENERATION_LOCK_TTL', 30))  # seconds

    # Leaderboard settings
    DEFAULT_LEADERBOARD_LIMIT = int(os.getenv('DEFAULT_LEADERBOARD_LIMIT', 100))

    @classmethod
    def get_async_database_url(cls, database_url: str = None) -> str:
        """Convert a sync sqlite URL to its aiosqlite form"""
        url = database_url or cls.DATABASE_URL
        if url.startswith('sqlite:///'):
            url = url.replace('sqlite:///', 'sqlite+aiosqlite:///')
        return url

    @classmethod
    def validate(cls):
        """Validate that required configuration is present"""
        if not cls.DATABASE_URL:
            raise ValueError("DATABASE_URL is required")
        if cls.GENERATION_LOCK_TTL <= 0:
            raise ValueError("GENERATION_LOCK_TTL must be a positive number of seconds")
        if cls.DEFAULT_LEADERBOARD_LIMIT <= 0:
            raise ValueError("DEFAULT_LEADERBOARD_LIMIT must be positive")
