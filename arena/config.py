import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    """Arena core configuration settings"""
    
    # Storage settings
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///arena.db')
    
    # Runtime settings
    DEBUG = os.getenv('DEBUG', 'False').lower() == 'true'
    LOG_DIR = os.getenv('LOG_DIR', 'logs')
    LOG_TO_FILE = os.getenv('LOG_TO_FILE', 'True').lower() == 'true'
    
    # Cache settings (seconds)
    CACHE_TTL_SECONDS = float(os.getenv('CACHE_TTL_SECONDS', 15))
    
    # Backing store throttling: one retry after this many seconds
    RATE_LIMIT_BACKOFF = float(os.getenv('RATE_LIMIT_BACKOFF', 1.0))
    
    # Elo calculation settings
    K_FACTOR = int(os.getenv('K_FACTOR', 32))
    BASE_RATING = 1500      # Standard registration
    ALT_BASE_RATING = 1200  # Alternate entry path (walk-in registration)
    RATING_FLOOR = 100
    
    # Tournament settings
    TOURNAMENT_TIMEZONE = os.getenv('TOURNAMENT_TIMEZONE', 'Asia/Tokyo')
    DEFAULT_MAX_PARTICIPANTS = 20
    DEFAULT_TOURNAMENT_TYPE = 'random'
    ADMIN_ACTOR = 'admin'
    
    @classmethod
    def validate(cls):
        """Validate that configuration values are usable"""
        if not cls.DATABASE_URL:
            raise ValueError("DATABASE_URL is required")
        if cls.K_FACTOR <= 0:
            raise ValueError("K_FACTOR must be a positive integer")
        if cls.CACHE_TTL_SECONDS < 0:
            raise ValueError("CACHE_TTL_SECONDS cannot be negative")
        if cls.RATE_LIMIT_BACKOFF < 0:
            raise ValueError("RATE_LIMIT_BACKOFF cannot be negative")
        if cls.RATING_FLOOR >= min(cls.BASE_RATING, cls.ALT_BASE_RATING):
            raise ValueError("RATING_FLOOR must be below the starting ratings")
