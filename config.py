import os
from dataclasses import dataclass


@dataclass
class Config:
    """Process-level configuration for the bot brain"""

    # Scheduler settings
    TICK_WORKERS: int = int(os.environ.get('TICK_WORKERS', '4'))   # 1 = sequential
    TICK_BATCH_SIZE: int = int(os.environ.get('TICK_BATCH_SIZE', '50'))
    TICK_INTERVAL_MINUTES: int = int(os.environ.get('TICK_INTERVAL_MINUTES', '5'))

    # Decision trace log (one JSON line per tick)
    DECISION_LOG_ENABLED: bool = os.environ.get('DECISION_LOG_ENABLED', 'True').lower() == 'true'

    # Paths
    BASE_DIR: str = os.path.dirname(os.path.abspath(__file__))
    DATA_DIR: str = os.environ.get('BOT_DATA_DIR', os.path.join(BASE_DIR, 'data'))
    LOG_DIR: str = os.environ.get('BOT_LOG_DIR', os.path.join(BASE_DIR, 'logs'))

    # Database
    @property
    def DATABASE_URL(self) -> str:
        env_url = os.environ.get('DATABASE_URL')
        if env_url:
            return env_url
        return f'sqlite:///{os.path.join(self.DATA_DIR, "bots.db")}'

    def ensure_dirs(self):
        """Ensure data and log directories exist"""
        os.makedirs(self.DATA_DIR, exist_ok=True)
        os.makedirs(self.LOG_DIR, exist_ok=True)


# Create global config instance
config = Config()
