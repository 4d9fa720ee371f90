from pydantic_settings import BaseSettings
from pathlib import Path

# Get the project root directory (parent of studypals folder)
PROJECT_ROOT = Path(__file__).parent.parent

class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""
    database_url: str = f"sqlite:///{PROJECT_ROOT / 'studypals.db'}"
    
    log_level: str = "INFO"
    
    # Review statistics buckets (days)
    learning_threshold_days: int = 7  # interval below this = still learning
    mature_threshold_days: int = 21  # interval at or above this = mature
    
    # Rows shown by the `due` command
    review_preview_limit: int = 20
    
    class Config:
        env_file = str(PROJECT_ROOT / ".env")
        env_prefix = "STUDYPALS_"

settings = Settings()
