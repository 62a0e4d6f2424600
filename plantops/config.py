from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # Approval request store
    database_url: str = "sqlite:///./plantops.sqlite3"
    storage_timeout_seconds: float = 5.0

    # Record backend (spreadsheet web app)
    records_base_url: str = "http://127.0.0.1:8001/exec"
    domain_timeout_seconds: float = 30.0

    # Listing
    default_page_size: int = 50

    class Config:
        env_file = ".env"
        env_prefix = "PLANTOPS_"


settings = Settings()
