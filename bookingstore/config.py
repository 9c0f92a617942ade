import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel

# Load the .env at the project root, wherever Python is started from
ROOT = Path(__file__).resolve().parents[1]
load_dotenv(ROOT / ".env")


class Settings(BaseModel):
    DATA_DIR: Path = Path(os.getenv("DATA_DIR", str(ROOT / "data")))
    QUARANTINE_CORRUPT: bool = os.getenv("QUARANTINE_CORRUPT", "true").lower() in ("1", "true", "yes")
    WRITE_RETRY_ATTEMPTS: int = int(os.getenv("WRITE_RETRY_ATTEMPTS", "3"))


settings = Settings()
