"""Loads .env before any module reads TCMS_* settings."""

from pathlib import Path

from dotenv import load_dotenv

repo_root = Path(__file__).resolve().parents[2]
dotenv_path = repo_root / ".env"
# Local .env wins over host settings so stale store credentials are not picked up
load_dotenv(dotenv_path=dotenv_path if dotenv_path.exists() else None, override=True)
