"""
Data persistence utilities.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path  # noqa: TC003

from pydantic import ValidationError as PydanticValidationError

from didanchor.common.models import UserRecord

logger = logging.getLogger(__name__)


class DataPersistence:
    """Handles loading and saving persistent data."""

    @staticmethod
    def load_users(file_path: Path) -> dict[str, UserRecord]:
        """Load user records from file; a missing or corrupt file yields none."""
        try:
            with file_path.open() as f:
                data = json.load(f)
            return {did: UserRecord.model_validate(v) for did, v in data.items()}
        except FileNotFoundError:
            return {}
        except (json.JSONDecodeError, AttributeError, PydanticValidationError):
            logger.warning("Ignoring unreadable user file %s", file_path)
            return {}

    @staticmethod
    def save_users(file_path: Path, users: dict[str, UserRecord]) -> None:
        """Save user records to file."""
        file_path.parent.mkdir(parents=True, exist_ok=True)
        with file_path.open("w") as f:
            json.dump(
                {did: user.model_dump(mode="json") for did, user in users.items()},
                f,
                indent=2,
            )
