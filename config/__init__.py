"""Configuration compatibility layer and shared exports."""

import os
from typing import List, Optional

from dotenv import load_dotenv

from .settings import (
	DEFAULT_ACCURACY_MS,
	DEFAULT_MAX_ATTEMPTS,
	DEFAULT_QUERY_TIMEOUT,
	DEFAULT_RETRY_BACKOFF,
	DEFAULT_RETRY_DELAY,
	DEFAULT_RETRY_MAX_DELAY,
	SPANNER_DATABASE,
	SPANNER_INSTANCE,
	SPANNER_PROJECT,
)

load_dotenv()


def _env_int(name: str, default: int) -> int:
	return int(os.getenv(name, str(default)) or str(default))


def _env_float(name: str, default: float) -> float:
	return float(os.getenv(name, str(default)) or str(default))


class Config:
	"""Application configuration."""

	# Database identity
	SPANNER_PROJECT: str = SPANNER_PROJECT
	SPANNER_INSTANCE: str = SPANNER_INSTANCE
	SPANNER_DATABASE: str = SPANNER_DATABASE

	# Search
	ACCURACY_MS: int = _env_int("PITR_ACCURACY_MS", DEFAULT_ACCURACY_MS)
	QUERY_TIMEOUT: float = _env_float("PITR_QUERY_TIMEOUT", DEFAULT_QUERY_TIMEOUT)

	# Retry
	MAX_ATTEMPTS: int = _env_int("PITR_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS)
	RETRY_DELAY: float = _env_float("PITR_RETRY_DELAY", DEFAULT_RETRY_DELAY)
	RETRY_BACKOFF: float = _env_float("PITR_RETRY_BACKOFF", DEFAULT_RETRY_BACKOFF)
	RETRY_MAX_DELAY: float = _env_float("PITR_RETRY_MAX_DELAY", DEFAULT_RETRY_MAX_DELAY)

	# Logging
	LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
	LOG_FILE: Optional[str] = os.getenv("LOG_FILE") or None

	@classmethod
	def validate(cls) -> List[str]:
		"""
		Validate configuration and return list of errors.

		Returns:
			List of error messages, empty if valid
		"""
		errors = []

		if cls.ACCURACY_MS <= 0:
			errors.append("PITR_ACCURACY_MS must be positive")

		if cls.QUERY_TIMEOUT <= 0:
			errors.append("PITR_QUERY_TIMEOUT must be positive")

		if cls.MAX_ATTEMPTS < 1:
			errors.append("PITR_MAX_ATTEMPTS must be at least 1")

		if cls.RETRY_DELAY < 0 or cls.RETRY_MAX_DELAY < 0:
			errors.append("PITR_RETRY_DELAY and PITR_RETRY_MAX_DELAY must not be negative")

		if cls.RETRY_BACKOFF < 1:
			errors.append("PITR_RETRY_BACKOFF must be at least 1.0")

		return errors


__all__ = ["Config"]
