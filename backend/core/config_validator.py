"""
Configuration validation for the course generator backend.
Validates prompt files, the LLM server, storage and settings on startup.
"""
import requests
from typing import List, Dict, Any

from core import config
from core.prompt_manager import REQUIRED_PROMPTS


class ConfigurationError(Exception):
    """Raised when configuration is invalid."""
    pass


class ConfigValidator:
    """Validates system configuration before the API serves requests."""

    def __init__(self):
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def validate_all(self) -> Dict[str, Any]:
        """
        Run all validation checks.

        Returns:
            {
                "valid": bool,
                "errors": List[str],
                "warnings": List[str]
            }
        """
        self.errors = []
        self.warnings = []

        self._validate_prompt_files()
        available_models = self._validate_ollama_connection()
        if available_models is not None:
            self._validate_ollama_models(available_models)
        self._validate_database()
        self._validate_config_values()

        return {
            "valid": len(self.errors) == 0,
            "errors": self.errors,
            "warnings": self.warnings,
        }

    def raise_if_invalid(self) -> None:
        result = self.validate_all()
        if not result["valid"]:
            raise ConfigurationError("; ".join(result["errors"]))

    def _validate_prompt_files(self):
        """Missing prompt files fall back to built-in templates, so only warn."""
        prompts_dir = config.PROMPTS_DIR

        if not prompts_dir.exists():
            self.warnings.append(
                f"Prompts directory not found: {prompts_dir}. Built-in templates will be used."
            )
            return

        for name in REQUIRED_PROMPTS:
            path = prompts_dir / f"{name}.txt"
            if not path.exists():
                self.warnings.append(f"Prompt file missing, using fallback: {path.name}")
            elif path.stat().st_size == 0:
                self.warnings.append(f"Prompt file is empty: {path.name}")

    def _validate_ollama_connection(self):
        """Check that the LLM server is reachable; returns its model names."""
        try:
            response = requests.get(f"{config.OLLAMA_BASE_URL}/api/tags", timeout=5)
            response.raise_for_status()
            return [model["name"] for model in response.json().get("models", [])]
        except requests.exceptions.ConnectionError:
            self.errors.append(
                f"Cannot connect to Ollama at {config.OLLAMA_BASE_URL}. "
                "Ensure Ollama is running: `ollama serve`"
            )
        except requests.exceptions.Timeout:
            self.errors.append(
                f"Ollama connection timeout at {config.OLLAMA_BASE_URL}. "
                "Check network or Ollama performance."
            )
        except (requests.exceptions.RequestException, ValueError, KeyError) as e:
            self.errors.append(f"Ollama connection error: {e}")
        return None

    def _validate_ollama_models(self, available_models: List[str]):
        required_models = {"Generation model": config.OLLAMA_MODEL}
        if config.OLLAMA_FALLBACK_MODEL:
            required_models["Fallback model"] = config.OLLAMA_FALLBACK_MODEL

        for model_name, model_id in required_models.items():
            if model_id not in available_models:
                self.errors.append(
                    f"Required model not found: {model_name} ({model_id}). "
                    f"Pull it with: `ollama pull {model_id}`"
                )

    def _validate_database(self):
        """Check that the database directory is usable."""
        db_dir = config.DB_PATH.parent
        if not db_dir.exists():
            self.warnings.append(
                f"Database directory not found at {db_dir}. Will be created automatically."
            )
        if not config.SCHEMA_FILE.exists():
            self.errors.append(f"Database schema file missing: {config.SCHEMA_FILE}")

    def _validate_config_values(self):
        """Validate configuration value ranges and types."""
        if config.RETRY_MAX_ATTEMPTS < 1:
            self.errors.append(
                f"RETRY_MAX_ATTEMPTS ({config.RETRY_MAX_ATTEMPTS}) must be at least 1"
            )

        if config.RETRY_BASE_DELAY_MS < 0:
            self.errors.append(
                f"RETRY_BASE_DELAY_MS ({config.RETRY_BASE_DELAY_MS}) must not be negative"
            )

        if not (config.MIN_SECTIONS <= config.DEFAULT_NUM_SECTIONS <= config.MAX_SECTIONS):
            self.warnings.append(
                f"DEFAULT_NUM_SECTIONS ({config.DEFAULT_NUM_SECTIONS}) will be clamped to "
                f"[{config.MIN_SECTIONS}, {config.MAX_SECTIONS}]"
            )

        if not (config.MIN_QUESTIONS <= config.DEFAULT_QUESTIONS_PER_SECTION <= config.MAX_QUESTIONS):
            self.warnings.append(
                f"DEFAULT_QUESTIONS_PER_SECTION ({config.DEFAULT_QUESTIONS_PER_SECTION}) will be "
                f"clamped to [{config.MIN_QUESTIONS}, {config.MAX_QUESTIONS}]"
            )

        if not (0.0 <= config.LLM_TEMPERATURE <= 1.0):
            self.warnings.append(
                f"LLM_TEMPERATURE ({config.LLM_TEMPERATURE}) outside normal range [0.0, 1.0]"
            )
