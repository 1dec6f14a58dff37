"""
ChoreVoice Configuration

Centralized configuration for the voice task-creation engine.
All settings can be overridden via environment variables (or a .env file).
"""
import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class ChoreVoiceConfig:
    """
    Central configuration for the dialogue engine.

    Values are read from the environment when the instance is created, so a
    fresh instance picks up changes made after import.

    Example:
        >>> from chorevoice.config import config
        >>> print(config.SESSION_TTL_MINUTES)
        15

        # Override via environment:
        >>> os.environ["SESSION_TTL_MINUTES"] = "5"
        >>> config = ChoreVoiceConfig.from_env()
        >>> print(config.SESSION_TTL_MINUTES)
        5
    """

    def __init__(self):
        # ====================================================================
        # Sessions
        # ====================================================================

        self.SESSION_TTL_MINUTES: int = int(os.getenv("SESSION_TTL_MINUTES", "15"))
        """Fixed session lifetime, counted from creation (never refreshed)"""

        self.SWEEP_INTERVAL_SECONDS: int = int(os.getenv("SWEEP_INTERVAL_SECONDS", "300"))
        """Interval between background purges of expired sessions"""

        self.SESSION_BACKEND: str = os.getenv("SESSION_BACKEND", "memory").lower()
        """Session storage backend: 'memory' or 'redis'"""

        self.REDIS_URL: Optional[str] = os.getenv("REDIS_URL")
        """Redis connection URL (required when SESSION_BACKEND=redis)"""

        self.SESSION_LOCK_TIMEOUT_SECONDS: int = int(os.getenv("SESSION_LOCK_TIMEOUT_SECONDS", "30"))
        """Upper bound on how long a per-session lock may be held"""

        # ====================================================================
        # Time normalization
        # ====================================================================

        self.TIMEZONE: str = os.getenv("TIMEZONE", "America/Chicago")
        """Single zone used for every due-date computation and rendering"""

        self.DEFAULT_DUE_HOUR: int = int(os.getenv("DEFAULT_DUE_HOUR", "18"))
        """Hour of day used when a due phrase carries no time"""

        # ====================================================================
        # Fuzzy Matching
        # ====================================================================

        self.FUZZY_MAX_DISTANCE: int = int(os.getenv("FUZZY_MAX_DISTANCE", "3"))
        """Maximum Levenshtein distance accepted for child-name matches"""

        # ====================================================================
        # Extraction
        # ====================================================================

        self.EXTRACTOR: str = os.getenv("EXTRACTOR", "rules").lower()
        """Delta extractor: 'rules' (deterministic) or 'llm' (OpenAI)"""

        self.EXTRACTION_TIMEOUT_SECONDS: float = float(os.getenv("EXTRACTION_TIMEOUT_SECONDS", "10"))
        """Caller-side timeout for one extraction call"""

        self.LLM_MODEL: str = os.getenv("LLM_MODEL", "gpt-4o-mini")
        """OpenAI model used by the LLM extractor"""

        self.OPENAI_API_KEY: Optional[str] = os.getenv("OPENAI_API_KEY")
        """OpenAI API key (required if EXTRACTOR=llm or for speech-to-text)"""

        self.STT_MODEL: str = os.getenv("STT_MODEL", "whisper-1")
        """OpenAI transcription model"""

        self.MAX_AUDIO_BYTES: int = int(os.getenv("MAX_AUDIO_BYTES", str(10 * 1024 * 1024)))
        """Upload limit for /voice/stt"""

        # ====================================================================
        # Logging Settings
        # ====================================================================

        self.LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
        """Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL"""

        self.LOG_FORMAT: str = os.getenv("LOG_FORMAT", "json")
        """Log format: 'json' (structured) or 'pretty' (readable)"""

        self.LOG_FILE: Optional[str] = os.getenv("LOG_FILE")
        """Optional: Write logs to file (e.g., '/var/log/chorevoice/api.log')"""

        self.ENABLE_REQUEST_LOGGING: bool = _env_bool("ENABLE_REQUEST_LOGGING", "true")
        """Log all HTTP requests/responses with timing"""

        # ====================================================================
        # API Settings
        # ====================================================================

        self.API_PORT: int = int(os.getenv("PORT", "9002"))
        """Port for Flask API server"""

        self.API_HOST: str = os.getenv("HOST", "0.0.0.0")
        """Host for Flask API server"""

        self.ENABLE_DEBUG_ENDPOINT: bool = _env_bool("ENABLE_DEBUG_ENDPOINT", "false")
        """Expose GET /voice/session/debug (never in production)"""

    @classmethod
    def from_env(cls):
        """
        Create config from environment variables.

        Returns:
            New ChoreVoiceConfig instance with current environment values
        """
        return cls()

    def summary(self) -> str:
        """
        Get configuration summary as formatted string.

        Returns:
            Multi-line string with all config values
        """
        lines = [
            "=" * 60,
            "ChoreVoice Configuration",
            "=" * 60,
            "",
            "Sessions:",
            f"  Backend:            {self.SESSION_BACKEND}",
            f"  TTL:                {self.SESSION_TTL_MINUTES} min (fixed at creation)",
            f"  Sweep Interval:     {self.SWEEP_INTERVAL_SECONDS}s",
            "",
            "Time:",
            f"  Timezone:           {self.TIMEZONE}",
            f"  Default Due Hour:   {self.DEFAULT_DUE_HOUR}:00",
            "",
            "Extraction:",
            f"  Extractor:          {self.EXTRACTOR}",
            f"  Timeout:            {self.EXTRACTION_TIMEOUT_SECONDS}s",
            f"  Fuzzy Distance:     {self.FUZZY_MAX_DISTANCE}",
        ]

        if self.EXTRACTOR == "llm":
            lines.extend([
                f"  Model:              {self.LLM_MODEL}",
                f"  API Key:            {'Set' if self.OPENAI_API_KEY else 'Not set'}",
            ])

        lines.extend([
            "",
            "API:",
            f"  Host:               {self.API_HOST}",
            f"  Port:               {self.API_PORT}",
            f"  Debug Endpoint:     {'Enabled' if self.ENABLE_DEBUG_ENDPOINT else 'Disabled'}",
            "",
            "Logging:",
            f"  Level:              {self.LOG_LEVEL}",
            f"  Format:             {self.LOG_FORMAT}",
            f"  File:               {self.LOG_FILE or 'None'}",
            f"  Request Logging:    {'Enabled' if self.ENABLE_REQUEST_LOGGING else 'Disabled'}",
            "",
            "=" * 60,
        ])

        return "\n".join(lines)

    def __repr__(self):
        """String representation."""
        return f"<ChoreVoiceConfig backend={self.SESSION_BACKEND} extractor={self.EXTRACTOR} tz={self.TIMEZONE}>"


# Global config instance
config = ChoreVoiceConfig()
