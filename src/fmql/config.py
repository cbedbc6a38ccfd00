"""Configuration for the fmql command line.

All env-var reading is centralised here. load_dotenv() runs at import time so
that values from a .env file in the working directory are picked up.

Variables:
  FMQL_LOG_LEVEL            logging level name (default WARNING)
  FMQL_OUTPUT_FORMAT        "text" or "json" (default text)
  FMQL_LIKE_CASE_SENSITIVE  make plain LIKE case-sensitive (default false)
  FMQL_HISTORY_FILE         REPL history file (default ~/.fmql_history)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping

from dotenv import find_dotenv, load_dotenv

# Load .env on import. Existing environment variables win.
load_dotenv(find_dotenv(usecwd=True))

OUTPUT_FORMATS = ("text", "json")

_TRUE_VALUES = ("true", "1", "yes", "on")


@dataclass
class FmqlConfig:
    log_level: str = "WARNING"
    output_format: str = "text"
    like_case_sensitive: bool = False
    history_file: str = os.path.expanduser("~/.fmql_history")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> FmqlConfig:
        """Build a configuration from ``environ`` (defaults to ``os.environ``)."""
        env = os.environ if environ is None else environ
        return cls(
            log_level=env.get("FMQL_LOG_LEVEL", "WARNING").upper(),
            output_format=env.get("FMQL_OUTPUT_FORMAT", "text").lower(),
            like_case_sensitive=env.get("FMQL_LIKE_CASE_SENSITIVE", "false").lower() in _TRUE_VALUES,
            history_file=os.path.expanduser(env.get("FMQL_HISTORY_FILE", "~/.fmql_history")),
        )

    def validate(self) -> None:
        """Fail fast on values the command line cannot use."""
        if self.output_format not in OUTPUT_FORMATS:
            raise ValueError(
                f"Unknown output format {self.output_format!r} "
                f"(expected one of: {', '.join(OUTPUT_FORMATS)})"
            )
        if not isinstance(logging.getLevelName(self.log_level), int):
            raise ValueError(f"Unknown log level {self.log_level!r}")
