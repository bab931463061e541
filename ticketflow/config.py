"""
Engine configuration.

Defaults, overridable from TICKETFLOW_* environment variables.
"""

import os
from typing import ClassVar, Dict, Optional, Mapping

from pydantic import BaseModel, Field

from .models.ticket import DuplicatePolicy


class EngineConfig(BaseModel):
    """
    Runtime settings for the workflow engine.

    Environment variables map 1:1 onto fields:
    TICKETFLOW_DEFAULT_SLA_HOURS -> default_sla_hours, etc.
    Values are coerced and validated by pydantic; invalid values raise.
    """
    ENV_PREFIX: ClassVar[str] = "TICKETFLOW_"

    # Used when a category has no SLA configured
    default_sla_hours: int = Field(default=24, gt=0)

    duplicate_policy: DuplicatePolicy = DuplicatePolicy.WARN

    ticket_code_prefix: str = Field(default="TKT", min_length=1)

    # JSON reference data (departments, categories, locations, workers, admins)
    seed_file: Optional[str] = None

    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineConfig":
        environ = os.environ if environ is None else environ
        values: Dict[str, str] = {}
        for name in cls.model_fields:
            raw = environ.get(f"{cls.ENV_PREFIX}{name.upper()}")
            if raw is not None:
                values[name] = raw
        return cls(**values)
