from __future__ import annotations

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field


class ProtocolSettings(BaseModel):
    """
    Runtime knobs for the messaging layer.

    Resolution order for from_env():
      1) optional .env file (python-dotenv), never overriding the process env
      2) os.environ, variables prefixed with COURIER_
      3) field defaults
    """
    model_config = {"extra": "forbid"}

    nonce_ttl_seconds: int = Field(120, gt=0, description="Lifetime of an issued auth nonce.")
    gateway_url: Optional[str] = Field(None, description="Base URL of the messaging gateway.")
    gateway_timeout_s: float = Field(30.0, gt=0)
    webhook_timeout_s: float = Field(10.0, gt=0)

    @classmethod
    def from_env(
        cls,
        *,
        prefix: str = "COURIER_",
        auto_dotenv: bool = False,
        dotenv_path: Optional[str] = None,
    ) -> "ProtocolSettings":
        if auto_dotenv:
            load_dotenv(dotenv_path=dotenv_path, override=False)

        values: dict[str, str] = {}
        for name in cls.model_fields:
            raw = os.getenv(prefix + name.upper())
            if raw is not None and raw != "":
                values[name] = raw
        # pydantic coerces "300" -> 300 and raises ValidationError on junk
        return cls.model_validate(values)
