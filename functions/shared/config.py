# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

"""
Runtime settings for the park functions.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Environment-backed settings, read from PARKS_* variables or `.env`."""

    model_config = SettingsConfigDict(
        env_prefix="PARKS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Stale-presence sweeper
    sweep_schedule: str = Field(default="every 10 minutes")
    stale_presence_hours: float = Field(default=3.0, gt=0)
    future_skew_hours: float = Field(default=12.0, gt=0)

    # Daily recap
    recap_schedule: str = Field(default="every 5 minutes")
    recap_hour: int = Field(default=21, ge=0, le=23)
    recap_window_minutes: int = Field(default=10, gt=0, le=60)
    recap_chunk_size: int = Field(default=50, gt=0)
    recap_max_workers: int = Field(default=4, gt=0)
    default_timezone: str = Field(default="UTC")

    # Maintenance scripts
    backfill_progress_every: int = Field(default=500, gt=0)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance."""
    return Settings()
