"""Environment configuration.

Values are read with ``os.getenv`` when asked for, so a ``.env`` file loaded
by the entry point (``load_dotenv()``) or a test's monkeypatched environment
is always honoured.
"""

import logging
import os

from pydantic import BaseModel, Field

from lineage.models import GeneratorOptions

logger = logging.getLogger("treecore.config")

MIN_LINE_LENGTH = 20


class Settings(BaseModel):
    """Runtime settings, one field per TREECORE_* variable."""
    source_program: str = Field(default="treecore", description="HEAD.SOUR written on export.")
    source_version: str = "1.0"
    submitter_name: str = Field(default="treecore user", description="SUBM.NAME written on export.")
    max_line_length: int = Field(default=80, ge=MIN_LINE_LENGTH, description="Longest GEDCOM line before CONC splitting.")
    max_chart_generations: int = Field(default=10, ge=1, description="Upper bound accepted by chart builders.")
    log_level: str = "INFO"


def _int_env(name: str, default: int, minimum: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={raw!r}; using {default}")
        return default
    if value < minimum:
        logger.warning(f"Ignoring {name}={value} below minimum {minimum}; using {default}")
        return default
    return value


def get_settings() -> Settings:
    return Settings(
        source_program=os.getenv("TREECORE_SOURCE_PROGRAM", "treecore"),
        source_version=os.getenv("TREECORE_SOURCE_VERSION", "1.0"),
        submitter_name=os.getenv("TREECORE_SUBMITTER_NAME", "treecore user"),
        max_line_length=_int_env("TREECORE_MAX_LINE_LENGTH", 80, MIN_LINE_LENGTH),
        max_chart_generations=_int_env("TREECORE_MAX_CHART_GENERATIONS", 10, 1),
        log_level=os.getenv("TREECORE_LOG_LEVEL", "INFO").upper(),
    )


def default_generator_options() -> GeneratorOptions:
    """Generator options built from the current environment."""
    settings = get_settings()
    return GeneratorOptions(
        source_program=settings.source_program,
        source_version=settings.source_version,
        submitter_name=settings.submitter_name,
        max_line_length=settings.max_line_length,
    )
