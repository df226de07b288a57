"""YAML loader for chunking rule overrides.

Operators tune chunking per collection or per category without code
changes by listing overrides in a YAML file (``CHUNKING_OVERRIDES_PATH``,
default ``config/chunking_overrides.yaml``)::

    overrides:
      - category: POLICY
        size: {max_tokens: 600}
      - collection_id: contracts-2024
        category: GENERAL
        chunk_strategy: {primary: SENTENCE_BASED}

Only ``size``, ``merge`` and ``chunk_strategy`` may be patched; unspecified
keys keep the base rule's value.  A missing file means "no overrides".
"""

from __future__ import annotations

from pathlib import Path

import structlog
import yaml
from pydantic import ValidationError

from notebook_rag.models.chunking import ChunkingRuleOverride
from notebook_rag.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)


def load_chunking_overrides(path: str = "config/chunking_overrides.yaml") -> list[ChunkingRuleOverride]:
    """Load and validate chunking rule overrides from a YAML file.

    Args:
        path: Path to the YAML overrides file.

    Returns:
        Validated overrides in file order (empty when the file is absent).

    Raises:
        ConfigurationError: If the file is not valid YAML or an entry does
            not describe a valid override.
    """
    config_path = Path(path)
    if not config_path.exists():
        return []

    try:
        with open(config_path, encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(message=f"Invalid YAML in {path}: {exc}") from exc

    entries = raw.get("overrides", []) if isinstance(raw, dict) else raw
    if not isinstance(entries, list):
        raise ConfigurationError(message=f"{path}: 'overrides' must be a list")

    overrides: list[ChunkingRuleOverride] = []
    for position, entry in enumerate(entries):
        try:
            overrides.append(ChunkingRuleOverride.model_validate(entry))
        except ValidationError as exc:
            raise ConfigurationError(
                message=f"{path}: invalid override at position {position}: {exc}"
            ) from exc

    logger.info("chunking_overrides_loaded", path=path, count=len(overrides))
    return overrides
