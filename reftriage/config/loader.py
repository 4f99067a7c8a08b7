"""Rule file loading (YAML)."""

import logging
from pathlib import Path
from typing import Union

import yaml
from pydantic import ValidationError

from reftriage.errors import InvalidRuleDefinition, RuleFileError
from reftriage.models.definition import TriggerTableDefinition

logger = logging.getLogger(__name__)


def load_definition(path: Union[str, Path]) -> TriggerTableDefinition:
    """
    Read a trigger table definition from a YAML file.

    Raises:
        RuleFileError: file missing, unreadable or not valid YAML.
        InvalidRuleDefinition: document does not match the definition schema.
    """
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except OSError as e:
        raise RuleFileError(f"Cannot read rule file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise RuleFileError(f"Rule file {path} is not valid YAML: {e}") from e

    if not isinstance(raw, dict):
        raise RuleFileError(f"Rule file {path} must contain a mapping at the top level")

    try:
        definition = TriggerTableDefinition.model_validate(raw)
    except ValidationError as e:
        raise InvalidRuleDefinition(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        ) from e

    logger.debug(f"Read {len(definition.rules)} rule definition(s) from {path}")
    return definition
