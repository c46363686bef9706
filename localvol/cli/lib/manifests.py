"""
YAML manifest loading for the apply commands.
"""

from pathlib import Path
from typing import List, Type

import yaml
from pydantic import ValidationError

from localvol.store.base import R


def load_manifests(path: Path, cls: Type[R]) -> List[R]:
    """
    Read every document of a YAML file as ``cls``.

    Documents of another ``kind`` are skipped.

    Raises:
        ValueError: If the file cannot be parsed or a document is invalid
    """
    try:
        with open(path, "r", encoding="utf-8") as file:
            documents = [d for d in yaml.safe_load_all(file) if d]
    except (OSError, yaml.YAMLError) as e:
        raise ValueError(f"Unable to read {path}: {e}")

    objects = []
    for document in documents:
        if document.get("kind", cls.KIND) != cls.KIND:
            continue
        try:
            objects.append(cls.model_validate(document))
        except ValidationError as e:
            raise ValueError(f"Invalid {cls.KIND} manifest in {path}: {e}")
    return objects
