"""Category loader for config/categories.yaml.

Loads the ordered interview categories. The list is validated for unique ids
and unique order indexes, and cached after first load since it does not
change at runtime.
"""

from pathlib import Path
from typing import Dict, List, Optional

import structlog
import yaml

from src.core.exceptions import ConfigurationError
from src.domain.models.category import Category

log = structlog.get_logger(__name__)

# Module-level cache keyed by resolved path
_cache: Dict[Path, List[Category]] = {}


def default_categories_path() -> Path:
    return Path(__file__).parent.parent.parent / "config" / "categories.yaml"


def load_categories(path: Optional[Path] = None) -> List[Category]:
    """Load categories from YAML, sorted by order_index.

    Args:
        path: Override config/categories.yaml (for testing)

    Returns:
        Categories in advancement order

    Raises:
        FileNotFoundError: Categories file not found
        ConfigurationError: Duplicate ids/order indexes or malformed entries
    """
    path = (path or default_categories_path()).resolve()
    if path in _cache:
        return _cache[path]

    if not path.exists():
        raise FileNotFoundError(f"Categories file not found: {path}")

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    entries = data.get("categories", [])
    try:
        categories = [
            Category(
                id=str(e["id"]),
                name=e["name"],
                description=e.get("description", ""),
                target_questions=e.get("target_questions"),
                order_index=int(e["order_index"]),
            )
            for e in entries
        ]
    except (KeyError, TypeError, ValueError) as e:
        raise ConfigurationError(f"Malformed category entry in {path}: {e}") from e

    ids = [c.id for c in categories]
    if len(set(ids)) != len(ids):
        raise ConfigurationError(f"Duplicate category id in {path}")

    order = [c.order_index for c in categories]
    if len(set(order)) != len(order):
        raise ConfigurationError(f"Duplicate category order_index in {path}")

    categories.sort(key=lambda c: c.order_index)
    _cache[path] = categories
    log.info("categories_loaded", path=str(path), category_count=len(categories))
    return categories


def clear_cache() -> None:
    _cache.clear()
