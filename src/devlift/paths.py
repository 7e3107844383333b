# paths.py
from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

GLOBAL_CONFIG_DIR = ".devlift"
GLOBAL_CONFIG_FILE = "config.json"
DEFAULT_CLONE_BASE = Path("devlift") / "clones"


def global_config_path(home: Optional[Path] = None) -> Path:
    return (home or Path.home()) / GLOBAL_CONFIG_DIR / GLOBAL_CONFIG_FILE


def load_global_config(home: Optional[Path] = None) -> Dict[str, Any]:
    """Read ~/.devlift/config.json; a missing or unreadable file counts as empty."""
    path = global_config_path(home)
    if not path.is_file():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Ignoring unreadable global config %s: %s", path, e)
        return {}
    return data if isinstance(data, dict) else {}


def clone_path(repo_url: str, home: Optional[Path] = None) -> Path:
    """
    Local directory a repository is cloned into.

      https://github.com/acme/app.git -> <base>/github.com/acme/app
      git@github.com:acme/app.git     -> <base>/github.com/acme/app

    <base> is `basePath` from the global config, else ~/devlift/clones.
    """
    normalized = re.sub(r"^(https://|git@)", "", repo_url)
    normalized = re.sub(r"\.git$", "", normalized)
    normalized = normalized.replace(":", "/", 1)

    home = home or Path.home()
    base = load_global_config(home).get("basePath")
    base_path = Path(base).expanduser() if base else home / DEFAULT_CLONE_BASE
    return base_path.joinpath(*normalized.split("/"))
