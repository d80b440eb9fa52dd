"""Load the repo CLA configuration snapshot from ``CLA_REPO_CONFIG_PATH``.

File format::

    {"repos": [
        {"org": "org-a", "repo": "repo1", "cla_id": "<link id>",
         "check_by_committer": false, "cla_label_yes": "cla/yes", "cla_label_no": "cla/no"},
        {"org": "org-b", "cla_id": "<link id>"}
    ]}

An entry without ``repo`` applies to every repo of its org.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

from cla_gate.models.cla import CLAConfiguration, CLARepoConfig
from cla_gate.services import settings

logger = logging.getLogger(__name__)


def parse_configuration(data: Any) -> CLAConfiguration:
    rows = data.get("repos", []) if isinstance(data, dict) else data
    if not isinstance(rows, list):
        raise ValueError("repo CLA configuration must be a list or an object with a 'repos' list")
    return CLAConfiguration(repos=tuple(CLARepoConfig(**row) for row in rows))


def load_configuration(path: Optional[str] = None) -> CLAConfiguration:
    path = path if path is not None else settings.repo_config_path()
    if not path:
        return CLAConfiguration()
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.warning("repo_cla_config_missing path=%s", path)
        return CLAConfiguration()
    config = parse_configuration(json.loads(raw))
    logger.info("repo_cla_config_loaded path=%s entries=%s", path, len(config.repos))
    return config
