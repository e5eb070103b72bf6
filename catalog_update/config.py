"""Configuration loading and validation.

The configuration file (``.catalog-updaterc.json`` by default, or any
``*.toml`` file) is user-edited, so it is validated in an explicit pass:
well-formed values become a typed Config, and anything malformed falls
back to its default and is reported in ``rejected``. A broken config file
never stops a run.

Example ``.catalog-updaterc.json``::

    {
      "branchPrefix": "catalog-update",
      "defaultBranch": "main",
      "groups": [
        {"name": "react", "patterns": ["react", "react-dom", "@types/react*"]},
        {"name": "all-patch-updates", "patterns": ["*"], "updateTypes": ["patch"]}
      ],
      "ignore": [{"pattern": "typescript", "updateTypes": ["major"]}]
    }
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Literal, get_args

import tomlkit
from pydantic import BaseModel, Field

from .models import GroupDefinition, IgnoreRule, SemverChange

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = ".catalog-updaterc.json"

PackageManager = Literal["bun", "npm", "pnpm", "yarn"]
VALID_PACKAGE_MANAGERS: frozenset[str] = frozenset(get_args(PackageManager))


class Config(BaseModel):
    """Validated run configuration.

    Attributes:
        branch_prefix: PR branches are named ``<branch_prefix>/<group>``.
        default_branch: Branch PRs are opened against.
        max_open_prs: Upper bound on open update PRs.
        concurrency: Maximum number of in-flight HTTP requests.
        package_manager: Tool used to regenerate the lockfile.
        groups: Group definitions in priority order.
        ignore: Ignore rules.
    """

    branch_prefix: str = "catalog-update"
    default_branch: str = "master"
    max_open_prs: int = 20
    concurrency: int = 10
    package_manager: PackageManager = "bun"
    groups: list[GroupDefinition] = Field(default_factory=list)
    ignore: list[IgnoreRule] = Field(default_factory=list)


class RejectedEntry(BaseModel):
    """A config value that was dropped or replaced by its default."""

    field: str
    value: Any = None
    reason: str


class ConfigLoadResult(BaseModel):
    """A validated config plus everything the validation pass discarded."""

    config: Config
    rejected: list[RejectedEntry] = Field(default_factory=list)


def _parse_update_types(raw: Any) -> list[SemverChange] | None:
    """Keep only valid severities; a missing, non-list or empty list means all."""
    if not isinstance(raw, list):
        return None
    valid = [SemverChange(item) for item in raw if item in {c.value for c in SemverChange}]
    return valid or None


def _parse_groups(raw: Any, rejected: list[RejectedEntry]) -> list[GroupDefinition]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        rejected.append(RejectedEntry(field="groups", value=raw, reason="expected a list"))
        return []

    groups: list[GroupDefinition] = []
    for i, item in enumerate(raw):
        field = f"groups[{i}]"
        if not isinstance(item, dict):
            rejected.append(RejectedEntry(field=field, value=item, reason="expected an object"))
            continue
        if not isinstance(item.get("name"), str) or not isinstance(item.get("patterns"), list):
            rejected.append(
                RejectedEntry(field=field, value=item, reason="requires a string 'name' and a list 'patterns'")
            )
            continue
        groups.append(
            GroupDefinition(
                name=item["name"],
                patterns=[p for p in item["patterns"] if isinstance(p, str)],
                update_types=_parse_update_types(item.get("updateTypes")),
            )
        )
    return groups


def _parse_ignore_rules(raw: Any, rejected: list[RejectedEntry]) -> list[IgnoreRule]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        rejected.append(RejectedEntry(field="ignore", value=raw, reason="expected a list"))
        return []

    rules: list[IgnoreRule] = []
    for i, item in enumerate(raw):
        field = f"ignore[{i}]"
        if not isinstance(item, dict) or not isinstance(item.get("pattern"), str):
            rejected.append(RejectedEntry(field=field, value=item, reason="requires a string 'pattern'"))
            continue
        rules.append(
            IgnoreRule(
                pattern=item["pattern"],
                update_types=_parse_update_types(item.get("updateTypes")),
            )
        )
    return rules


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_config(raw: Any) -> ConfigLoadResult:
    """Turn a decoded config document into a typed Config.

    Unknown keys are ignored. Wrong-typed scalars fall back to their
    defaults; malformed groups and ignore rules are dropped. Every such
    decision is recorded in the result's ``rejected`` list.
    """
    defaults = Config()
    rejected: list[RejectedEntry] = []
    if not isinstance(raw, dict):
        rejected.append(RejectedEntry(field="<root>", value=raw, reason="expected an object"))
        return ConfigLoadResult(config=defaults, rejected=rejected)

    values: dict[str, Any] = {}

    def take(key: str, attr: str, accept: bool, reason: str) -> None:
        if key not in raw:
            return
        if accept:
            values[attr] = raw[key]
        else:
            rejected.append(RejectedEntry(field=key, value=raw[key], reason=reason))

    take("branchPrefix", "branch_prefix", isinstance(raw.get("branchPrefix"), str), "expected a string")
    take("defaultBranch", "default_branch", isinstance(raw.get("defaultBranch"), str), "expected a string")
    take("maxOpenPrs", "max_open_prs", _is_int(raw.get("maxOpenPrs")), "expected an integer")
    take(
        "concurrency",
        "concurrency",
        _is_int(raw.get("concurrency")) and raw.get("concurrency", 0) >= 1,
        "expected a positive integer",
    )
    take(
        "packageManager",
        "package_manager",
        raw.get("packageManager") in VALID_PACKAGE_MANAGERS,
        f"expected one of {', '.join(sorted(VALID_PACKAGE_MANAGERS))}",
    )

    config = defaults.model_copy(
        update={
            **values,
            "groups": _parse_groups(raw.get("groups"), rejected),
            "ignore": _parse_ignore_rules(raw.get("ignore"), rejected),
        }
    )
    return ConfigLoadResult(config=config, rejected=rejected)


def read_config_file(path: Path) -> Any:
    """Decode a config file: TOML (via tomlkit) for ``*.toml``, JSON otherwise."""
    text = path.read_text(encoding="utf-8")
    if path.suffix == ".toml":
        return tomlkit.parse(text).unwrap()
    return json.loads(text)


def load_config(path: Path) -> ConfigLoadResult:
    """Load and validate the config file at path.

    A missing file yields the defaults with a warning; a file that can't be
    read or decoded yields the defaults with an error. Neither is fatal.
    """
    if not path.exists():
        logger.warning("Config file not found at %s, using defaults", path)
        return ConfigLoadResult(config=Config())

    try:
        raw = read_config_file(path)
    except (OSError, ValueError) as exc:
        logger.error("Failed to load config from %s: %s", path, exc)
        return ConfigLoadResult(config=Config())

    result = validate_config(raw)
    for entry in result.rejected:
        logger.debug("Ignoring config %s: %s", entry.field, entry.reason)
    return result
