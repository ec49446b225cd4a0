"""Layering of configuration sources onto the defaults."""

from __future__ import annotations

from collections.abc import Mapping
from copy import deepcopy
from typing import Any

import yaml
from pydantic import ValidationError

from .exceptions import ConfigError
from .models import NestzipConfig

ENV_PREFIX = "NESTZIP__"


def resolve_with_precedence(
    *,
    defaults: NestzipConfig,
    file_overrides: Mapping[str, Any] | None = None,
    env_overrides: Mapping[str, Any] | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> NestzipConfig:
    """Layer configuration sources onto ``defaults`` and validate the result.

    Later layers win: file, then environment, then command line. Keys may be
    dotted (``run.mode``) or nested mappings. Sections merge key by key while
    lists such as ``markers`` are replaced as a whole.

    Args:
        defaults: Baseline configuration.
        file_overrides: Mapping read from the YAML file.
        env_overrides: Mapping produced by :func:`env_overrides`.
        cli_overrides: Values taken from command line flags.

    Returns:
        NestzipConfig: The validated configuration.

    Raises:
        ConfigError: If a layer is malformed or the merged values are invalid.
    """
    tree = defaults.model_dump(mode="python")
    for source, layer in (
        ("configuration file", file_overrides),
        ("environment", env_overrides),
        ("command line", cli_overrides),
    ):
        if not layer:
            continue
        if not isinstance(layer, Mapping):
            raise ConfigError(f"Overrides from the {source} must be a mapping.")
        for key, value in layer.items():
            assign_dotted(tree, str(key).split("."), value, source=source)

    try:
        return NestzipConfig.model_validate(tree)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or '<root>'}: {error['msg']}"
            for error in exc.errors()
        )
        raise ConfigError(f"Invalid configuration values: {problems}") from exc


def assign_dotted(
    tree: dict[str, Any], path: list[str], value: Any, *, source: str = "override"
) -> None:
    """Store ``value`` at ``path`` inside ``tree``, merging nested mappings.

    Raises:
        ConfigError: If the path is empty or runs through a non-mapping value.
    """
    if not path or not all(path):
        raise ConfigError(f"Empty key segment in {'.'.join(path)!r} from the {source}.")
    node = tree
    for segment in path[:-1]:
        child = node.setdefault(segment, {})
        if not isinstance(child, dict):
            raise ConfigError(
                f"Cannot set {'.'.join(path)} from the {source}: '{segment}' is not a section."
            )
        node = child

    leaf = path[-1]
    if isinstance(value, Mapping) and isinstance(node.get(leaf), dict):
        for key, child_value in value.items():
            assign_dotted(node[leaf], [str(key)], child_value, source=source)
    else:
        node[leaf] = deepcopy(value)


def env_overrides(environ: Mapping[str, str]) -> dict[str, Any]:
    """Return dotted overrides from ``NESTZIP__SECTION__KEY`` variables.

    Values are read as YAML scalars, so ``true`` and ``5`` arrive typed.
    """
    overrides: dict[str, Any] = {}
    for name, raw in environ.items():
        if not name.startswith(ENV_PREFIX):
            continue
        segments = [part.lower() for part in name[len(ENV_PREFIX) :].split("__") if part]
        if not segments:
            continue
        try:
            overrides[".".join(segments)] = yaml.safe_load(raw)
        except yaml.YAMLError:
            overrides[".".join(segments)] = raw
    return overrides


__all__ = ["ENV_PREFIX", "assign_dotted", "env_overrides", "resolve_with_precedence"]
