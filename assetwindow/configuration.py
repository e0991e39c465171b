"""Project-aware configuration loading for assetwindow."""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, MutableMapping, Optional, Tuple
from urllib.parse import urlparse

import yaml

PROJECT_FILE_NAMES: Tuple[str, ...] = (".assetwindow.yml", ".assetwindow.yaml")
PROJECT_DIR_ENV = "ASSETWINDOW_PROJECT_DIR"
STATE_DIR = ".assetwindow"

DiagnosticLevel = Literal["info", "warning", "error"]
ConfigurationStatus = Literal["ready", "missing", "invalid"]

SchemaSpec = Dict[str, Any]

STORE_BACKENDS = ("filesystem", "s3")
BUCKET_NAME_LENGTH = (4, 63)
LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


CONFIG_SCHEMA: SchemaSpec = {
    "store": {
        "type": dict,
        "schema": {
            "backend": {"type": str, "default": "filesystem"},
            "root": {"type": str, "default": f"{STATE_DIR}/bucket"},
            "bucket": {"type": str, "default": ""},
            "bucket_domain": {"type": str, "default": ""},
            "region": {"type": str, "default": ""},
            "endpoint_url": {"type": str, "default": ""},
            "access_key": {"type": str, "default": ""},
            "secret_key": {"type": str, "default": ""},
        },
        "default": {},
    },
    "publish": {
        "type": dict,
        "schema": {
            "upload_path": {"type": str, "default": "webpack_assets"},
            "match_files": {"type": list, "item_type": str, "default_factory": list},
            "concurrency": {"type": int, "default": 10},
            "retry_attempts": {"type": int, "default": 3},
            "retry_backoff": {"type": (int, float), "default": 0.5},
            "strict_log_fetch": {"type": bool, "default": False},
            "detect_concurrent_publish": {"type": bool, "default": True},
            "warn_unfingerprinted": {"type": bool, "default": True},
        },
        "default": {},
    },
    "logging": {
        "type": dict,
        "schema": {
            "level": {"type": str, "default": "INFO"},
            "structured": {"type": bool, "default": False},
        },
        "default": {},
    },
}


class ConfigurationError(Exception):
    """Raised when settings are requested from an unusable configuration."""


@dataclass
class Diagnostic:
    """Represents a configuration validation or loading issue."""

    level: DiagnosticLevel
    message: str
    source: Optional[Path] = None


@dataclass
class ConfigurationBundle:
    """All configuration data a publish run needs."""

    project_dir: Path
    status: ConfigurationStatus
    merged: Dict[str, Any] = field(default_factory=dict)
    project_overrides: Dict[str, Any] = field(default_factory=dict)
    caller_overrides: Dict[str, Any] = field(default_factory=dict)
    files_loaded: List[Path] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)
    log_path: Optional[Path] = None

    def section(self, name: str) -> Dict[str, Any]:
        value = self.merged.get(name) if self.merged else None
        return value if isinstance(value, dict) else {}


@dataclass(frozen=True)
class PublishSettings:
    """Immutable settings handed to the publisher once at startup."""

    project_dir: Path
    backend: str
    store_root: Path
    bucket: str
    bucket_domain: str
    region: str
    endpoint_url: str
    access_key: str
    secret_key: str
    upload_path: str
    match_files: Tuple[str, ...]
    concurrency: int
    retry_attempts: int
    retry_backoff: float
    strict_log_fetch: bool
    detect_concurrent_publish: bool
    warn_unfingerprinted: bool


def resolve_project_dir(
    env: Optional[Mapping[str, str]] = None,
    default: Optional[str] = None,
) -> Path:
    """Resolve the project directory from the environment."""

    env_source = env or os.environ
    raw = env_source.get(PROJECT_DIR_ENV) or default or os.getcwd()
    return Path(raw).expanduser()


def load_runtime_configuration(
    project_dir: Optional[Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> ConfigurationBundle:
    """Merge schema defaults, the project file and caller overrides."""

    resolved_project = project_dir or resolve_project_dir()
    diagnostics: List[Diagnostic] = []
    files_loaded: List[Path] = []

    status: ConfigurationStatus = "ready"
    project_overrides: Dict[str, Any] = {}

    if not resolved_project.exists():
        diagnostics.append(
            Diagnostic(
                level="error",
                message=f"Project directory '{resolved_project}' does not exist.",
            )
        )
        status = "missing"
    elif not resolved_project.is_dir():
        diagnostics.append(
            Diagnostic(
                level="error",
                message=f"Project path '{resolved_project}' is not a directory.",
            )
        )
        status = "invalid"
    else:
        project_overrides, files_loaded = _load_project_files(resolved_project, diagnostics)

    caller_overrides = deepcopy(dict(overrides or {}))

    merged: Dict[str, Any] = {}
    _deep_merge_dicts(merged, project_overrides)
    _deep_merge_dicts(merged, caller_overrides)

    _validate_schema(merged, diagnostics)
    _validate_publish_rules(merged, diagnostics)

    if status == "ready" and any(diag.level == "error" for diag in diagnostics):
        status = "invalid"

    return ConfigurationBundle(
        project_dir=resolved_project,
        status=status,
        merged=merged,
        project_overrides=project_overrides,
        caller_overrides=caller_overrides,
        files_loaded=files_loaded,
        diagnostics=diagnostics,
    )


def build_settings(bundle: ConfigurationBundle) -> PublishSettings:
    """Freeze a validated bundle into ``PublishSettings``."""

    if bundle.status != "ready":
        errors = [diag.message for diag in bundle.diagnostics if diag.level == "error"]
        detail = "; ".join(errors) or bundle.status
        raise ConfigurationError(f"Configuration is {bundle.status}: {detail}")

    store = bundle.section("store")
    publish = bundle.section("publish")

    store_root = Path(store["root"]).expanduser()
    if not store_root.is_absolute():
        store_root = bundle.project_dir / store_root

    return PublishSettings(
        project_dir=bundle.project_dir,
        backend=store["backend"],
        store_root=store_root,
        bucket=store["bucket"],
        bucket_domain=store["bucket_domain"],
        region=store["region"],
        endpoint_url=store["endpoint_url"],
        access_key=store["access_key"],
        secret_key=store["secret_key"],
        upload_path=publish["upload_path"],
        match_files=tuple(publish["match_files"]),
        concurrency=int(publish["concurrency"]),
        retry_attempts=int(publish["retry_attempts"]),
        retry_backoff=float(publish["retry_backoff"]),
        strict_log_fetch=bool(publish["strict_log_fetch"]),
        detect_concurrent_publish=bool(publish["detect_concurrent_publish"]),
        warn_unfingerprinted=bool(publish["warn_unfingerprinted"]),
    )


def normalize_upload_path(upload_path: str) -> str:
    """Strip surrounding slashes so keys join as ``upload_path/name``."""
    return upload_path.strip().strip("/")


def _load_project_files(
    directory: Path,
    diagnostics: List[Diagnostic],
) -> Tuple[Dict[str, Any], List[Path]]:
    """Load the project's YAML files, merging them in order."""

    data: Dict[str, Any] = {}
    loaded_files: List[Path] = []

    for name in PROJECT_FILE_NAMES:
        yaml_file = directory / name
        if not yaml_file.is_file():
            continue
        try:
            content = yaml.safe_load(yaml_file.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            diagnostics.append(
                Diagnostic(
                    level="error",
                    message=f"Failed to parse '{yaml_file}': {exc}",
                    source=yaml_file,
                )
            )
            continue

        if content is None:
            loaded_files.append(yaml_file)
            continue

        if not isinstance(content, MutableMapping):
            diagnostics.append(
                Diagnostic(
                    level="warning",
                    message=f"Ignoring '{yaml_file}' because it does not contain a mapping.",
                    source=yaml_file,
                )
            )
            continue

        _deep_merge_dicts(data, dict(content))
        loaded_files.append(yaml_file)

    if not loaded_files:
        diagnostics.append(
            Diagnostic(
                level="info",
                message=f"No project configuration found under '{directory}'; using defaults.",
                source=directory,
            )
        )

    return data, loaded_files


def _deep_merge_dicts(dest: MutableMapping[str, Any], source: Mapping[str, Any]) -> None:
    """Recursively merge mapping values."""

    for key, value in source.items():
        if (
            key in dest
            and isinstance(dest[key], MutableMapping)
            and isinstance(value, Mapping)
        ):
            _deep_merge_dicts(dest[key], value)
        else:
            dest[key] = deepcopy(value)


def _default_from_spec(spec: SchemaSpec) -> Any:
    if "default_factory" in spec and callable(spec["default_factory"]):
        return spec["default_factory"]()
    return deepcopy(spec.get("default"))


def _validate_schema(config: Dict[str, Any], diagnostics: List[Diagnostic]) -> None:
    _validate_section(config, CONFIG_SCHEMA, "config", diagnostics)


def _validate_section(
    target: Dict[str, Any],
    schema: SchemaSpec,
    path: str,
    diagnostics: List[Diagnostic],
) -> None:
    if not isinstance(target, dict):
        diagnostics.append(
            Diagnostic(
                level="error",
                message=f"Configuration section '{path}' must be a mapping.",
            )
        )
        return

    for key in list(target.keys()):
        if key not in schema:
            diagnostics.append(
                Diagnostic(
                    level="warning",
                    message=f"Unknown configuration key '{path}.{key}'.",
                )
            )

    for key, spec in schema.items():
        child_path = f"{path}.{key}"
        if key not in target:
            if spec.get("type") is dict:
                target[key] = {}
                _validate_section(target[key], spec.get("schema", {}), child_path, diagnostics)
            elif "default" in spec or "default_factory" in spec:
                target[key] = _default_from_spec(spec)
            continue

        value = target[key]
        expected_type = spec.get("type")

        if expected_type is dict:
            if not isinstance(value, dict):
                diagnostics.append(
                    Diagnostic(
                        level="error",
                        message=f"'{child_path}' must be a mapping.",
                    )
                )
                target[key] = {}
            _validate_section(target[key], spec.get("schema", {}), child_path, diagnostics)
        elif expected_type is list:
            if not isinstance(value, list):
                diagnostics.append(
                    Diagnostic(
                        level="error",
                        message=f"'{child_path}' must be a list.",
                    )
                )
                target[key] = _default_from_spec(spec) or []
                continue
            item_type = spec.get("item_type")
            if item_type is not None:
                filtered: List[Any] = []
                for idx, item in enumerate(value):
                    if isinstance(item, item_type):
                        filtered.append(item)
                    else:
                        diagnostics.append(
                            Diagnostic(
                                level="error",
                                message=(
                                    f"'{child_path}[{idx}]' must be of type "
                                    f"{item_type.__name__}."
                                ),
                            )
                        )
                target[key] = filtered
        elif expected_type and (
            not isinstance(value, expected_type)
            # bool is an int subclass; only accept it where bool is expected.
            or (isinstance(value, bool) and expected_type is not bool)
        ):
            if isinstance(expected_type, tuple):
                type_name = ", ".join(t.__name__ for t in expected_type)
            else:
                type_name = expected_type.__name__
            diagnostics.append(
                Diagnostic(
                    level="error",
                    message=f"'{child_path}' must be of type {type_name}.",
                )
            )
            target[key] = _default_from_spec(spec)


def _validate_publish_rules(config: Dict[str, Any], diagnostics: List[Diagnostic]) -> None:
    """Cross-field checks that the type schema cannot express."""

    store = config["store"]
    publish = config["publish"]

    backend = store["backend"].strip().lower()
    store["backend"] = backend
    if backend not in STORE_BACKENDS:
        diagnostics.append(
            Diagnostic(
                level="error",
                message=(
                    f"'config.store.backend' must be one of {', '.join(STORE_BACKENDS)} "
                    f"(got '{backend}')."
                ),
            )
        )

    if backend == "s3":
        low, high = BUCKET_NAME_LENGTH
        if not low <= len(store["bucket"]) <= high:
            diagnostics.append(
                Diagnostic(
                    level="error",
                    message=f"'config.store.bucket' must be {low}-{high} characters for the s3 backend.",
                )
            )

    domain = store["bucket_domain"]
    if domain:
        parsed = urlparse(domain)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            diagnostics.append(
                Diagnostic(
                    level="error",
                    message=f"'config.store.bucket_domain' must be an http(s) URL (got '{domain}').",
                )
            )

    publish["upload_path"] = normalize_upload_path(publish["upload_path"])

    if publish["concurrency"] < 1:
        diagnostics.append(
            Diagnostic(level="error", message="'config.publish.concurrency' must be >= 1.")
        )
    if publish["retry_attempts"] < 1:
        diagnostics.append(
            Diagnostic(level="error", message="'config.publish.retry_attempts' must be >= 1.")
        )
    if publish["retry_backoff"] < 0:
        diagnostics.append(
            Diagnostic(level="error", message="'config.publish.retry_backoff' must be >= 0.")
        )

    level = config["logging"]["level"].upper()
    if level not in LOG_LEVELS:
        diagnostics.append(
            Diagnostic(
                level="warning",
                message=f"Unknown log level '{config['logging']['level']}'; using INFO.",
            )
        )
        level = "INFO"
    config["logging"]["level"] = level


__all__ = [
    "CONFIG_SCHEMA",
    "ConfigurationBundle",
    "ConfigurationError",
    "ConfigurationStatus",
    "Diagnostic",
    "PROJECT_DIR_ENV",
    "PROJECT_FILE_NAMES",
    "PublishSettings",
    "STATE_DIR",
    "build_settings",
    "load_runtime_configuration",
    "normalize_upload_path",
    "resolve_project_dir",
]
