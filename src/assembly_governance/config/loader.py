"""Engine configuration loader with Pydantic v2 validation.

Loads and validates an ``assembly.yaml`` file into a typed
:class:`EngineConfig`.  Unknown keys are allowed so newer files still load.

The ``PROXY_MAX_PER_RECEIVER`` environment variable, when set, overrides
``proxies.max_per_receiver``.

Example
-------
>>> loader = ConfigLoader()
>>> config = loader.load_string("proxies:\\n  max_per_receiver: 3\\n")
>>> config.proxies.max_per_receiver
3
"""
from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping

import yaml
from pydantic import BaseModel, Field

from assembly_governance.policies.schema import PolicySet

logger = logging.getLogger(__name__)

PROXY_CAP_ENV_VAR = "PROXY_MAX_PER_RECEIVER"


class ProxyConfig(BaseModel):
    """Configuration for the proxy ledger."""

    model_config = {"extra": "allow"}

    max_per_receiver: int = Field(default=99, ge=1)
    lock_timeout_seconds: float = Field(default=2.0, gt=0)


class AuditConfig(BaseModel):
    """Configuration for the audit trail."""

    model_config = {"extra": "allow"}

    log_path: Path = Field(default=Path("./assembly_audit.jsonl"))


class EngineConfig(BaseModel):
    """Top-level engine configuration schema.

    All sections are optional and fall back to defaults.
    """

    model_config = {"extra": "allow"}

    version: str = Field(default="1")
    proxies: ProxyConfig = Field(default_factory=ProxyConfig)
    audit: AuditConfig = Field(default_factory=AuditConfig)
    policy_files: list[Path] = Field(default_factory=list)

    def load_policies(self, base_dir: Path | None = None) -> PolicySet:
        """Merge the policy sets of every file in ``policy_files``.

        Relative paths resolve against *base_dir* (default: the working
        directory).  Later files win on id collisions.
        """
        policies = PolicySet()
        for policy_file in self.policy_files:
            path = policy_file if base_dir is None or policy_file.is_absolute() else base_dir / policy_file
            if not path.exists():
                raise FileNotFoundError(f"Policy file not found: {path}")
            policies = policies.merged(PolicySet.from_yaml(path.read_text(encoding="utf-8")))
        return policies


class ConfigLoader:
    """Loads and validates engine YAML configuration.

    Parameters
    ----------
    environ:
        Environment mapping to read overrides from.  Defaults to
        ``os.environ``.
    """

    def __init__(self, environ: Mapping[str, str] | None = None) -> None:
        self._environ = environ if environ is not None else os.environ

    def load(self, config_path: Path) -> EngineConfig:
        """Load and validate an engine YAML file.

        Raises
        ------
        FileNotFoundError:
            When the config file does not exist.
        ValueError:
            When the YAML content fails Pydantic validation.
        """
        if not config_path.exists():
            raise FileNotFoundError(f"Engine config not found: {config_path}")

        with config_path.open("r", encoding="utf-8") as fh:
            raw: dict[str, object] = yaml.safe_load(fh) or {}

        return self._validate(raw)

    def load_string(self, yaml_content: str) -> EngineConfig:
        """Load and validate a YAML string directly."""
        raw: dict[str, object] = yaml.safe_load(yaml_content) or {}
        return self._validate(raw)

    def defaults(self) -> EngineConfig:
        """Return the default configuration, environment overrides applied."""
        return self._validate({})

    def _validate(self, raw: dict[str, object]) -> EngineConfig:
        override = self._environ.get(PROXY_CAP_ENV_VAR)
        if override:
            proxies = dict(raw.get("proxies") or {})  # type: ignore[call-overload]
            proxies["max_per_receiver"] = override
            raw = {**raw, "proxies": proxies}
            logger.debug("Proxy cap overridden by %s=%s", PROXY_CAP_ENV_VAR, override)
        return EngineConfig.model_validate(raw)
