"""
Client configuration file (``config.yaml``).

Holds the CLI instance ID, CEIP participation, the telemetry source and the
login contexts. Only the pieces the CLI front-end needs are modelled here.

File layout:
    cli:
      cliId: 4f6c...
      ceipOptIn: "true"
      telemetry:
        source: /home/me/.config/tanzu-cli-telemetry/cli_metrics.db
    contexts:
      - name: my-cluster
        contextType: kubernetes
        clusterOpts: {endpoint: https://..., path: ~/.kube/config, context: admin@c}
    currentContext:
      kubernetes: my-cluster
"""

from __future__ import annotations

import logging
import threading
import uuid
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from tanzucli.config import TanzuCLIConfig, get_config
from tanzucli.utils.locking import file_lock

logger = logging.getLogger(__name__)


class ClientConfigError(Exception):
    pass


class ContextType(str, Enum):
    KUBERNETES = "kubernetes"
    MISSION_CONTROL = "mission-control"
    TANZU = "tanzu"


class AuthInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    issuer: str = ""
    user_name: str = Field(default="", alias="userName")
    refresh_token: str = Field(default="", alias="refresh_token")
    type: str = ""


class GlobalServerOpts(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    endpoint: str = ""
    auth: AuthInfo = Field(default_factory=AuthInfo)


class ClusterServerOpts(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    endpoint: str = ""
    path: str = ""
    context: str = ""
    is_management_cluster: bool = Field(default=False, alias="isManagementCluster")


class Context(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    name: str
    context_type: ContextType = Field(alias="contextType")
    global_opts: Optional[GlobalServerOpts] = Field(default=None, alias="globalOpts")
    cluster_opts: Optional[ClusterServerOpts] = Field(default=None, alias="clusterOpts")
    additional_metadata: Dict[str, Any] = Field(default_factory=dict, alias="additionalMetadata")

    @property
    def endpoint(self) -> str:
        if self.global_opts and self.global_opts.endpoint:
            return self.global_opts.endpoint
        if self.cluster_opts:
            return self.cluster_opts.endpoint
        return ""


class TelemetryOptions(BaseModel):
    source: str = ""


class ClientConfigStore:
    """
    Read/write access to ``config.yaml``.

    A missing file means defaults. Writes rewrite the whole file under a
    sidecar lock.
    """

    _id_lock = threading.Lock()

    def __init__(self, config: Optional[TanzuCLIConfig] = None, path: Optional[Path] = None):
        self.config = config or get_config()
        self.path = Path(path) if path else self.config.client_config_path

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ClientConfigError(f"failed to parse client config {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise ClientConfigError(f"invalid client config {self.path}: top level is not a mapping")
        return data

    def _save(self, data: Dict[str, Any]) -> None:
        with file_lock(self.path):
            self._write(data)

    def _write(self, data: Dict[str, Any]) -> None:
        self.path.write_text(yaml.safe_dump(data, default_flow_style=False), encoding="utf-8")

    def _cli_section(self, data: Dict[str, Any]) -> Dict[str, Any]:
        section = data.get("cli")
        if not isinstance(section, dict):
            section = {}
            data["cli"] = section
        return section

    def get_cli_id(self) -> str:
        """Stable CLI instance ID, generated and persisted on first use."""
        with self._id_lock, file_lock(self.path):
            data = self._load()
            cli = self._cli_section(data)
            cli_id = cli.get("cliId")
            if cli_id:
                return str(cli_id)
            cli_id = str(uuid.uuid4())
            cli["cliId"] = cli_id
            self._write(data)
            logger.debug(f"Generated CLI instance ID {cli_id}")
            return cli_id

    def get_telemetry_options(self) -> Optional[TelemetryOptions]:
        telemetry = self._cli_section(self._load()).get("telemetry")
        if not isinstance(telemetry, dict):
            return None
        return TelemetryOptions(source=str(telemetry.get("source") or ""))

    def set_telemetry_options(self, options: TelemetryOptions) -> None:
        data = self._load()
        self._cli_section(data)["telemetry"] = options.model_dump()
        self._save(data)

    def get_ceip_opt_in(self) -> str:
        return str(self._cli_section(self._load()).get("ceipOptIn") or "")

    def set_ceip_opt_in(self, opt_in: bool) -> None:
        data = self._load()
        self._cli_section(data)["ceipOptIn"] = "true" if opt_in else "false"
        self._save(data)

    def ceip_opted_in(self) -> bool:
        return parse_bool(self.get_ceip_opt_in())

    def get_contexts(self) -> List[Context]:
        raw = self._load().get("contexts") or []
        if not isinstance(raw, list):
            raise ClientConfigError(f"invalid client config {self.path}: 'contexts' is not a list")
        try:
            return [Context.model_validate(entry) for entry in raw]
        except ValidationError as e:
            raise ClientConfigError(f"invalid context in {self.path}: {e}") from e

    def get_active_contexts(self) -> Dict[ContextType, Context]:
        """Active context per context type."""
        data = self._load()
        current = data.get("currentContext") or {}
        if not isinstance(current, dict):
            return {}
        by_name = {ctx.name: ctx for ctx in self.get_contexts()}
        active: Dict[ContextType, Context] = {}
        for ctx_type, name in current.items():
            try:
                key = ContextType(ctx_type)
            except ValueError:
                logger.debug(f"Ignoring unknown context type {ctx_type!r}")
                continue
            ctx = by_name.get(name)
            if ctx is not None and ctx.context_type is key:
                active[key] = ctx
        return active


def parse_bool(value: str) -> bool:
    """Lenient boolean parsing; anything unrecognised is False."""
    return str(value).strip().lower() in {"1", "t", "true", "yes", "y", "on"}
