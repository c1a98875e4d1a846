"""
Endpoint fingerprints for plugin commands.

The endpoint a plugin talks to is identified by hashing fields of the active
login context, never by storing them. Which context applies depends on the
plugin's target; candidates are tried in order and the first active one wins.
The digest is prefixed with the context type, e.g. ``kubernetes:3f2a...``.
"""

from __future__ import annotations

import hashlib
import json
from typing import Callable, Dict, List, Mapping, Tuple

from tanzucli.clientconfig import Context, ContextType
from tanzucli.plugins.info import Target

# additionalMetadata keys of a tanzu context
TANZU_ORG_ID_KEY = "tanzuOrgID"
TANZU_PROJECT_NAME_KEY = "tanzuProjectName"
TANZU_SPACE_NAME_KEY = "tanzuSpaceName"
TANZU_CLUSTER_GROUP_NAME_KEY = "tanzuClusterGroupName"


def hash_string(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def compute_endpoint_sha_for_k8s_context(ctx: Context) -> str:
    """SHA256 of the complete serialized context."""
    serialized = json.dumps(ctx.model_dump(mode="json", by_alias=True), sort_keys=True, separators=(",", ":"))
    return hash_string(serialized)


def compute_endpoint_sha_for_tanzu_context(ctx: Context) -> str:
    """SHA256 of the endpoint plus org/project/space/cluster-group identifiers."""
    metadata = ctx.additional_metadata
    parts = [ctx.endpoint]
    for key in (TANZU_ORG_ID_KEY, TANZU_PROJECT_NAME_KEY, TANZU_SPACE_NAME_KEY, TANZU_CLUSTER_GROUP_NAME_KEY):
        value = metadata.get(key)
        parts.append(str(value) if value is not None else "")
    return hash_string("".join(parts))


def compute_endpoint_sha_for_tmc_context(ctx: Context) -> str:
    """SHA256 of the endpoint plus the (long lived) refresh token."""
    refresh_token = ctx.global_opts.auth.refresh_token if ctx.global_opts else ""
    return hash_string(ctx.endpoint + refresh_token)


EndpointHasher = Callable[[Context], str]

ENDPOINT_HASH_CANDIDATES: Dict[Target, List[Tuple[ContextType, EndpointHasher]]] = {
    Target.KUBERNETES: [
        (ContextType.KUBERNETES, compute_endpoint_sha_for_k8s_context),
        (ContextType.TANZU, compute_endpoint_sha_for_tanzu_context),
    ],
    Target.MISSION_CONTROL: [
        (ContextType.MISSION_CONTROL, compute_endpoint_sha_for_tmc_context),
    ],
    Target.GLOBAL: [
        (ContextType.TANZU, compute_endpoint_sha_for_tanzu_context),
        (ContextType.KUBERNETES, compute_endpoint_sha_for_k8s_context),
    ],
}


def compute_endpoint_sha(active_contexts: Mapping[ContextType, Context], target: Target) -> str:
    """Prefixed digest for the first active candidate context; "" if none."""
    for ctx_type, hasher in ENDPOINT_HASH_CANDIDATES.get(target, []):
        ctx = active_contexts.get(ctx_type)
        if ctx is not None:
            return f"{ctx_type.value}:{hasher(ctx)}"
    return ""
