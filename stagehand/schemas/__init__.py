"""
stagehand.schemas - Schema definitions for Playbooks and Actors.

Playbook -> ActorSpec -> Partner

Lifecycle:
1. Playbook: created with one or more ActorSpecs and a derived namespace
2. Partner: dependency edge declared by an ActorSpec, resolved into a new
   ActorSpec appended to the Playbook
3. Actor: custom resource materialized from each ActorSpec
4. Status: the only visible representation of each object's lifecycle
"""

from .status import ActorState, PlaybookState, Status
from .partner import Partner, source_url
from .meta import ObjectMeta
from .actor import Actor, ActorSpec
from .playbook import Playbook, PlaybookSpec, SyncConfig, playbook_namespace
from .credential import Credential, CredentialKind

__all__ = [
    # Status
    "ActorState",
    "PlaybookState",
    "Status",
    # Partner
    "Partner",
    "source_url",
    # Metadata
    "ObjectMeta",
    # Actor
    "Actor",
    "ActorSpec",
    # Playbook
    "Playbook",
    "PlaybookSpec",
    "SyncConfig",
    "playbook_namespace",
    # Credential
    "Credential",
    "CredentialKind",
]
