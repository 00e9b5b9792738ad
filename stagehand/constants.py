"""
Resource identifiers shared by the operator, the synchronizer and the tests.

The watch handlers are registered at import time, so the API group and plurals
live here as plain constants rather than in the loaded configuration.
"""

API_GROUP = "stagehand.dev"
API_VERSION = "v1"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

KIND_PLAYBOOK = "Playbook"
KIND_ACTOR = "Actor"
PLURAL_PLAYBOOKS = "playbooks"
PLURAL_ACTORS = "actors"

PLAYBOOK_FINALIZER = "playbooks.stagehand.dev/finalizer"
ACTOR_FINALIZER = "actors.stagehand.dev/finalizer"

# kpack image resources consumed by the image builder
KPACK_GROUP = "kpack.io"
KPACK_VERSION = "v1alpha2"
PLURAL_IMAGES = "images"

# Labels stamped on every sub-resource we create
LABEL_MANAGED_BY = "app.kubernetes.io/managed-by"
LABEL_PLAYBOOK = "stagehand.dev/playbook"
LABEL_ACTOR = "stagehand.dev/actor"
ANNOTATION_REVISION = "stagehand.dev/revision"

MANAGER_NAME = "stagehand"

# Actor manifest file looked up in partner repositories
MANIFEST_FILENAME = ".stagehand.yaml"
