"""Constants used across the operator."""

# Custom resource group/version served by the operator
API_GROUP = "paralus.dev"
API_VERSION = "v1alpha1"

FINALIZER = "paralus.dev/paralus-operator"

# Label put on Kubernetes objects the operator writes (bootstrap ConfigMaps,
# kubeconfig Secrets)
MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"
MANAGED_BY_VALUE = "paralus-operator"

# Roles that may be granted without naming a project
NON_PROJECT_ROLES = ("ADMIN", "ADMIN_READ_ONLY")

# Default page size for the users query when none is declared
DEFAULT_USERS_LIMIT = 10

# Page size used when listing every cluster of a project
CLUSTER_LIST_PAGE_SIZE = 10000
