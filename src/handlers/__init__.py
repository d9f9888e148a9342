"""Kopf handlers for Paralus resources.

This package contains handlers for:
- ParalusCluster
- ParalusGroup
- ParalusProject
- ParalusUserQuery
- ParalusKubeconfig

All handlers follow the same patterns:
- Create/update/delete via Kopf decorators
- Status tracking via patch.status
- Periodic read via kopf.timer to detect drift
"""

# Import handlers to register them with Kopf
from handlers.cluster import *  # noqa: F401, F403
from handlers.group import *  # noqa: F401, F403
from handlers.project import *  # noqa: F401, F403
from handlers.user_query import *  # noqa: F401, F403
from handlers.kubeconfig import *  # noqa: F401, F403
