"""Label keys and naming conventions shared with the multicluster mirror"""

MIRRORED_SERVICE_LABEL = 'mirror.linkerd.io/mirrored-service'
HEADLESS_PARENT_LABEL = 'mirror.linkerd.io/headless-mirror-svc-name'
CLUSTER_NAME_LABEL = 'mirror.linkerd.io/cluster-name'
GLOBAL_MIRROR_OF_LABEL = 'mirror.linkerd.io/global-mirror-of'

SERVICE_NAME_LABEL = 'kubernetes.io/service-name'
MANAGED_BY_LABEL = 'kubernetes.io/managed-by'
MANAGED_BY = 'global-mirror-controller'

GLOBAL_SUFFIX = '-global'
DEFAULT_ADDRESS_TYPE = 'IPv4'
HEADLESS_CLUSTER_IP = 'None'
