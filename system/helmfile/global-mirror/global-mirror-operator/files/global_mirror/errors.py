"""Error taxonomy for reconciliation"""


class GlobalMirrorError(Exception):
    """Base class for every error the reconciler maps to a requeue"""


class TransientStoreError(GlobalMirrorError):
    """A list or create call against the API server failed"""


class CreateConflict(GlobalMirrorError):
    """The object we tried to create already exists"""

    def __init__(self, kind: str, namespace: str, name: str):
        super().__init__(f"{kind} {namespace}/{name} already exists")
        self.kind = kind
        self.namespace = namespace
        self.name = name


class StructuralError(GlobalMirrorError):
    """
    Data-integrity problem that retrying will not fix.
    Needs operator attention.
    """


class AmbiguousIdentityError(StructuralError):
    """More than one object matched an exact-name lookup"""

    def __init__(self, kind: str, name: str, count: int):
        super().__init__(f"{count} {kind} objects named {name!r}, expected at most one")
        self.kind = kind
        self.name = name
        self.count = count


class IdentityMismatchError(StructuralError):
    """Cluster token is not a suffix of the parent service name"""


class EndpointsNotReady(GlobalMirrorError):
    """The shard has no endpoints to mirror yet"""
