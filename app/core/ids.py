import uuid

# organization, property, unit, listing, lease, application, maintenance request, audit entry
ORGANIZATION = "org"
PROPERTY = "prp"
UNIT = "unt"
LISTING = "lst"
LEASE = "lse"
APPLICATION = "app"
MAINTENANCE_REQUEST = "mnt"
AUDIT_ENTRY = "aud"
BULK_OPERATION = "blk"


def gen_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


def id_factory(prefix: str):
    return lambda: gen_id(prefix)
