from utils import env
from utils.env import EnvVarSpec

from clients.couchbase import CouchbaseConfig

COUCHBASE_USERNAME = EnvVarSpec(id="COUCHBASE_USERNAME")
COUCHBASE_PASSWORD = EnvVarSpec(id="COUCHBASE_PASSWORD", is_secret=True)
COUCHBASE_BUCKET = EnvVarSpec(id="COUCHBASE_BUCKET")
COUCHBASE_HOST = EnvVarSpec(id="COUCHBASE_HOST")
COUCHBASE_PROTOCOL = EnvVarSpec(
    id="COUCHBASE_PROTOCOL",
    default="couchbase",
    parse=lambda x: x.strip().lower(),
)
COUCHBASE_SCOPE = EnvVarSpec(id="COUCHBASE_SCOPE", default="_default")

VALIDATED_ENV_VARS = [
    COUCHBASE_USERNAME,
    COUCHBASE_PASSWORD,
    COUCHBASE_BUCKET,
    COUCHBASE_HOST,
    COUCHBASE_PROTOCOL,
    COUCHBASE_SCOPE,
]


def get_couchbase_conf() -> CouchbaseConfig:
    return CouchbaseConfig(
        username=env.parse(COUCHBASE_USERNAME),
        password=env.parse(COUCHBASE_PASSWORD),
        bucket=env.parse(COUCHBASE_BUCKET),
        host=env.parse(COUCHBASE_HOST),
        protocol=env.parse(COUCHBASE_PROTOCOL),
        scope=env.parse(COUCHBASE_SCOPE),
    )
