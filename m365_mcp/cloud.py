"""Microsoft cloud environments: login authority, Graph endpoint and default scopes."""

from enum import Enum


class CloudType(str, Enum):
    """Microsoft 365 deployment the server talks to."""

    GLOBAL = "global"
    CHINA = "china"


_AUTHORITY_HOSTS = {
    CloudType.GLOBAL: "https://login.microsoftonline.com",
    CloudType.CHINA: "https://login.chinacloudapi.cn",
}

_GRAPH_HOSTS = {
    CloudType.GLOBAL: "https://graph.microsoft.com",
    CloudType.CHINA: "https://microsoftgraph.chinacloudapi.cn",
}


def parse_cloud_type(value: str) -> CloudType:
    """Parse a cloud name (case-insensitive). Raises ValueError listing valid names."""
    try:
        return CloudType(value.strip().lower())
    except ValueError:
        valid = ", ".join(c.value for c in CloudType)
        raise ValueError(f"Unknown cloud type {value!r}; expected one of: {valid}") from None


def get_authority(cloud_type: CloudType, tenant_id: str) -> str:
    return f"{_AUTHORITY_HOSTS[cloud_type]}/{tenant_id}"


def get_graph_host(cloud_type: CloudType) -> str:
    return _GRAPH_HOSTS[cloud_type]


def get_graph_endpoint(cloud_type: CloudType) -> str:
    return f"{_GRAPH_HOSTS[cloud_type]}/v1.0"


def get_graph_scopes(cloud_type: CloudType) -> list[str]:
    """The `.default` scope for the cloud's Graph resource (a fresh list per call)."""
    return [f"{_GRAPH_HOSTS[cloud_type]}/.default"]
