"""Graph client construction over the resolved credential."""

from urllib.parse import urlparse

from kiota_authentication_azure.azure_identity_authentication_provider import (
    AzureIdentityAuthenticationProvider,
)
from msgraph import GraphRequestAdapter, GraphServiceClient
from msgraph_core import GraphClientFactory

from m365_mcp.auth.credentials import resolve_credential
from m365_mcp.auth.identity import IdentityClient
from m365_mcp.cloud import get_graph_endpoint, get_graph_host, get_graph_scopes
from m365_mcp.config import Settings
from m365_mcp.utils.logger import get_logger

logger = get_logger("m365_mcp.auth.client_factory")


def create_graph_client(settings: Settings, identity: IdentityClient | None = None) -> GraphServiceClient:
    """Build a GraphServiceClient for the configured cloud.

    Raises AuthConfigurationError right away when no credential strategy applies.
    Token acquisition itself happens lazily, on the first request.
    """
    credential = resolve_credential(settings, identity=identity)
    graph_host = get_graph_host(settings.cloud_type)
    endpoint = get_graph_endpoint(settings.cloud_type)

    auth_provider = AzureIdentityAuthenticationProvider(
        credential,
        scopes=get_graph_scopes(settings.cloud_type),
        allowed_hosts=[urlparse(graph_host).netloc],
    )
    http_client = GraphClientFactory.create_with_default_middleware(host=graph_host)
    request_adapter = GraphRequestAdapter(auth_provider, client=http_client)
    request_adapter.base_url = endpoint

    logger.info("graph_client.created", cloud=settings.cloud_type.value, endpoint=endpoint)
    return GraphServiceClient(request_adapter=request_adapter)
