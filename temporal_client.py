"""Temporal client factory.

Creates connections to a Temporal server using settings from environment.
A local development server needs no credentials, Temporal Cloud needs an
API key and TLS.
"""

import os
from typing import Optional
import ssl
from pathlib import Path

# Load .env file if it exists
from dotenv import load_dotenv
env_path = Path(__file__).resolve().parent / ".env"
if env_path.exists():
    load_dotenv(env_path)

from temporalio.client import Client

DEFAULT_ENDPOINT = "localhost:7233"


def build_tls_config(api_key: Optional[str], cert_path: Optional[str]) -> Optional[ssl.SSLContext]:
    """TLS context for the connection, None for a plain local connection."""
    if cert_path:
        tls_config = ssl.create_default_context()
        tls_config.load_cert_chain(cert_path)
        return tls_config
    if api_key:
        # Temporal Cloud: system certificates
        return ssl.create_default_context()
    return None


async def get_temporal_client() -> Client:
    """Create and return a Temporal client.

    Reads configuration from environment variables:
    - TEMPORAL_ENDPOINT: Server endpoint (default "localhost:7233")
    - TEMPORAL_NAMESPACE: Namespace (default "default")
    - TEMPORAL_API_KEY: API key for Temporal Cloud (optional)
    - TEMPORAL_CERT_PATH: Path to client certificate (optional, for mTLS)

    Returns:
        Connected Temporal client
    """
    endpoint = os.getenv("TEMPORAL_ENDPOINT", DEFAULT_ENDPOINT)
    namespace = os.getenv("TEMPORAL_NAMESPACE", "default")
    api_key = os.getenv("TEMPORAL_API_KEY")
    cert_path = os.getenv("TEMPORAL_CERT_PATH")

    tls_config = build_tls_config(api_key, cert_path)

    if tls_config is None:
        return await Client.connect(endpoint, namespace=namespace)

    # For Temporal Cloud, pass the API key as an authorization header
    return await Client.connect(
        target_host=endpoint,
        namespace=namespace,
        tls=tls_config,
        api_key=api_key,
    )
