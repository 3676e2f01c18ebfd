"""
Shareify Relay - end-to-end encrypted command relay client

Executes commands on a user's Shareify server through the bridge/command
relay, sealing each request with an AES-GCM session key that the bridge
delivers wrapped with this client's RSA key.
"""

from shareify_relay.client_factory import create_command_client
from shareify_relay.config import RelaySettings, get_settings
from shareify_relay.services.command_client import CommandClient

__version__ = "1.0.0"

__all__ = ["create_command_client", "RelaySettings", "get_settings", "CommandClient", "__version__"]
