"""
Relay services: credential persistence, session establishment, the command
client and the remote file operations built on it.
"""

from shareify_relay.services.credential_store import CredentialStore
from shareify_relay.services.session_manager import SessionManager, SessionState
from shareify_relay.services.command_client import CommandClient
from shareify_relay.services.server_files import ServerFileNode, ServerFileService

__all__ = [
    "CredentialStore",
    "SessionManager",
    "SessionState",
    "CommandClient",
    "ServerFileNode",
    "ServerFileService",
]
