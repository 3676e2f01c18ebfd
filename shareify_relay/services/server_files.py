"""
Server File Service

Remote file operations on the user's Shareify server, issued as relay
commands:
- /finder             list a directory
- /get_file           read a text file
- /edit_file          overwrite a file
- /new_file           create an empty file
- /create_folder      create a directory
- /api/delete_file    delete a file
- /api/delete_folder  delete a directory
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from shareify_relay.errors.types import RelayError
from shareify_relay.services.command_client import CommandClient

logger = logging.getLogger(__name__)

FILE_CONTENT_STATUS = "File content retrieved"


@dataclass(frozen=True)
class ServerFileNode:
    """One entry of a remote directory listing"""
    name: str
    path: str
    is_folder: bool

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "path": self.path, "is_folder": self.is_folder}


def _parent_path(path: str) -> str:
    parent = path.rstrip("/").rsplit("/", 1)[0]
    return parent or "/"


def _with_trailing_slash(path: str) -> str:
    return path if path.endswith("/") else f"{path}/"


class ServerFileService:
    """
    File browser operations over a CommandClient

    Directory listings are cached per path. A failed listing falls back to
    the cached one so a flaky connection does not empty the tree.
    """

    def __init__(self, client: CommandClient):
        self.client = client
        self._listing_cache: Dict[str, List[ServerFileNode]] = {}

    async def list_directory(self, path: str) -> List[ServerFileNode]:
        """
        List a remote directory

        Folders are recognised by the absence of a dot in the name; the
        server does not report entry types.
        """
        try:
            response = await self.client.execute("/finder", "GET", {"path": path}, 3)
        except RelayError as e:
            logger.warning(f"Listing {path} failed ({e.error_type.value}); using cached listing")
            return self.cached_listing(path) or []

        if isinstance(response, dict):
            items = response.get("items")
            names = items if isinstance(items, list) else []
        else:
            names = response

        base = path.rstrip("/")
        children = [
            ServerFileNode(name=name, path=f"{base}/{name}", is_folder="." not in name)
            for name in names
            if isinstance(name, str)
        ]
        self._listing_cache[path] = children
        return children

    async def read_file(self, path: str) -> Optional[str]:
        """Return the text content of a remote file, or None if it is not a readable text file"""
        command = f"/get_file?file_path={path}"
        response = await self.client.execute(command, "GET", {}, 5)

        if not isinstance(response, dict):
            return None
        content = response.get("content")
        if (
            response.get("status") == FILE_CONTENT_STATUS
            and response.get("type") == "text"
            and isinstance(content, str)
        ):
            return content
        logger.info(f"Server did not return text content for {path}")
        return None

    async def write_file(self, path: str, content: str) -> Any:
        return await self.client.execute("/edit_file", "POST", {"path": path, "file_content": content}, 3)

    async def create_file(self, name: str, parent_path: str) -> Any:
        body = {"file_name": name, "path": _with_trailing_slash(parent_path), "file_content": ""}
        result = await self.client.execute("/new_file", "POST", body, 3)
        self.invalidate(parent_path)
        return result

    async def create_folder(self, name: str, parent_path: str) -> Any:
        body = {"folder_name": name, "path": _with_trailing_slash(parent_path)}
        result = await self.client.execute("/create_folder", "POST", body, 3)
        self.invalidate(parent_path)
        return result

    async def delete(self, node: ServerFileNode) -> Any:
        command = "/api/delete_folder" if node.is_folder else "/api/delete_file"
        result = await self.client.execute(command, "POST", {"path": node.path}, 3)
        self.invalidate(_parent_path(node.path))
        return result

    def cached_listing(self, path: str) -> Optional[List[ServerFileNode]]:
        cached = self._listing_cache.get(path)
        return list(cached) if cached is not None else None

    def invalidate(self, path: str) -> None:
        """Forget the cached listing of a directory (with or without trailing slash)"""
        self._listing_cache.pop(path, None)
        self._listing_cache.pop(path.rstrip("/") or "/", None)
        self._listing_cache.pop(_with_trailing_slash(path), None)
