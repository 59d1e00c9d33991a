# surveyor/client.py
import abc
import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from .config import Config
from .errors import ConfigError, RemoteError, RemoteListingFailed, RemoteReadFailed
from .models import Entity, FolderNode, NodeKind, ObjectProperties, Property


class RemoteTreeClient(abc.ABC):
    """
    The I/O boundary to the remote file repository.

    Implementations only map requests to responses. Listings and reads are
    side-effect free, so an implementation may retry them; the core never does.
    """

    @abc.abstractmethod
    def list_children(self, folder_id: str) -> List[FolderNode]:
        """Lists the direct children of a folder. Raises RemoteListingFailed."""

    @abc.abstractmethod
    def list_entities(self, file_id: str) -> List[Entity]:
        """Lists the addressable objects inside a file. Raises RemoteListingFailed."""

    @abc.abstractmethod
    def fetch_attributes(self, file_id: str, entity_ids: Sequence[str]) -> List[ObjectProperties]:
        """Reads the properties of the given entities of a file. Raises RemoteReadFailed."""

    def project_root_folders(self, project_id: str) -> List[str]:
        """
        Returns the ids of the folders a project search starts from. Clients
        without a project API need explicit root folder ids.
        """
        raise ConfigError(f"{type(self).__name__} cannot resolve project '{project_id}'; pass root folder ids instead")

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


def parse_folder_item(item: Dict[str, Any]) -> FolderNode:
    """Maps one entry of a folder listing payload to a FolderNode."""
    path = [p.get("name", "") for p in item.get("path") or []]
    return FolderNode(
        id=str(item["id"]),
        name=item.get("name", ""),
        kind=NodeKind(str(item.get("type", "FILE")).upper()),
        parent_id=item.get("parentId"),
        size=item.get("size"),
        path=path,
    )


def parse_object_properties(entity_id: str, payload: Optional[Dict[str, Any]]) -> ObjectProperties:
    """
    Maps the property payload of one entity to ObjectProperties.

    Properties may arrive either as a {name: value} mapping or as a list of
    {name, value} entries; list order is kept so later duplicates win.
    """
    payload = payload or {}
    raw = payload.get("properties") or {}
    if isinstance(raw, dict):
        properties = [Property(name=k, value=v) for k, v in raw.items()]
    else:
        properties = [Property(name=p["name"], value=p.get("value", "")) for p in raw]
    return ObjectProperties(
        id=entity_id,
        name=payload.get("name") or f"Object_{entity_id}",
        type=payload.get("type") or "Unknown",
        properties=properties,
    )


class ConnectClient(RemoteTreeClient):
    """A synchronous HTTP client for a Trimble Connect style project API."""

    def __init__(
        self,
        access_token: str,
        api_url: str,
        model_api_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        """
        Args:
            access_token: Bearer token sent with every request.
            api_url: Base URL of the project and folder API.
            model_api_url: Base URL of the model (entity and property) API.
            timeout: Per-request timeout in seconds.
            transport: An optional httpx transport, mainly for tests.
        """
        if not access_token:
            raise ConfigError("No access token available")
        self.api_url = api_url.rstrip("/")
        self.model_api_url = model_api_url.rstrip("/")
        self._client = httpx.Client(
            headers={
                "Authorization": f"Bearer {access_token}",
                "Content-Type": "application/json",
            },
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    @classmethod
    def from_config(cls, cfg: Config, access_token: str, transport: Optional[httpx.BaseTransport] = None) -> "ConnectClient":
        return cls(access_token, cfg.api_url, cfg.model_api_url, timeout=cfg.timeout, transport=transport)

    def close(self):
        self._client.close()

    def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            response = self._client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise RemoteError(f"API request failed: {status} {e.response.reason_phrase}", e) from e
        except (httpx.HTTPError, ValueError) as e:
            raise RemoteError(f"API request failed: {e}", e) from e

    def get_project(self, project_id: str) -> Dict[str, Any]:
        return self._request("GET", f"{self.api_url}/projects/{project_id}")

    def project_root_folders(self, project_id: str) -> List[str]:
        project = self.get_project(project_id)
        root_id = project.get("rootId")
        if not root_id:
            raise RemoteError(f"Project '{project_id}' has no root folder")
        return [root_id]

    def list_children(self, folder_id: str) -> List[FolderNode]:
        try:
            items = self._request("GET", f"{self.api_url}/folders/{folder_id}/items")
            children = []
            for item in items:
                if str(item.get("type", "FILE")).upper() not in NodeKind.__members__:
                    logging.warning(f"Skipping item '{item.get('id')}' of unknown type '{item.get('type')}' in folder '{folder_id}'")
                    continue
                children.append(parse_folder_item(item))
            return children
        except (RemoteError, KeyError, TypeError, ValueError, AttributeError) as e:
            raise RemoteListingFailed(folder_id, e) from e

    def list_entities(self, file_id: str) -> List[Entity]:
        try:
            response = self._request("GET", f"{self.model_api_url}/models/{file_id}/entities")
            return [Entity(id=str(e["id"]), type=e.get("type") or "Unknown") for e in response.get("items") or []]
        except (RemoteError, KeyError, TypeError, AttributeError) as e:
            raise RemoteListingFailed(file_id, e) from e

    def fetch_attributes(self, file_id: str, entity_ids: Sequence[str]) -> List[ObjectProperties]:
        ids = list(entity_ids)
        try:
            payloads = self._request("POST", f"{self.model_api_url}/models/{file_id}/properties", json={"ids": ids})
            # The response is aligned with the requested ids; missing entries get defaults.
            return [
                parse_object_properties(entity_id, payloads[i] if i < len(payloads) else None)
                for i, entity_id in enumerate(ids)
            ]
        except (RemoteError, KeyError, TypeError, AttributeError) as e:
            raise RemoteReadFailed(file_id, e) from e
