"""
The clusters' endpoints of the Atlas Admin API (v1.0).

All functions accept and return raw payloads (see `matlas.structs.bodies`);
the translation to/from the provider's specs is not done here.
All errors escalate as is (see `matlas.clients.errors`).
"""
import urllib.parse
from typing import Optional, cast

from matlas.clients import api, auth
from matlas.helpers import typedefs
from matlas.structs import bodies, configuration

API_ROOT = '/api/atlas/v1.0'


def get_url(project_id: str, name: Optional[str] = None) -> str:
    parts = [API_ROOT, 'groups', urllib.parse.quote(project_id, safe=''), 'clusters']
    if name is not None:
        parts.append(urllib.parse.quote(name, safe=''))
    return '/'.join(parts)


async def create_cluster(
        *,
        project_id: str,
        body: bodies.RawCluster,
        context: auth.APIContext,
        settings: configuration.AtlasSettings,
        logger: typedefs.Logger,
) -> bodies.RawCluster:
    """
    Request the cluster creation. Atlas provisions the cluster asynchronously.
    """
    created_body = await api.post(
        url=get_url(project_id),
        payload=body,
        context=context,
        settings=settings,
        logger=logger,
    )
    return cast(bodies.RawCluster, created_body or {})


async def read_cluster(
        *,
        project_id: str,
        name: str,
        context: auth.APIContext,
        settings: configuration.AtlasSettings,
        logger: typedefs.Logger,
) -> bodies.RawCluster:
    """
    Read the cluster's current state. Raises `APINotFoundError` if absent.
    """
    body = await api.get(
        url=get_url(project_id, name),
        context=context,
        settings=settings,
        logger=logger,
    )
    return cast(bodies.RawCluster, body or {})


async def update_cluster(
        *,
        project_id: str,
        name: str,
        body: bodies.RawCluster,
        context: auth.APIContext,
        settings: configuration.AtlasSettings,
        logger: typedefs.Logger,
) -> bodies.RawCluster:
    """
    Request the changes of the cluster. Only the fields present are changed.
    """
    patched_body = await api.patch(
        url=get_url(project_id, name),
        payload=body,
        context=context,
        settings=settings,
        logger=logger,
    )
    return cast(bodies.RawCluster, patched_body or {})


async def delete_cluster(
        *,
        project_id: str,
        name: str,
        context: auth.APIContext,
        settings: configuration.AtlasSettings,
        logger: typedefs.Logger,
) -> None:
    """
    Request the cluster termination. Atlas deletes the cluster asynchronously.
    """
    await api.delete(
        url=get_url(project_id, name),
        context=context,
        settings=settings,
        logger=logger,
    )
