import logging

import jwt
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status

from pokepals.auth import jwt_handler
from pokepals.auth.dependencies import get_current_user_id, get_optional_user_id
from pokepals.core import config
from pokepals.services.object_storage import (
    ObjectAccessDeniedError,
    ObjectNotFoundError,
    ObjectStorageService,
    get_object_storage,
    object_path_for,
)

router = APIRouter(tags=['objects'])
public_router = APIRouter(tags=['objects'])

logger = logging.getLogger(__name__)


@router.post('/upload')
def request_upload_url(
    user_id: str = Depends(get_current_user_id),
    storage: ObjectStorageService = Depends(get_object_storage),
):
    object_id = storage.new_object_id()
    token = jwt_handler.create_upload_token(object_id, user_id)
    return {
        'uploadURL': storage.upload_url(object_id, token),
        'objectPath': object_path_for(object_id),
    }


def authorize_upload(object_id: str, token: str) -> str:
    try:
        payload = jwt_handler.decode_token(token, jwt_handler.UPLOAD_TOKEN_TYPE)
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Invalid upload token') from exc

    if payload.get('oid') != object_id or not payload.get('sub'):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Upload token does not match object')
    return payload['sub']


async def read_limited_body(request: Request, limit: int) -> bytes:
    chunks = []
    received = 0
    async for chunk in request.stream():
        received += len(chunk)
        if received > limit:
            raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail='Upload too large')
        chunks.append(chunk)
    return b''.join(chunks)


@router.put('/upload/{object_id}')
async def upload_object(
    object_id: str,
    request: Request,
    token: str = Query(...),
    storage: ObjectStorageService = Depends(get_object_storage),
):
    owner_id = authorize_upload(object_id, token)

    content_type = (request.headers.get('content-type') or '').split(';')[0].strip().lower()
    if not content_type.startswith('image/'):
        raise HTTPException(status_code=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE, detail='Only images can be uploaded')

    declared_length = request.headers.get('content-length')
    if declared_length and declared_length.isdigit() and int(declared_length) > config.MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail='Upload too large')

    body = await read_limited_body(request, config.MAX_UPLOAD_BYTES)
    if not body:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Upload body is empty')

    try:
        storage.save(object_id, body, content_type, owner_id)
    except ObjectNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Object not found') from exc
    except ObjectAccessDeniedError as exc:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Access denied') from exc

    return {'objectPath': object_path_for(object_id)}


@public_router.get('/{object_id}')
def download_object(
    object_id: str,
    user_id: str | None = Depends(get_optional_user_id),
    storage: ObjectStorageService = Depends(get_object_storage),
):
    try:
        data, metadata = storage.read(object_id, user_id)
    except ObjectNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Object not found') from exc

    cache_control = 'public, max-age=3600' if metadata.visibility == 'public' else 'private, max-age=0'
    return Response(content=data, media_type=metadata.content_type, headers={'Cache-Control': cache_control})
