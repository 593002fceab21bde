"""Per-user object storage backed by a local directory.

Each object is stored as ``<root>/<object_id>`` with its ACL policy in a
sidecar ``<object_id>.json`` file.
"""
import json
import logging
import re
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from urllib.parse import urlparse

from pokepals.core import config
from pokepals.services.images import split_data_url

logger = logging.getLogger(__name__)

OBJECT_PATH_PREFIX = '/objects/'
UPLOAD_PATH_PREFIX = '/api/objects/upload/'
OBJECT_ID_PATTERN = re.compile(r'^[0-9a-f]{32}$')
VISIBILITIES = ('public', 'private')


class ObjectStorageError(Exception):
    pass


class ObjectNotFoundError(ObjectStorageError):
    pass


class ObjectAccessDeniedError(ObjectStorageError):
    pass


@dataclass
class ObjectMetadata:
    object_id: str
    owner: str
    visibility: str
    content_type: str
    size: int
    created_at: str

    def readable_by(self, user_id: str | None) -> bool:
        return self.visibility == 'public' or (user_id is not None and user_id == self.owner)


def object_path_for(object_id: str) -> str:
    return f'{OBJECT_PATH_PREFIX}{object_id}'


def parse_object_id(url_or_path: str) -> str:
    """Accept an object path or an upload URL and return the bare object id."""
    path = urlparse((url_or_path or '').strip()).path
    for prefix in (OBJECT_PATH_PREFIX, UPLOAD_PATH_PREFIX):
        if path.startswith(prefix):
            object_id = path[len(prefix):].strip('/')
            if OBJECT_ID_PATTERN.match(object_id):
                return object_id
    raise ObjectNotFoundError(f'Not an object reference: {url_or_path!r}')


class ObjectStorageService:
    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _data_file(self, object_id: str) -> Path:
        if not OBJECT_ID_PATTERN.match(object_id):
            raise ObjectNotFoundError(f'Invalid object id {object_id!r}')
        return self.root / object_id

    def _meta_file(self, object_id: str) -> Path:
        return self._data_file(object_id).with_suffix('.json')

    def new_object_id(self) -> str:
        return uuid.uuid4().hex

    def upload_url(self, object_id: str, token: str) -> str:
        return f'{config.PUBLIC_BASE_URL}{UPLOAD_PATH_PREFIX}{object_id}?token={token}'

    def save(
        self,
        object_id: str,
        data: bytes,
        content_type: str,
        owner_id: str,
        visibility: str | None = None,
    ) -> ObjectMetadata:
        """Write ``data``; without an explicit ``visibility`` an existing ACL is kept."""
        data_file = self._data_file(object_id)
        existing = self.get_metadata(object_id) if data_file.exists() else None
        if existing is not None and existing.owner != owner_id:
            raise ObjectAccessDeniedError('Object belongs to another user')

        if visibility is None:
            visibility = existing.visibility if existing is not None else 'private'
        if visibility not in VISIBILITIES:
            raise ValueError(f'Unknown visibility {visibility!r}')

        self.root.mkdir(parents=True, exist_ok=True)
        data_file.write_bytes(data)
        metadata = ObjectMetadata(
            object_id=object_id,
            owner=owner_id,
            visibility=visibility,
            content_type=content_type,
            size=len(data),
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        self._write_metadata(metadata)
        logger.info('Stored object %s (%d bytes) for %s', object_id, len(data), owner_id)
        return metadata

    def save_data_url(self, owner_id: str, data_url: str, visibility: str = 'private') -> str:
        mime_type, data = split_data_url(data_url)
        object_id = self.new_object_id()
        self.save(object_id, data, mime_type, owner_id, visibility)
        return object_path_for(object_id)

    def get_metadata(self, object_id: str) -> ObjectMetadata:
        meta_file = self._meta_file(object_id)
        if not meta_file.exists():
            raise ObjectNotFoundError(f'Object {object_id} not found')
        return ObjectMetadata(**json.loads(meta_file.read_text(encoding='utf-8')))

    def _write_metadata(self, metadata: ObjectMetadata) -> None:
        self._meta_file(metadata.object_id).write_text(json.dumps(asdict(metadata)), encoding='utf-8')

    def set_acl(self, url_or_path: str, owner_id: str, visibility: str = 'public') -> str:
        if visibility not in VISIBILITIES:
            raise ValueError(f'Unknown visibility {visibility!r}')

        object_id = parse_object_id(url_or_path)
        metadata = self.get_metadata(object_id)
        if metadata.owner != owner_id:
            raise ObjectAccessDeniedError('Object belongs to another user')

        metadata.visibility = visibility
        self._write_metadata(metadata)
        return object_path_for(object_id)

    def read(self, object_id: str, user_id: str | None) -> tuple[bytes, ObjectMetadata]:
        metadata = self.get_metadata(object_id)
        if not metadata.readable_by(user_id):
            # Private objects are indistinguishable from missing ones.
            raise ObjectNotFoundError(f'Object {object_id} not found')
        return self._data_file(object_id).read_bytes(), metadata

    def delete(self, url_or_path: str, owner_id: str) -> bool:
        try:
            object_id = parse_object_id(url_or_path)
            metadata = self.get_metadata(object_id)
        except ObjectNotFoundError:
            return False
        if metadata.owner != owner_id:
            raise ObjectAccessDeniedError('Object belongs to another user')
        self._data_file(object_id).unlink(missing_ok=True)
        self._meta_file(object_id).unlink(missing_ok=True)
        return True


_storage: ObjectStorageService | None = None


def get_object_storage() -> ObjectStorageService:
    global _storage
    if _storage is None:
        _storage = ObjectStorageService(config.OBJECT_STORAGE_DIR)
    return _storage
