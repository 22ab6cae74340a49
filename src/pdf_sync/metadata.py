"""Interface to the external file metadata service.

The handlers only depend on ``FileMetadataStore``. Implementations live with
the managed database they wrap.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Optional, Protocol, Sequence

SYNC_PENDING = "pending"
SYNC_UPDATING = "updating"
SYNC_SYNCED = "synced"

SORT_COLUMNS = ("uploaded_at", "original_filename", "file_size", "sync_status")
DEFAULT_SORT_COLUMN = "uploaded_at"


@dataclass
class FileRecord:
    """One row of ``user_pdfs``."""

    user_id: str
    s3_key: str
    filename: str
    original_filename: str
    file_size: int
    content_type: str = "application/pdf"
    sync_status: str = SYNC_PENDING
    metadata: dict = field(default_factory=dict)
    id: Optional[str] = None
    uploaded_at: Optional[str] = None
    updated_at: Optional[str] = None
    device_count: Optional[int] = None
    last_synced_at: Optional[str] = None
    sync_error_message: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


class FileMetadataStore(Protocol):
    """Operations the handlers need from the metadata service.

    Every lookup is scoped to ``user_id`` so a user can only reach their
    own rows. Failures raise ``MetadataStoreError``; inserting a second row
    for an existing object key raises ``DuplicateFileError``.
    """

    def get_file(self, user_id: str, file_id: str) -> Optional[FileRecord]:
        ...

    def list_files(
        self,
        user_id: str,
        *,
        search: str = "",
        sort_by: str = DEFAULT_SORT_COLUMN,
        ascending: bool = False,
        offset: int = 0,
        limit: int = 50,
    ) -> Sequence[FileRecord]:
        ...

    def count_files(self, user_id: str) -> int:
        ...

    def insert_file(self, record: FileRecord) -> FileRecord:
        ...

    def update_file(self, user_id: str, file_id: str, **fields: Any) -> None:
        ...

    def begin_update(self, user_id: str, file_id: str) -> bool:
        """Set ``sync_status`` to ``updating`` unless it already is.

        Must be a single conditional write (compare-and-set) on the service
        side. Returns False when another update already holds the row.
        """
        ...

    def delete_file(self, user_id: str, file_id: str) -> None:
        ...
