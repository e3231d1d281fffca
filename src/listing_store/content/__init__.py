"""Content tree models, readers, similarity scoring, and the cached service."""

from listing_store.content.file_service import FileServiceError, YamlFileService
from listing_store.content.models import (
    AuthOptions,
    Category,
    ContentError,
    FetchOptions,
    Identifiable,
    ItemData,
    ItemDetail,
    ItemsResult,
    MailSettings,
    SiteConfig,
    Tag,
)
from listing_store.content.service import ContentService
from listing_store.content.similarity import rank_similar, similarity_score

__all__ = [
    "AuthOptions",
    "Category",
    "ContentError",
    "ContentService",
    "FetchOptions",
    "FileServiceError",
    "Identifiable",
    "ItemData",
    "ItemDetail",
    "ItemsResult",
    "MailSettings",
    "SiteConfig",
    "Tag",
    "YamlFileService",
    "rank_similar",
    "similarity_score",
]
