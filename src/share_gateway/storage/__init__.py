"""S3-compatible storage access: SigV4 signing, listing, presigned downloads."""

from .client import StorageClient, StorageRequestError
from .listing import ListedObject, Listing, ListingParseError, parse_listing
from .signer import PresignedRequest, SigV4Signer, canonical_query, canonical_uri, uri_encode

__all__ = [
    'ListedObject',
    'Listing',
    'ListingParseError',
    'PresignedRequest',
    'SigV4Signer',
    'StorageClient',
    'StorageRequestError',
    'canonical_query',
    'canonical_uri',
    'parse_listing',
    'uri_encode',
]
