from __future__ import annotations

# Record field names shared by identity hashing and the snapshot format.
# Any change to IDENTITY_FIELDS or IDENTITY_SCHEME changes every identity.

IDENTITY_SCHEME = "v1"

ID = "id"
PATH = "path"
TITLE = "title"
ARTIST = "artist"
ALBUM = "album"
YEAR = "year"
COMMENT = "comment"
DURATION = "duration"
TRACK = "track"
TITLE_LOWER = "title_lower"
ARTIST_LOWER = "artist_lower"
ALBUM_LOWER = "album_lower"
STEM_LOWER = "stem_lower"

IDENTITY_FIELDS = (
    TITLE,
    ARTIST,
    ALBUM,
    YEAR,
    COMMENT,
    DURATION,
    TRACK,
    TITLE_LOWER,
    ARTIST_LOWER,
    ALBUM_LOWER,
    STEM_LOWER,
)

SNAPSHOT_FIELDS = (ID, PATH) + IDENTITY_FIELDS
