# src/core/classification.py - v1
"""Member naming policy: bulk vs metadata, hidden names, transient markers.

Every stage asks this module instead of matching suffixes itself, so the
stream-or-extract decision is defined in one place.
"""

from __future__ import annotations

import posixpath
from typing import TYPE_CHECKING

from runarchive.core.models import HIDDEN_PREFIX, Classification

if TYPE_CHECKING:
    from runarchive.config.settings import Settings

APPLEDOUBLE_PREFIX = "._"


def is_hidden(name: str) -> bool:
    """True when the base name uses the leading-dot convention."""
    base = posixpath.basename(name)
    return base.startswith(HIDDEN_PREFIX) and base not in (".", "..")


def normalize_hidden_name(name: str) -> str:
    """Strip exactly one leading dot from the base name.

    >>> normalize_hidden_name(".m84011_s1.sts.xml")
    'm84011_s1.sts.xml'
    >>> normalize_hidden_name("..double")
    '.double'
    """
    head, base = posixpath.split(name)
    if is_hidden(base):
        base = base[len(HIDDEN_PREFIX):]
    return posixpath.join(head, base) if head else base


class MemberClassifier:
    """Classify member names as bulk (streamed) or metadata (extracted).

    Suffixes are matched longest-first so that a more specific suffix
    (``.bam.pbi``) is never shadowed by a shorter one (``.bam``).
    """

    def __init__(
        self,
        bulk_suffixes: dict[str, str],
        manifest_suffix: str = ".md5",
        transient_markers: list[str] | None = None,
    ) -> None:
        self._bulk = sorted(
            ((suffix, role) for role, suffix in bulk_suffixes.items() if suffix),
            key=lambda pair: len(pair[0]),
            reverse=True,
        )
        self._manifest_suffix = manifest_suffix
        self._transient = tuple(transient_markers or ())

    @classmethod
    def from_settings(cls, settings: Settings) -> MemberClassifier:
        return cls(
            bulk_suffixes=settings.bulk_suffixes,
            manifest_suffix=settings.manifest_suffix,
            transient_markers=settings.transient_markers_list,
        )

    def classify(self, name: str) -> Classification:
        base = normalize_hidden_name(posixpath.basename(name))
        for suffix, role in self._bulk:
            if base.endswith(suffix):
                return Classification(category="bulk", role=role)  # type: ignore[arg-type]
        return Classification(category="metadata")

    def is_manifest(self, name: str) -> bool:
        return posixpath.basename(name).endswith(self._manifest_suffix)

    def is_transient(self, name: str) -> bool:
        """Temporary/transfer markers and AppleDouble companions."""
        base = posixpath.basename(name)
        if base.startswith(APPLEDOUBLE_PREFIX):
            return True
        return any(base.endswith(marker) for marker in self._transient)
