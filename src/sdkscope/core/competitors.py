"""Flag native libraries whose names resemble known competitor products."""

import re

from sdkscope.models.analyze import CompetitorMatch, NativeLibraryRecord


def competitor_pattern(name: str) -> re.Pattern[str]:
    """Build a loose, case-insensitive pattern for a competitor name.

    Whitespace between words becomes a wildcard gap, so ``Acme Corp``
    matches ``libacme_corp_sdk.so`` and ``acmexcorp``.
    """
    words = [re.escape(word) for word in name.split()]
    return re.compile(".*?".join(words), re.IGNORECASE)


class CompetitorMatcher:
    """Match native libraries against a list of competitor names.

    Matches are a triage aid: false positives are expected, and the report
    labels them as potential.
    """

    def __init__(self, competitors: list[str]):
        self.patterns = [
            (name, competitor_pattern(name)) for name in competitors if name.split()
        ]

    def match_library(self, library: NativeLibraryRecord) -> str | None:
        """Return the first competitor matching the library name or path."""
        for name, pattern in self.patterns:
            if pattern.search(library.name) or pattern.search(library.path):
                return name
        return None

    def match(self, libraries: list[NativeLibraryRecord]) -> list[CompetitorMatch]:
        """Return one match per library that resembles a competitor."""
        matches = []
        for library in libraries:
            competitor = self.match_library(library)
            if competitor is not None:
                matches.append(
                    CompetitorMatch(
                        library_name=library.name,
                        library_path=library.path,
                        library_size=library.size,
                        competitor=competitor,
                    )
                )
        return matches
