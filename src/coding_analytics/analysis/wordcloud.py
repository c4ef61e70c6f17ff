"""Word-cloud term extraction from annotated text.

The selected text of every in-scope annotation is tokenized and counted.
Tokens are compared in accent-folded form (``"Été"`` and ``"ete"`` are the
same term), but each term is displayed in the surface form that occurred
most often.

Term sizes are logarithmic (``10 * ln(count)``) so that one dominant term
does not dwarf the others.
"""

from __future__ import annotations

import math
import re
import unicodedata
from collections import Counter, defaultdict
from typing import Any, Iterable

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from coding_analytics.analysis._filters import AnalysisFilter, fetch_coded_annotations

logger = structlog.get_logger(__name__)

# Anything that is not a word character or whitespace, plus the underscore
# that ``\w`` would otherwise keep.  Accented letters are word characters
# once composed; combining marks are not.
_PUNCTUATION = re.compile(r"[^\w\s]|_")

_FRENCH_STOPWORDS = """
le la les un une des du de et à au aux en avec sur pour par dans que qui quoi
où quand comment pourquoi est sont était étaient a as avoir être ce cette ces
son sa ses leur leurs on nous vous ils elles je tu il elle me te se y ne pas
plus moins très trop bien mal aussi encore donc car mais ou or ni mon ma mes
ton ta tes notre nos votre vos lui eux sans sous entre vers chez comme si
tout tous toute toutes autre autres même fait faire peut été ont avait
""".split()

_ENGLISH_STOPWORDS = """
the a an and or but nor so yet of to in on at by for with about from into
over under than then that this these those there here is are was were be
been being have has had do does did not no can could will would should may
might must shall it its they them their we our you your he him his she her
i me my what which who whom when where why how all any both each few more
most other some such only own same too very just also
""".split()


def fold(token: str) -> str:
    """Return *token* without diacritics (NFD, combining marks removed)."""
    decomposed = unicodedata.normalize("NFD", token)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


STOPWORDS: frozenset[str] = frozenset(
    fold(word) for word in (*_FRENCH_STOPWORDS, *_ENGLISH_STOPWORDS)
)


def tokenize(text: str) -> list[str]:
    """Lowercase *text*, replace punctuation with spaces and split on whitespace.

    The text is NFC-normalised first: in decomposed input the combining
    accents are not word characters and would split words apart.
    """
    text = unicodedata.normalize("NFC", text)
    return _PUNCTUATION.sub(" ", text.lower()).split()


class TermCounts:
    """Occurrences of each folded term and of each of its surface forms."""

    def __init__(self) -> None:
        self.counts: Counter[str] = Counter()
        self.surfaces: dict[str, Counter[str]] = defaultdict(Counter)

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    def display_form(self, key: str) -> str:
        """Most frequent surface form of *key*; alphabetical among equals."""
        return min(self.surfaces[key].items(), key=lambda item: (-item[1], item[0]))[0]


def count_terms(
    texts: Iterable[str],
    min_word_length: int = 3,
    exclude_common_words: bool = True,
) -> TermCounts:
    """Tokenize *texts* and count the kept tokens by folded form."""
    terms = TermCounts()
    for text in texts:
        for token in tokenize(text):
            if len(token) < min_word_length:
                continue
            key = fold(token)
            if exclude_common_words and key in STOPWORDS:
                continue
            terms.counts[key] += 1
            terms.surfaces[key][token] += 1
    return terms


def rank_terms(terms: TermCounts, max_words: int = 50) -> list[dict[str, Any]]:
    """Return the *max_words* most frequent terms as ``[{text, value, size}]``.

    Ordered by ``value`` descending, ties broken alphabetically on the folded
    term.
    """
    ranked = sorted(terms.counts.items(), key=lambda item: (-item[1], item[0]))
    return [
        {"text": terms.display_form(key), "value": value, "size": 10 * math.log(value)}
        for key, value in ranked[:max_words]
    ]


def build_word_cloud(
    texts: Iterable[str],
    max_words: int = 50,
    min_word_length: int = 3,
    exclude_common_words: bool = True,
) -> list[dict[str, Any]]:
    """Count the terms of *texts* and return the most frequent ones.

    Args:
        texts: The text fragments to analyse.
        max_words: Maximum number of terms returned.
        min_word_length: Tokens shorter than this are dropped.
        exclude_common_words: Drop French and English stopwords.

    Returns:
        See :func:`rank_terms`.
    """
    return rank_terms(count_terms(texts, min_word_length, exclude_common_words), max_words)


async def get_word_cloud(
    db: AsyncSession,
    flt: AnalysisFilter,
    max_words: int = 50,
    min_word_length: int = 3,
    exclude_common_words: bool = True,
) -> dict[str, Any]:
    """Word cloud of the selected text of every in-scope annotation.

    Args:
        db: Active async database session.
        flt: The analytics scope.
        max_words: Maximum number of terms returned.
        min_word_length: Tokens shorter than this are dropped.
        exclude_common_words: Drop French and English stopwords.

    Returns:
        ``{words: [{text, value, size}], total_annotations, total_words}``
        where ``total_words`` counts every kept token occurrence before the
        ``max_words`` cut.
    """
    rows = await fetch_coded_annotations(db, flt)
    terms = count_terms(
        (annotation.selected_text for annotation, _ in rows),
        min_word_length=min_word_length,
        exclude_common_words=exclude_common_words,
    )
    words = rank_terms(terms, max_words)

    logger.debug(
        "analysis.word_cloud",
        project_id=str(flt.project_id),
        annotations=len(rows),
        terms=len(words),
    )
    return {"words": words, "total_annotations": len(rows), "total_words": terms.total}
