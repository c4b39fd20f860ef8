"""
Spec registry: enumerate, look up and persist specs.

Specs live directly under the specs directory plus anywhere below its agent
subfolder. The file stem is the slug.
"""

import functools
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from spectrack.core.errors import (
    AmbiguousMatchError,
    NotFoundError,
    SpecIOError,
    ValidationError,
)
from spectrack.core.model import (
    Check,
    CheckStatus,
    Encoding,
    FileReference,
    SPEC_EXTENSIONS,
    Spec,
    normalize_path,
    slugify,
)
from spectrack.core.parser import parse_spec, parse_spec_file, serialize_spec
from spectrack.core.runlog import RunLog
from spectrack.core.storage import atomic_write_text
from spectrack.core.validation import ValidationResult, validate_spec

logger = logging.getLogger(__name__)

DEFAULT_FUZZY_THRESHOLD = 0.6
DEFAULT_TIE_TOLERANCE = 0.05
MAX_NEAR_MATCHES = 5

ORIGIN_ROOT = "root"
ORIGIN_AGENT = "agent"


# Matching helpers


def normalize_slug(value: str) -> str:
    """Fold case, whitespace and punctuation; drop a spec file extension."""
    value = value.strip()
    for ext in SPEC_EXTENSIONS:
        if value.lower().endswith(ext):
            value = value[: -len(ext)]
            break
    return slugify(value)


def levenshtein(a: str, b: str) -> int:
    """Classic edit distance (insert, delete, substitute all cost 1)."""
    if a == b:
        return 0
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(
                min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + (ca != cb),
                )
            )
        previous = current
    return previous[-1]


def slug_similarity(query: str, slug: str) -> float:
    """
    Confidence that ``query`` names ``slug``.

    Compared against the whole slug and against each leading run of its
    hyphen-separated words, so ``chekmate`` scores the same against
    ``checkmate-core`` and ``checkmate-ui``.
    """
    parts = slug.split("-")
    variants = ["-".join(parts[:k]) for k in range(1, len(parts) + 1)]
    best = 0.0
    for variant in variants:
        longest = max(len(query), len(variant)) or 1
        best = max(best, 1.0 - levenshtein(query, variant) / longest)
    return best


@functools.lru_cache(maxsize=512)
def glob_to_regex(pattern: str) -> "re.Pattern[str]":
    """Translate a path glob to a regex. ``**`` spans directories, ``*`` does not."""
    out = []
    i = 0
    n = len(pattern)
    while i < n:
        c = pattern[i]
        if c == "*":
            if pattern.startswith("**", i):
                i += 2
                if pattern.startswith("/", i):
                    i += 1
                    out.append("(?:.*/)?")
                else:
                    out.append(".*")
                continue
            out.append("[^/]*")
        elif c == "?":
            out.append("[^/]")
        elif c == "[":
            end = pattern.find("]", i + 1)
            if end == -1:
                out.append(re.escape(c))
            else:
                body = pattern[i + 1:end]
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append("[" + body.replace("\\", "\\\\") + "]")
                i = end + 1
                continue
        else:
            out.append(re.escape(c))
        i += 1
    return re.compile("^" + "".join(out) + "$")


def reference_matches(reference: FileReference, path: str) -> bool:
    """True when ``path`` is the referenced file or matches the reference glob."""
    target = normalize_path(path)
    if reference.path == target:
        return True
    if reference.is_glob:
        return glob_to_regex(reference.path).match(target) is not None
    return False


# Results


@dataclass
class SlugMatch:
    slug: str
    confidence: float
    exact: bool = False
    spec: Optional[Spec] = field(default=None, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slug": self.slug,
            "confidence": round(self.confidence, 3),
            "exact": self.exact,
        }


@dataclass
class SpecListing:
    specs: List[Spec] = field(default_factory=list)
    errors: List[Dict[str, str]] = field(default_factory=list)


# Registry


class SpecRegistry:
    """
    Enumerates and indexes specs by slug and by referenced path.

    Args:
        specs_dir: Root directory holding spec files
        agents_subdir: Name of the recursive agent subfolder
        run_log: Run log used to validate the reset policy
        fuzzy_threshold: Minimum confidence for a fuzzy slug match
        tie_tolerance: Confidence gap under which fuzzy candidates tie
    """

    def __init__(
        self,
        specs_dir: Path,
        agents_subdir: str = "agents",
        run_log: Optional[RunLog] = None,
        fuzzy_threshold: float = DEFAULT_FUZZY_THRESHOLD,
        tie_tolerance: float = DEFAULT_TIE_TOLERANCE,
    ):
        self.specs_dir = Path(specs_dir)
        self.agents_dir = self.specs_dir / agents_subdir
        self.run_log = run_log
        self.fuzzy_threshold = fuzzy_threshold
        self.tie_tolerance = tie_tolerance

    # Enumeration

    def spec_files(self) -> List[Tuple[Path, str]]:
        """Spec file paths with their origin, in a stable order."""
        found: List[Tuple[Path, str]] = []
        if self.specs_dir.is_dir():
            for path in sorted(self.specs_dir.iterdir()):
                if path.is_file() and path.suffix.lower() in SPEC_EXTENSIONS:
                    found.append((path, ORIGIN_ROOT))
        if self.agents_dir.is_dir():
            for path in sorted(self.agents_dir.rglob("*")):
                if path.is_file() and path.suffix.lower() in SPEC_EXTENSIONS:
                    found.append((path, ORIGIN_AGENT))
        return found

    def scan(self) -> SpecListing:
        """Parse every spec; unreadable or malformed files are reported, not raised."""
        listing = SpecListing()
        for path, origin in self.spec_files():
            try:
                listing.specs.append(parse_spec_file(path, origin=origin))
            except (OSError, UnicodeDecodeError, ValidationError) as e:
                logger.warning(
                    "Skipping spec that could not be loaded",
                    extra={"path": str(path), "error": str(e)},
                )
                listing.errors.append({"path": str(path), "error": str(e)})
        return listing

    def list_specs(self) -> List[Spec]:
        """All loadable specs under the specs root and the agent subfolder."""
        return self.scan().specs

    def slugs(self) -> List[str]:
        return sorted({normalize_slug(path.stem) for path, _ in self.spec_files()})

    # Lookup

    def _paths_for_slug(self, slug: str) -> List[Tuple[Path, str]]:
        return [(p, o) for p, o in self.spec_files() if normalize_slug(p.stem) == slug]

    def _load(self, path: Path, origin: str) -> Spec:
        try:
            return parse_spec_file(path, origin=origin)
        except (OSError, UnicodeDecodeError) as e:
            raise SpecIOError(f"Cannot read spec {path}: {e}", path=str(path)) from e

    def get(self, slug: str) -> Spec:
        """Exact lookup after normalization. No fuzzy fallback."""
        normalized = normalize_slug(slug)
        matches = self._paths_for_slug(normalized)
        if not matches:
            raise NotFoundError(f"Spec not found: {slug}", details={"slug": slug})
        if len(matches) > 1:
            raise AmbiguousMatchError(
                f"Slug '{slug}' names more than one spec file",
                [str(p) for p, _ in matches],
            )
        path, origin = matches[0]
        return self._load(path, origin)

    def rank(self, query: str) -> List[SlugMatch]:
        normalized = normalize_slug(query)
        ranked = [
            SlugMatch(slug=slug, confidence=slug_similarity(normalized, slug))
            for slug in self.slugs()
        ]
        ranked.sort(key=lambda m: (-m.confidence, m.slug))
        return ranked

    def find_by_slug(self, slug: str) -> SlugMatch:
        """
        Resolve a slug, falling back to a fuzzy match with reported confidence.

        Raises:
            NotFoundError: No candidate reaches the fuzzy threshold
            AmbiguousMatchError: Several candidates are equally close
        """
        normalized = normalize_slug(slug)
        if self._paths_for_slug(normalized):
            return SlugMatch(
                slug=normalized, confidence=1.0, exact=True, spec=self.get(normalized)
            )

        ranked = self.rank(normalized)
        if not ranked or ranked[0].confidence < self.fuzzy_threshold:
            raise NotFoundError(
                f"Spec not found: {slug}",
                near_matches=ranked[:MAX_NEAR_MATCHES],
                details={"slug": slug},
            )

        best = ranked[0]
        tied = [m for m in ranked if best.confidence - m.confidence <= self.tie_tolerance]
        if len(tied) > 1:
            raise AmbiguousMatchError(
                f"'{slug}' is equally close to {len(tied)} specs",
                [m.slug for m in tied],
            )

        logger.info(
            "Fuzzy slug match",
            extra={"query": slug, "slug": best.slug, "confidence": round(best.confidence, 3)},
        )
        best.spec = self.get(best.slug)
        return best

    def find_referencing(self, path: str) -> List[Spec]:
        """All specs whose file references match ``path`` exactly or via glob."""
        return [
            spec
            for spec in self.list_specs()
            if any(reference_matches(ref, path) for ref in spec.files)
        ]

    # Persistence

    def path_for(self, slug: str, encoding: Encoding, origin: str = ORIGIN_ROOT) -> Path:
        directory = self.agents_dir if origin == ORIGIN_AGENT else self.specs_dir
        ext = ".md" if encoding is Encoding.HUMAN else ".yaml"
        return directory / f"{slug}{ext}"

    def save(self, spec: Spec) -> Path:
        """Serialize and atomically write a spec to its path."""
        if spec.path is None:
            spec.path = self.path_for(spec.slug, spec.encoding, spec.origin)
        text = serialize_spec(spec)
        atomic_write_text(spec.path, text)
        # Re-anchor the in-place serializer on what is now on disk.
        spec.source = parse_spec(text, spec.encoding, path=spec.path).source
        return spec.path

    def create(
        self,
        title: str,
        checks: Sequence[str],
        files: Sequence[str] = (),
        *,
        encoding: Encoding = Encoding.HUMAN,
        auto_discover: bool = False,
        origin: str = ORIGIN_ROOT,
        file_hashes: Optional[Dict[str, str]] = None,
    ) -> Spec:
        """
        Write a new spec. A spec with the same slug is overwritten, never duplicated.

        Raises:
            ValidationError: Empty title or zero checks
        """
        slug = slugify(title)
        if not slug:
            raise ValidationError("Spec title must contain at least one letter or digit")

        hashes = file_hashes or {}
        refs = []
        for raw in files:
            path = normalize_path(raw)
            refs.append(FileReference(path=path, hash=hashes.get(path)))

        existing = self._paths_for_slug(slug)
        previous_revision: Optional[int] = None
        for old_path, old_origin in existing:
            try:
                loaded = self._load(old_path, old_origin).revision
            except (SpecIOError, ValidationError) as e:
                logger.warning(
                    "Existing spec is unreadable; replacing it anyway",
                    extra={"slug": slug, "path": str(old_path), "error": str(e)},
                )
                loaded = 0
            previous_revision = max(previous_revision or 0, loaded)

        spec = Spec(
            slug=slug,
            title=title.strip(),
            encoding=encoding,
            checks=[
                Check(position=i, text=text.strip(), status=CheckStatus.UNCHECKED)
                for i, text in enumerate(checks, start=1)
            ],
            files=refs,
            auto_discover=auto_discover,
            revision=0 if previous_revision is None else previous_revision + 1,
            origin=origin,
        )
        validate_spec(spec).raise_for_errors()
        self.save(spec)

        # Same slug under another extension or origin would shadow the new file.
        for old_path, _ in existing:
            if old_path == spec.path:
                continue
            try:
                old_path.unlink()
            except OSError as e:
                raise SpecIOError(f"Cannot replace spec {old_path}: {e}", path=str(old_path)) from e
            logger.info("Removed superseded spec", extra={"slug": slug, "path": str(old_path)})

        logger.info("Spec created", extra={"slug": slug, "path": str(spec.path)})
        return spec

    def delete(self, slug: str) -> Path:
        spec = self.get(slug)
        if spec.path is None:
            raise SpecIOError(f"Spec {spec.slug} has no backing file")
        try:
            spec.path.unlink()
        except OSError as e:
            raise SpecIOError(f"Cannot delete spec {spec.path}: {e}", path=str(spec.path)) from e
        logger.info("Spec deleted", extra={"slug": spec.slug, "path": str(spec.path)})
        return spec.path

    # Views

    def validate(self, spec: Spec, project_root: Optional[Path] = None) -> ValidationResult:
        completed = self.run_log.completed_revisions(spec.slug) if self.run_log else set()
        return validate_spec(spec, completed, project_root=project_root)

    def checklist(self, slug: str) -> List[Dict[str, Any]]:
        """Ordered rows handed to the verification caller."""
        spec = self.get(slug)
        return [
            {
                "slug": spec.slug,
                "position": check.position,
                "text": check.text,
                "status": check.status.value,
                "revision": spec.revision,
            }
            for check in spec.checks
        ]
