"""
Parsing and serialization for the two on-disk spec encodings.

Human encoding: a Markdown checklist with a title line, a ``Files`` section,
a ``Checks`` section whose items open with a bracketed status marker, and an
optional trailing ``<!-- meta: ... -->`` block holding YAML.

Machine encoding: a YAML document with ``title``, ``type``, ``files``,
``checks`` records and a ``meta`` mapping.

Parsing is pure (text in, Spec out). Serialization edits the parsed source in
place so that untouched prose and unchanged lines come back byte-identical.
"""

import copy
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from spectrack.core.errors import ValidationError
from spectrack.core.model import (
    Check,
    CheckStatus,
    Encoding,
    FileReference,
    Spec,
    encoding_for_path,
    normalize_path,
    slugify,
)

logger = logging.getLogger(__name__)

MARKER_UNCHECKED = " "
MARKER_PASSED = "🟩"
MARKER_FAILED = "🟥"

MARKERS = {
    MARKER_UNCHECKED: CheckStatus.UNCHECKED,
    MARKER_PASSED: CheckStatus.PASSED,
    MARKER_FAILED: CheckStatus.FAILED,
}
STATUS_MARKERS = {status: marker for marker, status in MARKERS.items()}

FILES_SECTION = "files"
CHECKS_SECTIONS = ("checks", "requirements")

_TITLE_RE = re.compile(r"^(?P<prefix>#[ \t]+(?:Feature:[ \t]*)?)(?P<title>.*?)[ \t]*$")
_HEADING_RE = re.compile(r"^#{2,3}[ \t]+(?P<name>.+?)[ \t]*$")
_CHECK_RE = re.compile(r"^(?P<prefix>[ \t]*[-*+][ \t]+)\[(?P<marker>[^\]]*)\](?P<after>.*)$")
_FILE_RE = re.compile(r"^[ \t]*[-*+][ \t]+(?P<path>.+?)[ \t]*$")
_FENCE_RE = re.compile(r"^[ \t]*(```|~~~)")
_META_START_RE = re.compile(r"^<!--[ \t]*meta:[ \t]*$")
_META_END = "-->"


# Parsed human source


@dataclass
class _CheckLine:
    index: int
    prefix: str
    after: str
    eol: str
    text: str
    marker: str
    status: CheckStatus
    marker_recognized: bool


@dataclass
class HumanSource:
    """Line-level view of a parsed human spec."""

    lines: List[str]
    newline: str = "\n"
    title: str = ""
    title_index: Optional[int] = None
    title_prefix: str = "# "
    files_heading: Optional[int] = None
    checks_heading: Optional[int] = None
    file_lines: List[Tuple[int, str]] = field(default_factory=list)
    check_lines: List[_CheckLine] = field(default_factory=list)
    meta_span: Optional[Tuple[int, int]] = None
    meta: Dict[str, Any] = field(default_factory=dict)


@dataclass
class MachineSource:
    """Raw YAML document of a parsed machine spec."""

    text: str
    data: Dict[str, Any]
    checks_key: str = "checks"


# Public entry points


def parse_spec(
    text: str,
    encoding: Encoding,
    *,
    path: Optional[Path] = None,
    slug: Optional[str] = None,
    origin: str = "root",
) -> Spec:
    """Parse raw spec text into a Spec.

    Args:
        text: Raw file content
        encoding: Which encoding the text uses
        path: Optional source path (used for the slug when given)
        slug: Explicit slug override
        origin: ``root`` or ``agent``

    Raises:
        ValidationError: If the machine document or the meta block cannot be parsed
    """
    if encoding is Encoding.HUMAN:
        spec = _parse_human(text)
    else:
        spec = _parse_machine(text)

    spec.path = path
    spec.origin = origin
    if slug:
        spec.slug = slug
    elif path is not None:
        spec.slug = slugify(path.stem) or slugify(spec.title)
    else:
        spec.slug = slugify(spec.title)
    return spec


def parse_spec_file(path: Path, origin: str = "root") -> Spec:
    """Read and parse a spec file, choosing the encoding from its extension."""
    encoding = encoding_for_path(path)
    if encoding is None:
        raise ValidationError(
            f"Unsupported spec file extension: {path.suffix}",
            details={"path": str(path)},
        )
    text = path.read_text(encoding="utf-8")
    return parse_spec(text, encoding, path=path, origin=origin)


def serialize_spec(spec: Spec) -> str:
    """Render a Spec back to text in its own encoding."""
    if spec.encoding is Encoding.HUMAN:
        return _serialize_human(spec)
    return _serialize_machine(spec)


def build_meta(spec: Spec, base: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Merge the managed meta fields of ``spec`` over ``base``.

    Managed keys are dropped when they hold their default value so specs that
    never used them carry no meta block at all.
    """
    meta = dict(base or {})
    hashes = {ref.path: ref.hash for ref in spec.files if ref.hash}

    if spec.auto_discover:
        meta["files_auto"] = True
    else:
        meta.pop("files_auto", None)
    if hashes:
        meta["file_hashes"] = hashes
    else:
        meta.pop("file_hashes", None)
    if spec.revision:
        meta["revision"] = spec.revision
    else:
        meta.pop("revision", None)
    return meta


def unrecognized_markers(spec: Spec) -> List[Tuple[int, str]]:
    """Positions and glyphs of checks whose marker will be normalized on write."""
    return [
        (check.position, check.unrecognized_marker)
        for check in spec.checks
        if check.unrecognized_marker is not None
    ]


# Human encoding


def _split_lines(text: str) -> Tuple[List[str], str]:
    lines = text.splitlines(keepends=True)
    newline = "\r\n" if lines and lines[0].endswith("\r\n") else "\n"
    return lines, newline


def _strip_eol(line: str) -> Tuple[str, str]:
    body = line.rstrip("\r\n")
    return body, line[len(body):]


def _meta_from_yaml(raw: str, where: str) -> Dict[str, Any]:
    try:
        loaded = yaml.safe_load(raw) if raw.strip() else {}
    except yaml.YAMLError as e:
        raise ValidationError(f"Unparseable meta block in {where}: {e}") from e
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ValidationError(f"Meta block in {where} must be a mapping")
    return loaded


def _meta_fields(meta: Dict[str, Any]) -> Tuple[bool, Dict[str, str], int]:
    files_auto = meta.get("files_auto", False)
    if not isinstance(files_auto, bool):
        raise ValidationError("meta.files_auto must be a boolean")
    hashes = meta.get("file_hashes") or {}
    if not isinstance(hashes, dict):
        raise ValidationError("meta.file_hashes must be a mapping of path to hash")
    revision = meta.get("revision", 0)
    if not isinstance(revision, int) or isinstance(revision, bool) or revision < 0:
        raise ValidationError("meta.revision must be a non-negative integer")
    return files_auto, {str(k): str(v) for k, v in hashes.items()}, revision


def _parse_human(text: str) -> Spec:
    lines, newline = _split_lines(text)
    source = HumanSource(lines=lines, newline=newline)

    section: Optional[str] = None
    in_fence = False
    index = 0
    while index < len(lines):
        body, eol = _strip_eol(lines[index])

        if in_fence:
            if _FENCE_RE.match(body):
                in_fence = False
            index += 1
            continue
        if _FENCE_RE.match(body):
            in_fence = True
            index += 1
            continue

        if _META_START_RE.match(body):
            end = index + 1
            while end < len(lines) and _META_END not in lines[end]:
                end += 1
            if end >= len(lines):
                raise ValidationError("Unterminated meta block in human spec")
            raw = "".join(lines[index + 1:end])
            source.meta = _meta_from_yaml(raw, "human spec")
            source.meta_span = (index, end + 1)
            index = end + 1
            continue

        if source.title_index is None and body.startswith("#") and not body.startswith("##"):
            match = _TITLE_RE.match(body)
            if match:
                source.title_index = index
                source.title_prefix = match.group("prefix")
                source.title = match.group("title")
                index += 1
                continue

        heading = _HEADING_RE.match(body)
        if heading:
            name = heading.group("name").strip().lower()
            if name == FILES_SECTION and source.files_heading is None:
                section = FILES_SECTION
                source.files_heading = index
            elif name in CHECKS_SECTIONS and source.checks_heading is None:
                section = "checks"
                source.checks_heading = index
            else:
                section = None
            index += 1
            continue

        if section == FILES_SECTION:
            match = _FILE_RE.match(body)
            if match:
                path = match.group("path").strip("`")
                source.file_lines.append((index, normalize_path(path)))
        elif section == "checks":
            match = _CHECK_RE.match(body)
            if match:
                marker = match.group("marker")
                status = MARKERS.get(marker)
                source.check_lines.append(
                    _CheckLine(
                        index=index,
                        prefix=match.group("prefix"),
                        after=match.group("after"),
                        eol=eol,
                        text=match.group("after").strip(),
                        marker=marker,
                        status=status or CheckStatus.UNCHECKED,
                        marker_recognized=status is not None,
                    )
                )
        index += 1

    files_auto, hashes, revision = _meta_fields(source.meta)
    checks = []
    for position, line in enumerate(source.check_lines, start=1):
        checks.append(
            Check(
                position=position,
                text=line.text,
                status=line.status,
                unrecognized_marker=None if line.marker_recognized else line.marker,
            )
        )

    files = [FileReference(path=p, hash=hashes.get(p)) for _, p in source.file_lines]
    title = source.title
    return Spec(
        slug=slugify(title),
        title=title,
        encoding=Encoding.HUMAN,
        checks=checks,
        files=files,
        auto_discover=files_auto,
        revision=revision,
        source=source,
    )


def _render_check_line(check: Check, newline: str, prefix: str = "- ") -> str:
    return f"{prefix}[{STATUS_MARKERS[check.status]}] {check.text}{newline}"


def _render_meta_block(meta: Dict[str, Any], newline: str) -> List[str]:
    body = yaml.safe_dump(meta, sort_keys=True, allow_unicode=True, default_flow_style=False)
    rendered = ["<!-- meta:" + newline]
    rendered.extend(line + newline for line in body.splitlines())
    rendered.append(_META_END + newline)
    return rendered


def render_human(spec: Spec, newline: str = "\n") -> str:
    """Render a spec from scratch in the canonical human layout."""
    out = [f"# {spec.title}{newline}", newline, f"## Files{newline}"]
    out.extend(f"- {ref.path}{newline}" for ref in spec.files)
    out.extend([newline, f"## Checks{newline}"])
    out.extend(_render_check_line(check, newline) for check in spec.checks)
    meta = build_meta(spec)
    if meta:
        out.append(newline)
        out.extend(_render_meta_block(meta, newline))
    return "".join(out)


def _log_normalized(spec: Spec) -> None:
    for position, glyph in unrecognized_markers(spec):
        logger.warning(
            "Normalizing unrecognized status marker to unchecked",
            extra={"slug": spec.slug, "position": position, "marker": glyph},
        )


def _serialize_human(spec: Spec) -> str:
    source: Optional[HumanSource] = spec.source
    if not isinstance(source, HumanSource):
        return render_human(spec)

    _log_normalized(spec)
    nl = source.newline
    lines = source.lines
    # Each original line maps to the list of lines emitted in its place.
    emitted: List[List[str]] = [[line] for line in lines]
    head: List[str] = []

    def ensure_eol(i: int) -> None:
        # The last original line may lack a newline; anything appended after
        # it must start on a fresh line.
        if emitted[i] and not emitted[i][-1].endswith(("\n", "\r")):
            emitted[i][-1] += nl

    if spec.title != source.title:
        if source.title_index is not None:
            _, eol = _strip_eol(lines[source.title_index])
            emitted[source.title_index] = [f"{source.title_prefix}{spec.title}{eol or nl}"]
        else:
            head.extend([f"# {spec.title}{nl}", nl])

    new_paths = spec.file_paths()
    old_paths = [p for _, p in source.file_lines]
    if new_paths != old_paths:
        rendered = [f"- {p}{nl}" for p in new_paths]
        if source.file_lines:
            first = source.file_lines[0][0]
            for i, _ in source.file_lines:
                emitted[i] = []
            emitted[first] = rendered
        elif source.files_heading is not None:
            ensure_eol(source.files_heading)
            emitted[source.files_heading] = emitted[source.files_heading] + rendered
        elif source.checks_heading is not None:
            emitted[source.checks_heading] = (
                [f"## Files{nl}"] + rendered + [nl] + emitted[source.checks_heading]
            )
        else:
            head.extend([f"## Files{nl}"] + rendered + [nl])

    check_lines = source.check_lines
    for i, check in enumerate(spec.checks[: len(check_lines)]):
        line = check_lines[i]
        if check.text == line.text:
            if check.status is line.status and line.marker_recognized:
                continue
            emitted[line.index] = [
                f"{line.prefix}[{STATUS_MARKERS[check.status]}]{line.after}{line.eol or nl}"
            ]
        else:
            emitted[line.index] = [_render_check_line(check, line.eol or nl, line.prefix)]
    for line in check_lines[len(spec.checks):]:
        emitted[line.index] = []

    extra_checks = spec.checks[len(check_lines):]
    if extra_checks:
        rendered = [_render_check_line(check, nl) for check in extra_checks]
        if check_lines:
            anchor = check_lines[-1].index
            ensure_eol(anchor)
            emitted[anchor] = emitted[anchor] + rendered
        elif source.checks_heading is not None:
            ensure_eol(source.checks_heading)
            emitted[source.checks_heading] = emitted[source.checks_heading] + rendered
        elif source.meta_span is not None:
            start = source.meta_span[0]
            emitted[start] = [f"## Checks{nl}"] + rendered + [nl] + emitted[start]
        else:
            if lines:
                ensure_eol(len(lines) - 1)
                emitted[-1] = emitted[-1] + [nl, f"## Checks{nl}"] + rendered
            else:
                head.extend([f"## Checks{nl}"] + rendered)

    meta = build_meta(spec, source.meta)
    if meta != source.meta:
        block = _render_meta_block(meta, nl) if meta else []
        if source.meta_span is not None:
            start, end = source.meta_span
            for i in range(start, end):
                emitted[i] = []
            emitted[start] = block
        elif block:
            if lines:
                ensure_eol(len(lines) - 1)
                emitted[-1] = emitted[-1] + [nl] + block
            else:
                head.extend(block)

    return "".join(head) + "".join(chunk for group in emitted for chunk in group)


# Machine encoding


def _machine_checks(data: Dict[str, Any]) -> Tuple[str, List[Any]]:
    if "checks" in data:
        key = "checks"
    elif "requirements" in data:
        key = "requirements"
    else:
        return "checks", []
    records = data[key]
    if records is None:
        return key, []
    if not isinstance(records, list):
        raise ValidationError(f"'{key}' must be a list of check records")
    return key, records


def _parse_machine(text: str) -> Spec:
    try:
        data = yaml.safe_load(text) if text.strip() else {}
    except yaml.YAMLError as e:
        raise ValidationError(f"Unparseable machine spec: {e}") from e
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("Machine spec must be a YAML mapping")

    title = data.get("title")
    title = "" if title is None else str(title)
    meta = data.get("meta") or {}
    if not isinstance(meta, dict):
        raise ValidationError("Machine spec 'meta' must be a mapping")
    files_auto, hashes, revision = _meta_fields(meta)

    raw_files = data.get("files") or []
    if not isinstance(raw_files, list):
        raise ValidationError("Machine spec 'files' must be a list of paths")
    files = []
    for entry in raw_files:
        if not isinstance(entry, str):
            raise ValidationError(f"File reference must be a string, got {entry!r}")
        path = normalize_path(entry)
        files.append(FileReference(path=path, hash=hashes.get(path)))

    checks_key, records = _machine_checks(data)
    checks = []
    for position, record in enumerate(records, start=1):
        if not isinstance(record, dict):
            raise ValidationError(
                f"Check record {position} must be a mapping",
                details={"position": position},
            )
        text_value = record.get("require", record.get("text"))
        if not isinstance(text_value, str) or not text_value.strip():
            raise ValidationError(
                f"Check record {position} has no 'require' text",
                details={"position": position},
            )
        status_value = record.get("status", False)
        failed_value = record.get("failed", False)
        if not isinstance(status_value, bool):
            raise ValidationError(
                f"Check record {position} has non-boolean status {status_value!r}",
                details={"position": position},
            )
        if not isinstance(failed_value, bool):
            raise ValidationError(
                f"Check record {position} has non-boolean failed flag {failed_value!r}",
                details={"position": position},
            )
        if status_value:
            status = CheckStatus.PASSED
        elif failed_value:
            status = CheckStatus.FAILED
        else:
            status = CheckStatus.UNCHECKED
        code = record.get("test")
        checks.append(
            Check(
                position=position,
                text=text_value.strip(),
                status=status,
                code=code if isinstance(code, str) else None,
            )
        )

    return Spec(
        slug=slugify(title),
        title=title,
        encoding=Encoding.MACHINE,
        checks=checks,
        files=files,
        auto_discover=files_auto,
        revision=revision,
        source=MachineSource(text=text, data=data, checks_key=checks_key),
    )


def _machine_record(check: Check, base: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    record = dict(base) if base else {}
    text_key = "text" if "text" in record and "require" not in record else "require"
    record[text_key] = check.text
    if check.code:
        record["test"] = check.code
    else:
        record.pop("test", None)
    record["status"] = check.status is CheckStatus.PASSED
    if check.status is CheckStatus.FAILED:
        record["failed"] = True
    else:
        record.pop("failed", None)
    return record


def _serialize_machine(spec: Spec) -> str:
    source: Optional[MachineSource] = spec.source
    if isinstance(source, MachineSource):
        data = copy.deepcopy(source.data)
        checks_key = source.checks_key
    else:
        data = {"title": spec.title, "type": "machine"}
        checks_key = "checks"

    _, old_records = _machine_checks(data) if checks_key in data else (checks_key, [])
    data["title"] = spec.title
    data["files"] = spec.file_paths()
    records = []
    for i, check in enumerate(spec.checks):
        base = old_records[i] if i < len(old_records) and isinstance(old_records[i], dict) else None
        records.append(_machine_record(check, base))
    data[checks_key] = records

    base_meta = data.get("meta") if isinstance(data.get("meta"), dict) else {}
    meta = build_meta(spec, base_meta)
    if meta:
        data["meta"] = meta
    else:
        data.pop("meta", None)

    if isinstance(source, MachineSource) and data == source.data:
        return source.text
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True, default_flow_style=False)
