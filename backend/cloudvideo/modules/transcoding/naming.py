"""Naming rules for derived transcoding artifacts.

Output keys, thumbnail patterns and playlist names are configured as templates.
The same rendering is used when a job is submitted and when its results are
read back, so a thumbnail name can be re-derived from the pattern the
transcoder echoes without storing it separately.
"""

import os
import re
from typing import Iterable, Mapping, Optional

NAME_PLACEHOLDER = "name"
COUNT_PLACEHOLDER = "count"

# Digits used by the transcoder for the {count} part of thumbnail names
THUMBNAIL_COUNT_WIDTH = 5

_PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")


class TemplateError(ValueError):
    """Raised when a naming template is malformed."""

    pass


def placeholders(template: str) -> set[str]:
    """Return the placeholder names used in a template."""
    return set(_PLACEHOLDER_RE.findall(template))


def validate_template(
    template: str,
    allowed: Iterable[str],
    required: Iterable[str] = (),
) -> None:
    """Check a template against the placeholders it may and must contain.

    Raises:
        TemplateError: On an empty template, an unknown placeholder or a
            missing required placeholder.
    """
    if not template:
        raise TemplateError("Template must not be empty")

    used = placeholders(template)
    unknown = used - set(allowed)
    if unknown:
        raise TemplateError(
            f"Template {template!r} uses unknown placeholders: {sorted(unknown)}"
        )

    missing = set(required) - used
    if missing:
        raise TemplateError(
            f"Template {template!r} is missing placeholders: {sorted(missing)}"
        )


def render_template(template: str, values: Mapping[str, str]) -> str:
    """Substitute ``{placeholder}`` occurrences present in ``values``.

    Placeholders without a value are left untouched, so ``{count}`` survives
    submission-time rendering and is filled in by the transcoder.
    """
    return _PLACEHOLDER_RE.sub(
        lambda match: str(values.get(match.group(1), match.group(0))),
        template,
    )


def base_name(filename: str) -> str:
    """Filename with any directory components removed."""
    return os.path.basename(filename)


def strip_extension(filename: str) -> str:
    """Filename truncated before its last dot.

    A name without a dot, or whose only dot is the leading one, is returned
    unchanged.
    """
    index = filename.rfind(".")
    if index <= 0:
        return filename
    return filename[:index]


def set_extension(filename: str, extension: Optional[str]) -> str:
    """Append ``.extension`` unless the name already ends with it."""
    if not extension:
        return filename
    suffix = f".{extension.lstrip('.')}"
    if filename.endswith(suffix):
        return filename
    return filename + suffix


def source_name(source_path: str) -> str:
    """The ``{name}`` value for a source file: base filename without extension."""
    return strip_extension(base_name(source_path))


def render_output_key(template: str, name: str, use_directory: bool = False) -> str:
    """Render an output key (or playlist name) template for a source name.

    With ``use_directory`` every key is placed in a folder named after the
    source, so all artifacts of one video share a prefix.
    """
    key = render_template(template, {NAME_PLACEHOLDER: name})
    if use_directory:
        return f"{name}/{key}"
    return key


def thumbnail_count(number: int) -> str:
    """Zero padded frame number as used in thumbnail names."""
    return str(number).zfill(THUMBNAIL_COUNT_WIDTH)


def pattern_has_extension(pattern: str) -> bool:
    """Whether the literal text after the last placeholder carries an extension."""
    tail = base_name(pattern).rsplit("}", 1)[-1]
    return "." in tail


def render_thumbnail_name(
    pattern: str,
    output_key: str,
    number: int,
    extension: Optional[str] = None,
) -> str:
    """Name of thumbnail ``number`` produced for an output.

    ``pattern`` is the thumbnail pattern the transcoder reports for the output.
    The configured extension is appended only when the pattern has no
    extension of its own.
    """
    rendered = render_template(
        pattern,
        {
            NAME_PLACEHOLDER: source_name(output_key),
            COUNT_PLACEHOLDER: thumbnail_count(number),
        },
    )
    if pattern_has_extension(pattern):
        return rendered
    return set_extension(rendered, extension)
