"""Heuristic CV section parser.

Splits extracted CV text into sections by well-known headings and turns each
section's lines into scored entities.
"""

import logging
import re

from cvworker.models import EntitySource, EntityType
from cvworker.schemas import ParsedEntity
from cvworker.services.embedding import embed

logger = logging.getLogger(__name__)


# Heading aliases per section, matched case-insensitively on the whole line
SECTION_ALIASES: dict[EntityType, list[str]] = {
    EntityType.SUMMARY: ["summary", "profile", "about", "professional summary"],
    EntityType.EDUCATION: ["education", "academic", "studies"],
    EntityType.EXPERIENCE: [
        "experience",
        "work experience",
        "professional experience",
        "employment history",
    ],
    EntityType.SKILL: ["skills", "technical skills", "competencies", "expertise"],
    EntityType.LANGUAGE: ["languages", "spoken languages"],
    EntityType.CERTIFICATION: ["certifications", "certification", "licenses"],
}

LINE_BREAK_PATTERN = re.compile(r"\r?\n")
WHITESPACE_BULLET_PATTERN = re.compile(r"[\s•]+")
TRAILING_COLON_PATTERN = re.compile(r":+$")

EDUCATION_SPLIT_PATTERN = re.compile(r"[-–]| at ", re.IGNORECASE)
EXPERIENCE_SPLIT_PATTERN = re.compile(r" at | @ | - ", re.IGNORECASE)
SKILL_SPLIT_PATTERN = re.compile(r"[,\u2022\u2023\u25e6\u2043\u2219]")
LANGUAGE_SPLIT_PATTERN = re.compile(r"[,;\u2022\u2023\u25e6]")

SUMMARY_LABEL = "Summary"


def normalize_line(line: str) -> str:
    """Collapse whitespace and bullet runs into single spaces."""
    return WHITESPACE_BULLET_PATTERN.sub(" ", line).strip()


def detect_section(line: str) -> EntityType | None:
    """Return the section a heading line opens, or None for content lines."""
    normalized = TRAILING_COLON_PATTERN.sub("", line.lower()).strip()
    for entity_type, aliases in SECTION_ALIASES.items():
        if normalized in aliases:
            return entity_type
    return None


def _split(pattern: re.Pattern, line: str) -> list[str]:
    return [part.strip() for part in pattern.split(line) if part.strip()]


def _entity(
    entity_type: EntityType,
    label: str,
    confidence: float,
    metadata: dict,
    embed_text: str | None = None,
) -> ParsedEntity:
    return ParsedEntity(
        entity_type=entity_type,
        label=label,
        confidence=confidence,
        source=EntitySource.PARSER,
        metadata=metadata,
        embedding=embed(embed_text if embed_text is not None else label),
    )


def split_sections(text: str) -> dict[EntityType, list[str]]:
    """Assign every content line to the section opened by the last heading."""
    sections: dict[EntityType, list[str]] = {entity_type: [] for entity_type in SECTION_ALIASES}
    current = EntityType.SUMMARY

    for raw_line in LINE_BREAK_PATTERN.split(text):
        line = normalize_line(raw_line)
        if not line:
            continue

        detected = detect_section(line)
        if detected:
            current = detected
            continue

        sections[current].append(line)

    return sections


def extract_entities(text: str | None, parser_version: str) -> list[ParsedEntity]:
    """
    Extract entities from raw CV text.

    Never raises on malformed input: lines that don't belong anywhere are
    attributed to the current section (summary by default).

    Args:
        text: Extracted plain text of the CV
        parser_version: Tag stored in each entity's metadata

    Returns:
        Unsaved entities in section order, not yet deduplicated
    """
    sections = split_sections(text or "")
    entities: list[ParsedEntity] = []

    summary_lines = sections[EntityType.SUMMARY]
    if summary_lines:
        summary_text = "\n".join(summary_lines)
        entities.append(
            _entity(
                EntityType.SUMMARY,
                SUMMARY_LABEL,
                0.6,
                {"rawText": summary_text, "parserVersion": parser_version},
                embed_text=summary_text,
            )
        )

    for line in sections[EntityType.EDUCATION]:
        parts = _split(EDUCATION_SPLIT_PATTERN, line)
        institution = parts[0] if parts else None
        details = " - ".join(parts[1:]) or line
        entities.append(
            _entity(
                EntityType.EDUCATION,
                institution or line,
                0.85 if institution else 0.7,
                {"rawText": line, "details": details, "parserVersion": parser_version},
            )
        )

    for line in sections[EntityType.EXPERIENCE]:
        parts = _split(EXPERIENCE_SPLIT_PATTERN, line)
        role = parts[0] if parts else None
        metadata = {"rawText": line, "parserVersion": parser_version}
        employer = " - ".join(parts[1:])
        if employer:
            metadata["employer"] = employer
        entities.append(
            _entity(EntityType.EXPERIENCE, role or line, 0.8 if role else 0.65, metadata)
        )

    for line in sections[EntityType.SKILL]:
        for item in _split(SKILL_SPLIT_PATTERN, line):
            entities.append(
                _entity(
                    EntityType.SKILL,
                    item,
                    0.75,
                    {"rawText": line, "parserVersion": parser_version},
                )
            )

    for line in sections[EntityType.LANGUAGE]:
        items = _split(LANGUAGE_SPLIT_PATTERN, line)
        if not items:
            entities.append(
                _entity(
                    EntityType.LANGUAGE,
                    line,
                    0.6,
                    {"rawText": line, "parserVersion": parser_version},
                )
            )
            continue

        for item in items:
            entities.append(
                _entity(
                    EntityType.LANGUAGE,
                    item,
                    0.7,
                    {"rawText": line, "parserVersion": parser_version},
                )
            )

    for line in sections[EntityType.CERTIFICATION]:
        entities.append(
            _entity(
                EntityType.CERTIFICATION,
                line,
                0.7,
                {"rawText": line, "parserVersion": parser_version},
            )
        )

    logger.debug(f"Extracted {len(entities)} raw entities (parser {parser_version})")
    return entities


def deduplicate_entities(entities: list[ParsedEntity]) -> list[ParsedEntity]:
    """Keep the highest-confidence entity per (type, lowercased label)."""
    seen: dict[tuple[EntityType, str], ParsedEntity] = {}

    for entity in entities:
        key = (entity.entity_type, entity.label.lower())
        existing = seen.get(key)
        if existing is None or existing.confidence < entity.confidence:
            seen[key] = entity

    return list(seen.values())
