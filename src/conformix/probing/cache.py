"""On-disk cache of Feature Reports.

Each probed target gets two files under the cache directory:

- ``<identity>.json``: the structured report, reloaded on later runs
- ``<identity>.txt``: a human-readable summary for operators

A cache entry that cannot be read or validated is logged and treated as a
miss, so the target is probed again.
"""

from __future__ import annotations

import re
from pathlib import Path

from pydantic import ValidationError

from conformix.models.enums import Epoch
from conformix.models.features import FeatureReport
from conformix.observability import get_logger, get_metrics

logger = get_logger(__name__)

DEFAULT_CACHE_DIR = Path(".conformix") / "cache"

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._:-]")


def cache_file_stem(identity: str) -> str:
    """Return a filesystem-safe file stem for ``identity``."""
    return _UNSAFE_CHARS.sub("_", identity)


def render_text(report: FeatureReport) -> str:
    """Render ``report`` as the human-readable cache companion file."""

    def joined(values: list) -> str:
        return ", ".join(value.value for value in values) or "-"

    lines = [
        f"Target:          {report.identity}",
        f"Direction:       {report.direction.value}",
        f"Versions:        {joined(report.versions)}",
    ]
    for epoch in Epoch:
        lines.append(f"Suites ({epoch.value}):".ljust(17) + joined(report.suites_for(epoch)))
    lines.extend(
        [
            f"Named groups:    {joined(report.named_groups)}",
            f"Modern groups:   {joined(report.modern_groups)}",
            f"Extensions:      {joined(report.extensions)}",
            f"Signatures:      {joined(report.signature_algorithms)}",
            f"Compression:     {joined(report.compression_methods)}",
            f"Fragmentation:   {'tolerated' if report.record_fragmentation else 'not tolerated'}",
        ]
    )
    if report.min_certificate_key_size:
        for key_type, size in sorted(
            report.min_certificate_key_size.items(), key=lambda item: item[0].value
        ):
            lines.append(f"Min {key_type.value} key:".ljust(17) + str(size))
    else:
        lines.append("Min key sizes:   -")
    return "\n".join(lines) + "\n"


class FeatureCache:
    """File-backed Feature Report cache keyed by target identity.

    Example:
        >>> cache = FeatureCache(tmp_path)
        >>> cache.store(report)
        >>> cache.load(report.identity) == report
        True
    """

    def __init__(self, cache_dir: str | Path = DEFAULT_CACHE_DIR) -> None:
        self.cache_dir = Path(cache_dir)

    def path_for(self, identity: str) -> Path:
        return self.cache_dir / f"{cache_file_stem(identity)}.json"

    def text_path_for(self, identity: str) -> Path:
        return self.cache_dir / f"{cache_file_stem(identity)}.txt"

    def load(self, identity: str) -> FeatureReport | None:
        """Return the cached report of ``identity``, or None on a miss."""
        path = self.path_for(identity)
        if not path.exists():
            return None
        try:
            report = FeatureReport.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as exc:
            logger.warning(
                "conformix.cache.unreadable",
                identity=identity,
                path=str(path),
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return None
        get_metrics().increment_counter("conformix_cache_hits_total")
        logger.info("conformix.cache.hit", identity=identity, path=str(path))
        return report

    def store(self, report: FeatureReport) -> Path:
        """Write both cache files for ``report`` and return the JSON path."""
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        path = self.path_for(report.identity)
        path.write_text(report.model_dump_json(indent=2), encoding="utf-8")
        self.text_path_for(report.identity).write_text(render_text(report), encoding="utf-8")
        logger.info("conformix.cache.stored", identity=report.identity, path=str(path))
        return path

    def clear(self, identity: str) -> bool:
        """Delete the cache files of ``identity``; return True if any existed."""
        removed = False
        for path in (self.path_for(identity), self.text_path_for(identity)):
            if path.exists():
                path.unlink()
                removed = True
        if removed:
            logger.info("conformix.cache.cleared", identity=identity)
        return removed
