"""Scan command - detection only, nothing is written."""

from collections import Counter

from pydantic import BaseModel

from untwine.core.log import logger
from untwine.rules.resolver import default_resolvers
from untwine.rules.sources import iter_source_files, read_source


class ScanCommand(BaseModel):
    """List ambiguous type references without changing any file."""

    async def run_workflow(self, state: "State") -> int:
        project = state.config.project
        files = list(iter_source_files(
            project.root, project.source_patterns, project.exclude_dirs
        ))
        logger.info(f"Scanning {len(files)} files under {project.root}")

        total = 0
        for resolver in default_resolvers():
            records = resolver.detect_files(files, project.encoding)
            if not records:
                continue
            total += len(records)

            usage = Counter()
            for path in sorted({r.file_path for r in records}):
                usage.update(resolver.summarize(
                    read_source(path, project.encoding).text
                ))

            print(f"{resolver.category.title}: {len(records)} references")
            print("  " + ", ".join(
                f"{kind}={count}" for kind, count in sorted(usage.items())
            ))
            for record in records:
                print(f"  {record}")

        if not total:
            print("No ambiguous references found.")
        return 0
