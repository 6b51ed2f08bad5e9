"""
Command-line entry point.

    python -m content_intelligence screen  --kind article  post.md
    python -m content_intelligence tag     post.md
    python -m content_intelligence search  --records records.json "query"
    python -m content_intelligence cluster --records records.json --min-size 3

Records files hold either a JSON array of record objects or one JSON
object per line. Output is JSON on stdout.
"""

from __future__ import annotations
import argparse
import json
import sys
from typing import List, Optional

from .contracts.base import ContentKind, ContentRecord
from .engine import ContentIntelligenceEngine, EngineConfig


def load_records(path: str) -> List[ContentRecord]:
    """
    Read a JSON array or JSON-lines records file.

    Rows that do not form a valid record are reported on stderr and
    skipped; the rest are returned in file order.
    """
    with open(path, 'r', encoding='utf-8') as f:
        content = f.read()

    if content.lstrip().startswith('['):
        rows = json.loads(content)
    else:
        rows = [json.loads(line) for line in content.splitlines() if line.strip()]

    records = []
    for position, row in enumerate(rows):
        parsed = ContentRecord.parse(row)
        if parsed.is_success:
            records.append(parsed.value)
        else:
            print(
                f"skipping row {position}: {parsed.error.code.name} {parsed.error.message}",
                file=sys.stderr
            )
    return records


def _read_text(path: str) -> str:
    if path == '-':
        return sys.stdin.read()
    with open(path, 'r', encoding='utf-8') as f:
        return f.read()


def _emit(payload) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True))


def cmd_screen(engine: ContentIntelligenceEngine, args) -> int:
    verdict = engine.screen_content(_read_text(args.file), ContentKind(args.kind))
    _emit({
        'is_approved': verdict.is_approved,
        'score': round(verdict.score, 4),
        'flags': list(verdict.flag_values),
        'confidence': round(verdict.confidence, 4),
        'suggestions': list(verdict.suggestions),
        'signals': list(verdict.signals),
    })
    return 0 if verdict.is_approved else 1


def cmd_tag(engine: ContentIntelligenceEngine, args) -> int:
    _emit({'tags': list(engine.auto_tag(_read_text(args.file), ContentKind(args.kind)))})
    return 0


def cmd_search(engine: ContentIntelligenceEngine, args) -> int:
    records = load_records(args.records)
    kind = ContentKind(args.kind) if args.kind else None
    result = engine.search(args.query, records, content_type=kind, limit=args.limit)
    _emit({
        'records': [
            {'id': s.record_id, 'score': round(s.score, 4)} for s in result.records
        ],
        'similar': [
            {'id': s.record_id, 'score': round(s.score, 4)} for s in result.similar
        ],
        'suggestions': list(result.suggestions),
    })
    return 0


def cmd_cluster(engine: ContentIntelligenceEngine, args) -> int:
    clusters = engine.cluster(load_records(args.records), args.min_size)
    _emit({
        'clusters': [
            {
                'cluster_id': c.cluster_id,
                'members': list(c.member_ids),
                'centroid': round(c.centroid, 4),
                'keywords': list(c.keywords),
            }
            for c in clusters
        ]
    })
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="content_intelligence", description="Content intelligence engine"
    )
    subparsers = parser.add_subparsers(dest="command")

    kinds = [k.value for k in ContentKind]

    screen_parser = subparsers.add_parser("screen", help="Screen a text file")
    screen_parser.add_argument("file", help="Text file, or - for stdin")
    screen_parser.add_argument("--kind", default="article", choices=kinds)

    tag_parser = subparsers.add_parser("tag", help="Suggest tags for a text file")
    tag_parser.add_argument("file", help="Text file, or - for stdin")
    tag_parser.add_argument("--kind", default="article", choices=kinds)

    search_parser = subparsers.add_parser("search", help="Search a records file")
    search_parser.add_argument("query")
    search_parser.add_argument("--records", required=True, help="JSON records file")
    search_parser.add_argument("--kind", default=None, choices=kinds)
    search_parser.add_argument("--limit", type=int, default=20)

    cluster_parser = subparsers.add_parser("cluster", help="Cluster a records file")
    cluster_parser.add_argument("--records", required=True, help="JSON records file")
    cluster_parser.add_argument("--min-size", type=int, default=3)

    args = parser.parse_args(argv)
    engine = ContentIntelligenceEngine(EngineConfig.from_env())

    if args.command == "screen":
        return cmd_screen(engine, args)
    elif args.command == "tag":
        return cmd_tag(engine, args)
    elif args.command == "search":
        return cmd_search(engine, args)
    elif args.command == "cluster":
        return cmd_cluster(engine, args)

    parser.print_help()
    return 2


if __name__ == "__main__":
    sys.exit(main())
