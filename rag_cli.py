#!/usr/bin/env python3
"""
RAG CLI Tool

Command-line interface for the document registry and retrieval.

Usage:
    python rag_cli.py --register PATH [--user USER] [--name NAME]   # Register a file
    python rag_cli.py --register PATH --process                     # Register and index
    python rag_cli.py --process ID                                  # Index a registered file
    python rag_cli.py --search "query" [--documents ID ...]         # Search passages
    python rag_cli.py --list                                        # List documents
    python rag_cli.py --delete ID                                   # Delete document + passages
    python rag_cli.py --serve [--port 8000]                         # Run the API server

The default in-memory passage store does not outlive the process; set
storage.passage_backend to "chroma" to index and search across runs.
"""

import argparse
import asyncio
import mimetypes
from pathlib import Path

from dotenv import load_dotenv

from core.config import load_app_config
from core.errors import AssistantError
from core.services.factory import build_services
from utils.logger import get_logger

logger = get_logger('cli')


def _services():
    load_dotenv()
    return build_services(load_app_config())


# ============================================
# DOCUMENT COMMANDS
# ============================================

def register(args):
    """Register a file in the document registry"""
    path = Path(args.register)
    if not path.is_file():
        print(f"Path not found: {args.register}")
        return 1

    mime_type = mimetypes.guess_type(path.name)[0] or "text/plain"
    services = _services()

    record = services.store.register_document(
        user_id=args.user,
        name=args.name or path.name,
        file_path=str(path.absolute()),
        mime_type=mime_type
    )
    print(f"Registered {record.name} as {record.id} ({mime_type})")

    if args.process_now:
        return asyncio.run(_process(services, record.id))
    services.store.close()
    return 0


async def _process(services, document_id: str) -> int:
    try:
        stats = await services.indexer.process_document(document_id)
    except AssistantError as e:
        print(f"Processing failed: {e.public_message} ({e})")
        return 1
    finally:
        await services.close()

    print(f"Indexed {stats.document_id}: {stats.characters} chars, {stats.passages} passages")
    return 0


def process(args):
    """Index a registered document"""
    return asyncio.run(_process(_services(), args.process))


def search(args):
    """Search passages"""
    services = _services()

    async def do_search():
        try:
            return await services.retriever.retrieve(
                args.search,
                document_ids=args.documents,
                max_results=args.limit,
                threshold=args.threshold
            )
        finally:
            await services.close()

    try:
        results = asyncio.run(do_search())
    except AssistantError as e:
        print(f"Search failed: {e.public_message} ({e})")
        return 1

    if not results:
        print(f"No passages found for: {args.search}")
        return 0

    print(f"\nSearch results for: '{args.search}'")
    print("=" * 60)
    for i, result in enumerate(results, 1):
        print(f"\n{i}. {result.document_name} (similarity {result.similarity:.3f})")
        print(f"   {result.passage_text[:200]}")
    return 0


def list_documents(args):
    """List registered documents of a user"""
    services = _services()
    documents = services.store.list_documents(args.user)
    services.store.close()

    if not documents:
        print(f"No documents for {args.user}")
        return 0

    print(f"\nDocuments for {args.user} ({len(documents)}):")
    for doc in documents:
        print(f"  {doc.id}  {doc.name}  [{doc.mime_type}]")
    return 0


def delete(args):
    """Delete a document and its passages"""
    services = _services()

    async def do_delete():
        try:
            return await services.indexer.delete_document(args.delete)
        finally:
            await services.close()

    try:
        removed = asyncio.run(do_delete())
    except AssistantError as e:
        print(f"Delete failed: {e.public_message}")
        return 1

    print(f"Deleted {args.delete} ({removed} passages)")
    return 0


def serve(args):
    """Run the API server"""
    import uvicorn
    uvicorn.run("api.main:app", host=args.host, port=args.port)
    return 0


# ============================================
# MAIN
# ============================================

def main(argv=None):
    parser = argparse.ArgumentParser(
        description="RAG Chat CLI Tool",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    # Global options
    parser.add_argument('--user', default='default_user', help='User ID')
    parser.add_argument('--limit', type=int, default=5, help='Result limit')
    parser.add_argument('--threshold', type=float, default=None, help='Similarity threshold')
    parser.add_argument('--documents', nargs='*', metavar='ID', help='Restrict search to documents')

    # Commands
    parser.add_argument('--register', type=str, metavar='PATH', help='Register a file')
    parser.add_argument('--name', type=str, help='Display name for --register')
    parser.add_argument('--process', type=str, nargs='?', const='', metavar='ID',
                        help='Index a registered document (with --register: index it right away)')
    parser.add_argument('--search', type=str, metavar='QUERY', help='Search passages')
    parser.add_argument('--list', action='store_true', help='List documents')
    parser.add_argument('--delete', type=str, metavar='ID', help='Delete a document')
    parser.add_argument('--serve', action='store_true', help='Run the API server')
    parser.add_argument('--host', default='0.0.0.0', help='Server host')
    parser.add_argument('--port', type=int, default=8000, help='Server port')

    args = parser.parse_args(argv)
    args.process_now = args.process is not None

    if args.register:
        return register(args)
    elif args.process:
        return process(args)
    elif args.search:
        return search(args)
    elif args.list:
        return list_documents(args)
    elif args.delete:
        return delete(args)
    elif args.serve:
        return serve(args)

    parser.print_help()
    print("\nExamples:")
    print("  python rag_cli.py --register notes.md --process")
    print("  python rag_cli.py --search 'quarterly revenue'")
    print("  python rag_cli.py --delete DOCUMENT_ID")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
