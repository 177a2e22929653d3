"""CLI script to create a topic from a text file of urls.
Usage: python scripts/import_topic.py NAME FILE [--resolve]

FILE holds one url per line, optionally written as `title | url`.
"""
import sys
import argparse
import pathlib
import httpx
# Ensure `backend/` is on sys.path so `linkhub` package imports work when running this script directly
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
from sqlmodel import Session
from linkhub.database import engine, create_db_and_tables
from linkhub import services
from linkhub.config import settings


def page_client() -> httpx.Client:
    return httpx.Client(timeout=settings.RESOLVE_TIMEOUT_SECONDS, follow_redirects=True)


def main(name: str, path: pathlib.Path, resolve: bool = False) -> int:
    """Read `path` and store its urls as a new topic called `name`.

    With `resolve` set, lines without a title are fetched to read the
    page title, icon and description.

    Returns a process exit code; problems are printed to stdout for a
    quick CLI feedback loop.
    """
    if not path.exists():
        print(f'File not found: {path}')
        return 1
    create_db_and_tables()
    text = path.read_text(encoding='utf-8')
    with Session(engine) as session:
        resolver = services.UrlResolver(page_client()) if resolve else None
        svc = services.TopicService(session, resolver=resolver)
        try:
            topic_id = svc.batch_create(name, text)
        except ValueError as e:
            print(f'Could not import {path}: {e}')
            return 1
        topic = svc.get_topic(topic_id)
        print(f'Created topic {topic_id} "{topic.name}" with {len(topic.urls)} urls')
    return 0


if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('name', help='Topic name')
    parser.add_argument('file', type=pathlib.Path, help='Text file with one url per line')
    parser.add_argument('--resolve', action='store_true', help='Fetch titles for lines without one')
    args = parser.parse_args()
    sys.exit(main(args.name, args.file, args.resolve))
