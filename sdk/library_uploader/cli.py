"""CLI: library-uploader list | upload | url | rename | delete."""
import argparse
import json
import sys
from pathlib import Path

import httpx

from .client import LibraryClient


def main() -> int:
    parser = argparse.ArgumentParser(prog="library-uploader", description="Manage the choir file library")
    parser.add_argument("--base-url", default="http://localhost:8000", help="API base URL")
    parser.add_argument("--code", required=True, help="Access code (admin code for changes)")
    sub = parser.add_subparsers(dest="command", required=True)

    # list
    p_list = sub.add_parser("list", help="List a folder")
    p_list.add_argument("path", nargs="?", default="", help="Folder path, e.g. lessons/2025")
    p_list.set_defaults(func=cmd_list)

    # upload
    p_upload = sub.add_parser("upload", help="Upload files into a folder")
    p_upload.add_argument("--folder", default="", help="Target folder, e.g. 'lessons/2025/Lesson 01'")
    p_upload.add_argument("--category", choices=["audio", "document"], default=None, help="Category for all files")
    p_upload.add_argument("files", nargs="+", help="Local file paths to upload")
    p_upload.set_defaults(func=cmd_upload)

    # url
    p_url = sub.add_parser("url", help="Print a temporary download URL")
    p_url.add_argument("key", help="Object key")
    p_url.set_defaults(func=cmd_url)

    # rename
    p_rename = sub.add_parser("rename", help="Rename a file within its folder")
    p_rename.add_argument("key", help="Object key")
    p_rename.add_argument("new_name", help="New file name")
    p_rename.set_defaults(func=cmd_rename)

    # delete
    p_delete = sub.add_parser("delete", help="Delete files")
    p_delete.add_argument("keys", nargs="+", help="Object keys")
    p_delete.set_defaults(func=cmd_delete)

    args = parser.parse_args()
    client = LibraryClient(base_url=args.base_url, code=args.code)
    try:
        client.login()
        return args.func(client, args)
    except httpx.HTTPStatusError as e:
        print(f"Error: {_error_message(e.response)}", file=sys.stderr)
        return 1
    except (httpx.HTTPError, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        client.close()


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json().get("error") or response.text
    except ValueError:
        return f"HTTP {response.status_code}"


def cmd_list(client: LibraryClient, args: argparse.Namespace) -> int:
    out = client.list_folder(args.path)
    for folder in out["folders"]:
        print(folder)
    for item in out["items"]:
        print(f"{item['key']}\t{item['size']}\t{item['category']}")
    if out.get("error"):
        print(f"Error: {out['error']}", file=sys.stderr)
        return 1
    return 0


def cmd_upload(client: LibraryClient, args: argparse.Namespace) -> int:
    paths = [Path(f) for f in args.files]
    missing = [p for p in paths if not p.is_file()]
    if missing:
        print(f"Missing files: {missing}", file=sys.stderr)
        return 1
    folder_parts = [p for p in args.folder.split("/") if p]
    result = client.upload(paths, category=args.category, folder_parts=folder_parts)
    for name, key in result.items():
        print(f"  {name} -> {key}", file=sys.stderr)
    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0


def cmd_url(client: LibraryClient, args: argparse.Namespace) -> int:
    print(client.read_url(args.key))
    return 0


def cmd_rename(client: LibraryClient, args: argparse.Namespace) -> int:
    print(client.rename(args.key, args.new_name))
    return 0


def cmd_delete(client: LibraryClient, args: argparse.Namespace) -> int:
    for key in args.keys:
        client.delete(key)
        print(f"Deleted {key}", file=sys.stderr)
    return 0


if __name__ == "__main__":
    sys.exit(main())
