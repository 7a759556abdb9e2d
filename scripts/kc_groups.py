"""Command-line helper for managing Keycloak groups.

This module serves as a CLI wrapper around kcgroups.core.keycloak services.
"""
from __future__ import annotations
import argparse
import json
import logging
import sys
from pathlib import Path

SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from kcgroups.config import load_settings
from kcgroups.core.keycloak import (
    KeycloakClient,
    KeycloakError,
    GroupAttribute,
    GroupMembersParams,
    ManagementPermissionReference,
)


def _parse_attributes(items: list[str] | None) -> dict[str, list[str]]:
    """Turn repeated key=value flags into Keycloak's multi-valued attribute map."""
    attributes: dict[str, list[str]] = {}
    for item in items or []:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise argparse.ArgumentTypeError(f"Invalid attribute '{item}': expected key=value")
        attributes.setdefault(key, []).append(value)
    return attributes


def _emit(value) -> None:
    if isinstance(value, list):
        value = [item.to_dict() for item in value]
    elif hasattr(value, "to_dict"):
        value = value.to_dict()
    print(json.dumps(value, indent=2, sort_keys=True))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Keycloak groups helper")
    parser.add_argument("--kc-url", help="Keycloak base URL (default: KEYCLOAK_URL)")
    parser.add_argument("--realm", help="Realm (default: KEYCLOAK_REALM)")
    parser.add_argument("--client-id", help="Service account client ID (default: KEYCLOAK_CLIENT_ID)")
    parser.add_argument("--client-secret", help="Service account secret (default: KEYCLOAK_CLIENT_SECRET)")
    parser.add_argument("--page-size", type=int, help="Page size for attribute search")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log requests")

    sub = parser.add_subparsers(dest="cmd")

    sl = sub.add_parser("list")
    sl.add_argument("--search")
    sl.add_argument("--brief", action="store_true")
    sl.add_argument("--first", type=int, default=0)
    sl.add_argument("--max", type=int, default=100)
    sl.add_argument("--with-subgroups", action="store_true",
                    help="Populate subGroups (forces a search parameter)")

    sc = sub.add_parser("count")
    sc.add_argument("--search")
    sc.add_argument("--top", action="store_true", help="Count only top-level groups")

    sg = sub.add_parser("get")
    sg.add_argument("group_id")

    scr = sub.add_parser("create")
    scr.add_argument("name")
    scr.add_argument("--attr", action="append", help="Attribute as key=value (repeatable)")

    scs = sub.add_parser("create-subgroup")
    scs.add_argument("parent_id")
    scs.add_argument("name")
    scs.add_argument("--attr", action="append", help="Attribute as key=value (repeatable)")

    ssub = sub.add_parser("subgroups")
    ssub.add_argument("group_id")

    sd = sub.add_parser("delete")
    sd.add_argument("group_id")

    sf = sub.add_parser("find")
    sf.add_argument("key")
    sf.add_argument("value")

    sm = sub.add_parser("members")
    sm.add_argument("group_id")
    sm.add_argument("--brief", action="store_true")
    sm.add_argument("--first", type=int)
    sm.add_argument("--max", type=int)

    sp = sub.add_parser("permissions")
    sp.add_argument("group_id")
    toggle = sp.add_mutually_exclusive_group()
    toggle.add_argument("--enable", dest="enabled", action="store_true", default=None)
    toggle.add_argument("--disable", dest="enabled", action="store_false")

    return parser


def main(argv: list[str] | None = None) -> None:
    """Command-line entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.cmd:
        parser.print_help()
        return

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    config = load_settings({
        "url": args.kc_url,
        "realm": args.realm,
        "client_id": args.client_id,
        "client_secret": args.client_secret,
        "page_size": args.page_size,
        "debug": args.verbose or None,
    })
    try:
        config.validate()
    except ValueError as e:
        parser.error(str(e))

    try:
        attributes = _parse_attributes(getattr(args, "attr", None))
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))

    try:
        with KeycloakClient.connect(config) as client:
            groups = client.groups
            if args.cmd == "list":
                if args.with_subgroups:
                    _emit(groups.list_with_sub_groups(args.search or "", args.brief, args.first, args.max))
                else:
                    _emit(groups.list_paginated(args.search, args.brief, args.first, args.max))
            elif args.cmd == "count":
                _emit({"count": groups.count(args.search, True if args.top else None)})
            elif args.cmd == "get":
                _emit(groups.get(args.group_id))
            elif args.cmd == "create":
                _emit({"id": groups.create(args.name, attributes)})
            elif args.cmd == "create-subgroup":
                _emit({"id": groups.create_sub_group(args.parent_id, args.name, attributes)})
            elif args.cmd == "subgroups":
                _emit(groups.list_sub_groups(args.group_id))
            elif args.cmd == "delete":
                groups.delete(args.group_id)
                _emit({"deleted": args.group_id})
            elif args.cmd == "find":
                _emit(groups.get_by_attribute(GroupAttribute(args.key, args.value)))
            elif args.cmd == "members":
                params = GroupMembersParams(
                    brief_representation=True if args.brief else None,
                    first=args.first,
                    max=args.max,
                )
                _emit(groups.list_members(args.group_id, params))
            elif args.cmd == "permissions":
                if args.enabled is None:
                    _emit(groups.get_management_permissions(args.group_id))
                else:
                    ref = ManagementPermissionReference(enabled=args.enabled)
                    _emit(groups.update_management_permissions(args.group_id, ref))
    except (KeycloakError, ValueError) as e:
        print(f"[kc-groups] Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
