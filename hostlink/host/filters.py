"""
Search filter mini language

    "Actor"                         -> {"documentType": "Actor"}
    "documentType:Actor,folder:abc" -> {"documentType": "Actor", "folder": "abc"}

String comparisons are case-insensitive. Dotted keys walk nested mappings.
"""

from typing import Any, Dict, Mapping, Union

_MISSING = object()


def parse_filter_string(filter_str: str) -> Dict[str, str]:
    if ":" not in filter_str:
        return {"documentType": filter_str.strip()}

    filters: Dict[str, str] = {}
    for part in filter_str.split(","):
        if ":" not in part:
            continue
        key, _, value = part.partition(":")
        key, value = key.strip(), value.strip()
        if key and value:
            filters[key] = value
    return filters


def normalize_filters(filters: Union[None, str, Mapping[str, Any]]) -> Dict[str, str]:
    if not filters:
        return {}
    if isinstance(filters, str):
        return parse_filter_string(filters)
    return {str(k): str(v) for k, v in filters.items() if v not in (None, "")}


def _lookup(document: Mapping[str, Any], key: str) -> Any:
    if key in document:
        return document[key]

    current: Any = document
    for part in key.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _folder_matches(folder: Any, wanted: str) -> bool:
    folder_id = folder.get("id") if isinstance(folder, Mapping) else folder
    if not folder_id:
        return False
    folder_id = str(folder_id)
    return wanted in (folder_id, f"Folder.{folder_id}") or f"Folder.{wanted}" == folder_id


def _package_matches(package: Any, wanted: str) -> bool:
    if not package:
        return False
    package = str(package).lower()
    wanted = wanted.lower()
    return package == wanted or f"compendium.{package}" == wanted


def matches_all_filters(document: Mapping[str, Any], filters: Mapping[str, str]) -> bool:
    for key, wanted in filters.items():
        if not wanted:
            continue

        if key == "folder":
            if not _folder_matches(document.get("folder"), wanted):
                return False
            continue

        if key == "package":
            if not _package_matches(document.get("package"), wanted):
                return False
            continue

        value = _lookup(document, key)
        if value is _MISSING or value is None:
            return False
        if str(value).lower() != wanted.lower():
            return False

    return True
