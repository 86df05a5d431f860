"""
JSON entry point for hosts that run openwith as a subprocess.

Reads one request object from stdin and writes one response object to
stdout:

    {"action": "candidates", "files": ["/path/a.png"]}
    {"action": "commands", "files": [...], "candidate": "org.gnome.eog.desktop"}
    {"action": "details", "files": [...], "candidate": "org.gnome.eog.desktop"}
    {"action": "mimetypes", "files": [...]}
    {"action": "settings"}
    {"action": "settings", "values": {"use-file-tool": false}, "save": true}

Exit codes:
- 0: Success, including "no application found" results.
- 2: Malformed request. An {"error": ...} object is still printed.
"""

from __future__ import annotations

import json
import sys
from dataclasses import asdict

import structlog

from openwith.core.config import PlatformSetting, Settings, configure_logging, load_config
from openwith.core.provider import CandidateInfo, XDGAppProvider

ACTIONS = ("candidates", "commands", "details", "mimetypes", "settings")

EXIT_OK = 0
EXIT_BAD_REQUEST = 2


class RequestError(ValueError):
    """The request is not something we can act on."""


def parse_request(text: str) -> dict:
    """Validate a raw request. Raises RequestError on malformed input."""
    try:
        request = json.loads(text)
    except json.JSONDecodeError as e:
        raise RequestError(f"invalid JSON: {e.msg}") from None
    if not isinstance(request, dict):
        raise RequestError("request must be a JSON object")

    action = request.get("action")
    if action not in ACTIONS:
        raise RequestError(f"unknown action {action!r}")

    files = request.get("files", [])
    if not isinstance(files, list) or not all(isinstance(f, str) for f in files):
        raise RequestError("'files' must be a list of paths")
    if action in ("commands", "details") and not isinstance(request.get("candidate"), str):
        raise RequestError(f"'{action}' requires a 'candidate' id")
    if action == "settings":
        values = request.get("values", {})
        if not isinstance(values, dict):
            raise RequestError("'values' must be an object")
        for key, value in values.items():
            if not isinstance(value, bool):
                raise RequestError(f"setting '{key}' expects true or false, got {value!r}")
    return request


def _find_candidate(candidates: list[CandidateInfo], desktop_id: str) -> CandidateInfo | None:
    for candidate in candidates:
        if candidate.id == desktop_id:
            return candidate
    return None


def _candidates_response(provider: XDGAppProvider, files: list[str]) -> dict:
    candidates = provider.get_app_candidates(files)
    mime_types = provider.get_mime_types()
    if candidates:
        return {"candidates": [asdict(c) for c in candidates], "mime_types": mime_types}
    # An empty result means different things to the user depending on why
    error = "no_mime_type" if mime_types == ["(none)"] else "no_app_found"
    return {"candidates": [], "mime_types": mime_types, "error": error}


def _settings_response(provider: XDGAppProvider, request: dict) -> dict:
    values = request.get("values", {})
    if values:
        provider.set_platform_settings(
            [PlatformSetting(key, key, value) for key, value in values.items()]
        )
    response: dict = {"settings": [asdict(s) for s in provider.get_platform_settings()]}
    if request.get("save"):
        response["saved"] = provider.save_platform_settings()
    return response


def handle_request(provider: XDGAppProvider, request: dict) -> dict:
    """Run one validated request against provider."""
    action = request["action"]
    files = request.get("files", [])

    if action == "settings":
        return _settings_response(provider, request)
    if action == "candidates":
        return _candidates_response(provider, files)

    candidates = provider.get_app_candidates(files)
    if action == "mimetypes":
        return {"mime_types": provider.get_mime_types()}

    candidate = _find_candidate(candidates, request["candidate"])
    if candidate is None:
        return {"error": "unknown_candidate", "candidate": request["candidate"]}
    if action == "details":
        fields = provider.get_candidate_details(candidate)
        return {"details": [{"label": f.label, "value": f.value} for f in fields]}
    return {"commands": provider.generate_launch_commands(candidate, files)}


# === Entry point ===


def main() -> None:
    # Config warnings must go to stderr, never into the JSON on stdout
    configure_logging(Settings())
    settings = load_config()
    configure_logging(settings)
    log = structlog.get_logger()

    try:
        request = parse_request(sys.stdin.read())
    except RequestError as e:
        log.warning("bad_request", error=str(e))
        print(json.dumps({"error": "bad_request", "reason": str(e)}))
        sys.exit(EXIT_BAD_REQUEST)

    provider = XDGAppProvider(settings)
    response = handle_request(provider, request)
    log.info("request_handled", action=request["action"], error=response.get("error"))
    print(json.dumps(response))
    sys.exit(EXIT_OK)


if __name__ == "__main__":
    main()
