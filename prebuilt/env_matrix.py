import json
import os
from pathlib import Path
from typing import Any

from actions import core

from .errors import ParseError
from .utils import action, action_group

MATRIX_FILE = Path(".github/matrix.json")


def ruby_suffix(event_name: str | None) -> str:
    suffix = "tidy" if event_name == "pull_request" else "full"
    core.info(f"Using {suffix} Ruby versions for {event_name or 'unknown'} event")
    return suffix


def load(path: Path = MATRIX_FILE) -> dict[str, Any]:
    core.info(f"Reading {path}...")

    try:
        with open(path) as f:
            data = json.load(f)
    except FileNotFoundError as e:
        raise ParseError(f"{path} not found") from e
    except json.JSONDecodeError as e:
        raise ParseError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ParseError(f"Invalid JSON in {path}: expected an object")

    return data


def section(data: dict[str, Any], key: str) -> list | dict:
    if data.get(key) is None:
        raise ParseError(f"No {key} section found in matrix.json")
    if not isinstance(data[key], (list, dict)):
        raise ParseError(f"Invalid JSON in {key} section")
    return data[key]


def ruby_versions(data: dict[str, Any], suffix: str) -> list | dict:
    ruby = section(data, "ruby")
    if not isinstance(ruby, dict):
        raise ParseError("Invalid JSON in ruby section")
    return section(ruby, suffix)


@action
def env_matrix():
    data = load(Path(os.environ.get("MATRIX_FILE", MATRIX_FILE)))

    try:
        env = section(data, "env")
        rubies = ruby_versions(data, ruby_suffix(os.environ.get("GITHUB_EVENT_NAME")))
    except ParseError:
        with action_group("matrix.json content"):
            core.info(json.dumps(data, indent=2))
        raise

    with action_group("Generated env matrix"):
        core.info(json.dumps(env, indent=2))
    core.set_output("env-matrix", env)

    with action_group("Generated ruby matrix"):
        core.info(json.dumps(rubies, indent=2))
    core.set_output("ruby-matrix", rubies)
