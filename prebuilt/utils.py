from contextlib import contextmanager
from functools import wraps

from actions import core
from rich.console import Console

console = Console(color_system="truecolor", width=120)


@contextmanager
def action_group(name: str):
    core.start_group(name)
    try:
        yield
    finally:
        core.end_group()


def action(f):
    @wraps(f)
    def g():
        try:
            f()
        except Exception as e:
            with action_group("Stacktrace"):
                console.print_exception(show_locals=True)
            core.set_failed(e)
            return 1
        return 0

    return g


def truthy(value: str | None) -> bool:
    return (value or "").strip().lower() == "true"
