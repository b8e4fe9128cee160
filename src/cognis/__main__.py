"""Module entrypoint for `python -m cognis`."""

try:
    from .cli import run
except ImportError:
    # Script execution outside package context.
    from cognis.cli import run


if __name__ == "__main__":
    raise SystemExit(run())
