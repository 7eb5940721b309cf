"""Repo entrypoint.

Keep this file tiny so `uv run python main.py` works, while the real
implementation lives in the `discrete_control` package.
"""

from discrete_control.main import main


if __name__ == "__main__":
    raise SystemExit(main())
