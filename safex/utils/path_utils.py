from pathlib import Path


def to_repo_relative(path: str, repo_path: str) -> str:
    """Return ``path`` relative to ``repo_path`` with forward slashes."""
    try:
        return Path(path).resolve().relative_to(Path(repo_path).resolve()).as_posix()
    except (ValueError, RuntimeError):
        return path.replace("\\", "/")


def is_hidden(name: str) -> bool:
    return name.startswith(".")
