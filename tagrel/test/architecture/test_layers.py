from __future__ import annotations

import ast
from dataclasses import dataclass
from pathlib import Path

# Lower layers never import higher ones.
LAYERS = ("core", "platform", "output", "git", "tools", "release", "pipeline", "cli")

# tools and release report pipeline error types; pipeline.model and
# pipeline.errors are plain data and sit below them.
SHARED_DATA = ("tagrel.pipeline.errors", "tagrel.pipeline.model")


@dataclass(frozen=True, slots=True)
class ImportRef:
    module: str
    line: int


def tagrel_root() -> Path:
    return Path(__file__).resolve().parents[2]


def iter_source_files() -> list[Path]:
    root = tagrel_root()
    files: list[Path] = []
    for path in sorted(root.rglob("*.py")):
        rel = path.relative_to(root)
        if rel.parts[0] == "test" or "__pycache__" in rel.parts:
            continue
        files.append(path)
    return files


def parse_imports(path: Path) -> list[ImportRef]:
    tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
    imports: list[ImportRef] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            imports.extend(ImportRef(module=alias.name, line=node.lineno) for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module and not node.level:
            imports.append(ImportRef(module=node.module, line=node.lineno))
    return imports


def matches_prefix(module: str, prefix: str) -> bool:
    return module == prefix or module.startswith(prefix + ".")


def test_layers_only_import_downwards() -> None:
    root = tagrel_root()
    offenders: list[str] = []

    for file_path in iter_source_files():
        rel = file_path.relative_to(root)
        if len(rel.parts) < 2 or rel.parts[0] not in LAYERS:
            continue
        level = LAYERS.index(rel.parts[0])
        for item in parse_imports(file_path):
            if not matches_prefix(item.module, "tagrel") or item.module == "tagrel":
                continue
            if any(matches_prefix(item.module, shared) for shared in SHARED_DATA):
                continue
            target = item.module.split(".")[1]
            if target in LAYERS and LAYERS.index(target) > level:
                offenders.append(f"{rel}:{item.line}: '{item.module}' is above {rel.parts[0]}")

    assert not offenders, "layering violations:\n" + "\n".join(offenders)


def test_subprocess_is_confined_to_process_module() -> None:
    root = tagrel_root()
    offenders: list[str] = []

    for file_path in iter_source_files():
        rel = file_path.relative_to(root)
        if rel.as_posix() == "platform/process.py":
            continue
        for item in parse_imports(file_path):
            if matches_prefix(item.module, "subprocess"):
                offenders.append(f"{rel}:{item.line}: direct subprocess import")

    assert not offenders, "subprocess policy violations:\n" + "\n".join(offenders)


def test_rich_is_confined_to_console_module() -> None:
    root = tagrel_root()
    offenders: list[str] = []

    for file_path in iter_source_files():
        rel = file_path.relative_to(root)
        if rel.as_posix() == "output/console.py":
            continue
        for item in parse_imports(file_path):
            if matches_prefix(item.module, "rich"):
                offenders.append(f"{rel}:{item.line}: direct rich import '{item.module}'")

    assert not offenders, "rich usage policy violations:\n" + "\n".join(offenders)
