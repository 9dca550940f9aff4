# tools.py
# Codebase inspection tools: all callable implementations plus the registry.
#
# Agents never call these functions directly; they go through
# ToolRegistry.invoke(name, params). Every tool returns a text report and
# never raises for a missing file or an empty project. Only an unknown tool
# name is an error.

import io
import json
import os
import re
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Literal

from pydantic import BaseModel, Field, ValidationError
from rich.console import Console
from rich.text import Text
from rich.tree import Tree

from code_helper.log import get_logger

logger = get_logger("tools")

SEARCH_EXTENSIONS = (".py", ".ts", ".tsx", ".js", ".jsx", ".json", ".md", ".txt", ".toml")
EXCLUDED_DIRS = {"node_modules", "__pycache__", "venv", "dist", "build", "site-packages"}
FILES_PER_EXTENSION = 50
MAX_SEARCH_RESULTS = 20
SEARCH_CONTEXT_LINES = 2
IDENTIFIER_FILE_LIMIT = 100
MAX_IDENTIFIER_RESULTS = 15
CONTENT_PREVIEW_LINES = 20
DEPTH_LEVELS = {"shallow": 2, "medium": 3, "deep": 4}


class ToolNotFoundError(Exception):
    """Raised when a caller asks the registry for a tool it does not hold."""


# ---------------------------------------------------------------------------
# Parameter models
# ---------------------------------------------------------------------------


class SearchParams(BaseModel):
    query: str = Field(..., min_length=1, description="Case-insensitive text to look for.")
    context: str | None = Field(default=None, description="Why the search is being run.")


class DescribeFileParams(BaseModel):
    file_path: str = Field(..., min_length=1)
    analysis_type: Literal["structure", "content", "dependencies", "variables"] = "structure"


class DescribeProjectParams(BaseModel):
    depth: Literal["shallow", "medium", "deep"] = "medium"


class FindIdentifierParams(BaseModel):
    name: str = Field(..., min_length=1)
    scope: Literal["current_file", "project_wide", "specific_directory"] = "project_wide"
    file_path: str | None = Field(default=None, description="Required for current_file scope.")
    directory: str = Field(default="src", description="Used for specific_directory scope.")


class DescribeDependenciesParams(BaseModel):
    file_path: str = Field(..., min_length=1)
    include_dev: bool = False


# ---------------------------------------------------------------------------
# File helpers
# ---------------------------------------------------------------------------


def _resolve(root: Path, file_path: str) -> Path | None:
    """Absolute paths pass through; relative ones must stay inside root."""
    candidate = Path(file_path)
    if candidate.is_absolute():
        return candidate
    resolved = (root / candidate).resolve()
    if resolved != root and root not in resolved.parents:
        return None
    return resolved


def _read(path: Path) -> str | None:
    try:
        return path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None


def _iter_files(root: Path, suffix: str | None = None):
    """Project files in a stable order, skipping hidden and vendored directories."""
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(
            d for d in dirnames if not d.startswith(".") and d not in EXCLUDED_DIRS
        )
        for filename in sorted(filenames):
            if filename.startswith("."):
                continue
            if suffix is None or filename.endswith(suffix):
                yield Path(dirpath) / filename


def _rel(root: Path, path: Path) -> str:
    try:
        return str(path.relative_to(root))
    except ValueError:
        return str(path)


# ---------------------------------------------------------------------------
# search
# ---------------------------------------------------------------------------


async def _search(root: Path, params: SearchParams) -> str:
    needle = params.query.lower()
    results: list[str] = []

    for suffix in SEARCH_EXTENSIONS:
        for index, path in enumerate(_iter_files(root, suffix)):
            if index >= FILES_PER_EXTENSION:
                break
            text = _read(path)
            if text is None or needle not in text.lower():
                continue
            lines = text.splitlines()
            results.append(f"Found in {_rel(root, path)}")
            for i, line in enumerate(lines):
                if needle in line.lower():
                    start = max(0, i - SEARCH_CONTEXT_LINES)
                    end = min(len(lines), i + SEARCH_CONTEXT_LINES + 1)
                    context = " | ".join(line.strip() for line in lines[start:end])
                    results.append(f"  Lines {start + 1}-{end}: {context}")
                    break

    if not results:
        return (
            f'No files found containing "{params.query}". '
            "Try a different search term or check the project root."
        )
    heading = f'Search results for "{params.query}"'
    if params.context:
        heading += f" ({params.context})"
    return heading + ":\n" + "\n".join(results[:MAX_SEARCH_RESULTS])


# ---------------------------------------------------------------------------
# describe_file
# ---------------------------------------------------------------------------

_COMMENT_PREFIXES = ("#", "//", "/*", "*")
_IMPORT_PREFIXES = ("import ", "from ", "export ", "require(")
_DEFINITION = re.compile(r"\b(def|class|function)\b|=>")
_JS_VARIABLE = re.compile(r"\b(?:const|let|var)\s+(\w+)\s*=")
_PY_VARIABLE = re.compile(r"^([A-Za-z_]\w*)\s*(?::[^=]+)?=(?!=)", re.MULTILINE)


def _declared_variables(text: str) -> list[str]:
    names = _JS_VARIABLE.findall(text) + _PY_VARIABLE.findall(text)
    return list(dict.fromkeys(names))


async def _describe_file(root: Path, params: DescribeFileParams) -> str:
    path = _resolve(root, params.file_path)
    if path is None:
        return f"Error: {params.file_path} is outside the project root."
    if not path.is_file():
        return f"File not found: {params.file_path}"
    text = _read(path)
    if text is None:
        return f"Error: could not read {params.file_path}."
    lines = text.splitlines()

    match params.analysis_type:
        case "structure":
            stripped = [line.strip() for line in lines]
            structure = {
                "totalLines": len(lines),
                "emptyLines": sum(1 for s in stripped if not s),
                "commentLines": sum(1 for s in stripped if s.startswith(_COMMENT_PREFIXES)),
                "importLines": sum(1 for s in stripped if s.startswith(_IMPORT_PREFIXES)),
                "definitionLines": sum(1 for s in stripped if _DEFINITION.search(s)),
            }
            return f"File structure analysis for {params.file_path}:\n{json.dumps(structure, indent=2)}"
        case "content":
            preview = "\n".join(lines[:CONTENT_PREVIEW_LINES])
            return f"Content preview for {params.file_path} (first {CONTENT_PREVIEW_LINES} lines):\n{preview}"
        case "dependencies":
            imports = [line.strip() for line in lines if line.strip().startswith(_IMPORT_PREFIXES)]
            body = "\n".join(imports) if imports else "(no import or export lines)"
            return f"Dependencies and exports in {params.file_path}:\n{body}"
        case "variables":
            names = _declared_variables(text)
            body = ", ".join(names) if names else "(no declared variables)"
            return f"Variables found in {params.file_path}:\n{body}"


# ---------------------------------------------------------------------------
# describe_project
# ---------------------------------------------------------------------------


def _fill_tree(node: Tree, directory: Path, level: int, max_level: int) -> int:
    """Add children of `directory` to `node`; returns the number of entries added."""
    try:
        entries = sorted(directory.iterdir(), key=lambda p: (not p.is_dir(), p.name))
    except OSError as exc:
        node.add(Text(f"[error reading directory: {exc}]"))
        return 1

    added = 0
    for entry in entries:
        if entry.name.startswith(".") or entry.name in EXCLUDED_DIRS:
            continue
        if entry.is_dir():
            if level < max_level:
                child = node.add(Text(f"{entry.name}/"))
                _fill_tree(child, entry, level + 1, max_level)
            else:
                try:
                    count = sum(1 for _ in entry.iterdir())
                except OSError:
                    count = 0
                node.add(Text(f"{entry.name}/ ({count} items)"))
        else:
            node.add(Text(entry.name))
        added += 1
    return added


async def _describe_project(root: Path, params: DescribeProjectParams) -> str:
    if not root.is_dir():
        return f"Error: project root not found: {root}"
    max_level = DEPTH_LEVELS[params.depth]
    tree = Tree(Text(f"{root.name or str(root)}/"))
    if _fill_tree(tree, root, 1, max_level) == 0:
        return f"Project structure analysis ({params.depth} depth):\nNo files found in {root}."

    buffer = io.StringIO()
    Console(file=buffer, width=120, color_system=None, soft_wrap=True).print(tree)
    return f"Project structure analysis ({params.depth} depth):\n{buffer.getvalue().rstrip()}"


# ---------------------------------------------------------------------------
# find_identifier
# ---------------------------------------------------------------------------


def _declaration_pattern(name: str) -> re.Pattern:
    escaped = re.escape(name)
    return re.compile(
        rf"\b(?:def|class|function|const|let|var)\s+{escaped}\b|^\s*{escaped}\s*(?::[^=]+)?=(?!=)"
    )


async def _find_identifier(root: Path, params: FindIdentifierParams) -> str:
    match params.scope:
        case "current_file":
            if not params.file_path:
                return "Error: current_file scope needs a file_path."
            path = _resolve(root, params.file_path)
            if path is None or not path.is_file():
                return f"File not found: {params.file_path}"
            candidates = [path]
        case "specific_directory":
            directory = _resolve(root, params.directory)
            if directory is None or not directory.is_dir():
                return f"Directory not found: {params.directory}"
            candidates = list(_iter_files(directory))
        case _:
            candidates = list(_iter_files(root))

    usage = re.compile(rf"\b{re.escape(params.name)}\b")
    declaration = _declaration_pattern(params.name)
    results: list[str] = []

    for path in candidates[:IDENTIFIER_FILE_LIMIT]:
        text = _read(path)
        if text is None or params.name not in text:
            continue
        lines = text.splitlines()
        for i, line in enumerate(lines):
            if not usage.search(line):
                continue
            kind = "declaration" if declaration.search(line) else "usage"
            start, end = max(0, i - 1), min(len(lines), i + 2)
            context = "\n  ".join(lines[start:end])
            results.append(f"Found ({kind}) in {_rel(root, path)}:{i + 1}\n  {context}")
            break

    if not results:
        return f'Identifier "{params.name}" not found in {params.scope.replace("_", " ")} scope.'
    return f'Identifier "{params.name}" found in:\n' + "\n\n".join(results[:MAX_IDENTIFIER_RESULTS])


# ---------------------------------------------------------------------------
# describe_dependencies
# ---------------------------------------------------------------------------

_PY_IMPORT = re.compile(r"^\s*(?:from\s+([\w.]+)\s+import|import\s+([\w.]+))")
_JS_IMPORT = re.compile(r"""^\s*import\s+(?:.*?\s+from\s+)?['"]([^'"]+)['"]""")
_JS_REQUIRE = re.compile(r"""require\(\s*['"]([^'"]+)['"]\s*\)""")
_JS_EXPORT = re.compile(r"^\s*export\s+(?:default\s+)?(?:async\s+)?(?:\w+\s+)?(\w+)")
_PY_EXPORT = re.compile(r"^(?:async\s+)?(?:def|class)\s+([A-Za-z]\w*)")


def _file_imports_exports(text: str) -> tuple[list[str], list[str]]:
    imports: list[str] = []
    exports: list[str] = []
    for line in text.splitlines():
        for pattern in (_JS_IMPORT, _PY_IMPORT):
            match = pattern.match(line)
            if match:
                imports.append(next(g for g in match.groups() if g))
                break
        imports.extend(_JS_REQUIRE.findall(line))
        for pattern in (_JS_EXPORT, _PY_EXPORT):
            match = pattern.match(line)
            if match:
                exports.append(match.group(1))
                break
    return list(dict.fromkeys(imports)), list(dict.fromkeys(exports))


def _requirements(path: Path) -> list[str]:
    text = _read(path) or ""
    return [
        line.strip()
        for line in text.splitlines()
        if line.strip() and not line.strip().startswith(("#", "-"))
    ]


def _project_dependencies(root: Path, include_dev: bool) -> dict[str, Any]:
    found: dict[str, Any] = {}

    pyproject = root / "pyproject.toml"
    if pyproject.is_file():
        try:
            data = tomllib.loads(_read(pyproject) or "")
        except tomllib.TOMLDecodeError:
            data = {}
        project = data.get("project", {})
        entry: dict[str, Any] = {"dependencies": project.get("dependencies", [])}
        if include_dev:
            entry["optionalDependencies"] = project.get("optional-dependencies", {})
        found["pyproject.toml"] = entry

    package_json = root / "package.json"
    if package_json.is_file():
        try:
            data = json.loads(_read(package_json) or "{}")
        except json.JSONDecodeError:
            data = {}
        entry = {"dependencies": data.get("dependencies", {})}
        if include_dev:
            entry["devDependencies"] = data.get("devDependencies", {})
        found["package.json"] = entry

    for name in ("requirements.txt", "requirements-dev.txt"):
        if name == "requirements-dev.txt" and not include_dev:
            continue
        path = root / name
        if path.is_file():
            found[name] = _requirements(path)

    return found


async def _describe_dependencies(root: Path, params: DescribeDependenciesParams) -> str:
    path = _resolve(root, params.file_path)
    if path is None or not path.is_file():
        return f"File not found: {params.file_path}"
    text = _read(path)
    if text is None:
        return f"Error: could not read {params.file_path}."

    imports, exports = _file_imports_exports(text)
    report = {
        "file": params.file_path,
        "imports": imports,
        "exports": exports,
        "projectDependencies": _project_dependencies(root, params.include_dev),
    }
    return f"Dependency analysis for {params.file_path}:\n{json.dumps(report, indent=2)}"


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Tool:
    name: str
    description: str
    params: type[BaseModel]
    run: Callable[[Path, Any], Awaitable[str]]


TOOLS: dict[str, Tool] = {
    tool.name: tool
    for tool in (
        Tool(
            "search",
            "Search project files for a text fragment; reports matches with surrounding lines.",
            SearchParams,
            _search,
        ),
        Tool(
            "describe_file",
            "Report the structure, content preview, imports or declared variables of one file.",
            DescribeFileParams,
            _describe_file,
        ),
        Tool(
            "describe_project",
            "Render the project directory tree to a bounded depth.",
            DescribeProjectParams,
            _describe_project,
        ),
        Tool(
            "find_identifier",
            "Locate declarations and usages of an identifier.",
            FindIdentifierParams,
            _find_identifier,
        ),
        Tool(
            "describe_dependencies",
            "Report a file's imports and exports plus the project's declared dependencies.",
            DescribeDependenciesParams,
            _describe_dependencies,
        ),
    )
}


class ToolRegistry:
    """
    Name-keyed access to the inspection tools over one project root.

    Example:
        registry = ToolRegistry("/path/to/project")
        report = await registry.invoke("search", {"query": "parse_plan"})
    """

    def __init__(self, root: str | Path = ".") -> None:
        self.root = Path(root).resolve()
        self._tools = dict(TOOLS)

    def names(self) -> list[str]:
        return list(self._tools)

    def get(self, name: str) -> Tool:
        try:
            return self._tools[name]
        except KeyError:
            raise ToolNotFoundError(f"Tool '{name}' is not in the registry.") from None

    async def invoke(self, name: str, params: dict[str, Any]) -> str:
        tool = self.get(name)
        try:
            validated = tool.params.model_validate(params)
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(p) for p in err['loc']) or 'params'}: {err['msg']}"
                for err in exc.errors()
            )
            return f"Error: invalid parameters for {name}: {problems}"

        logger.debug("tool_invoked", tool=name, params=validated.model_dump())
        try:
            return await tool.run(self.root, validated)
        except Exception as exc:
            logger.warning("tool_failed", tool=name, error=str(exc))
            return f"Error running {name}: {exc}"
