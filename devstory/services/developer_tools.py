"""
Developer tooling overview for a repository: package.json scripts and dependencies,
project layout, CI/CD setup, heuristic insights and recommendations.

Only Node-style projects are covered; a repository without a root package.json is
reported as not found.
"""

import base64
import binascii
import json
import logging
import re
from typing import Any, Dict, List, Optional

from devstory.core.exceptions import InvalidInputError, ResourceNotFoundError, UpstreamError, UpstreamErrorKind
from devstory.core.models import (
    CiCdAnalysis,
    CodebaseInsights,
    CommandAnalysis,
    CommandCategory,
    ComplexityEstimate,
    DependencyAnalysis,
    DependencyType,
    DeveloperToolsResponse,
    PackageJsonAnalysis,
    ProjectStructure,
    QualityEstimate,
    Workflow,
)
from devstory.services.github_service import GitHubClient
from devstory.utils.helpers import gather_bounded

logger = logging.getLogger(__name__)

MANIFEST_PATH = "package.json"

# GitHub answers these for features a repository simply does not have
_OPTIONAL_KINDS = (UpstreamErrorKind.NOT_FOUND, UpstreamErrorKind.FORBIDDEN, UpstreamErrorKind.UNPROCESSABLE)

CONFIG_FILE = re.compile(
    r"\.(json|yaml|yml|toml|ini|env|config)$"
    r"|^(package\.json|tsconfig\.json|tailwind\.config\.js|next\.config\.js|webpack\.config\.js)$",
    re.IGNORECASE,
)
TEST_FILE = re.compile(r"\.(test|spec)\.(js|ts|jsx|tsx)$|^(tests?|__tests__|spec)", re.IGNORECASE)
DOC_FILE = re.compile(r"\.(md|rst|txt)$|^(readme|changelog|contributing|license)", re.IGNORECASE)
BUILD_FILE = re.compile(r"\.(config|webpack|rollup|vite)\.(js|ts)$|^(build|dist|lib|esm)", re.IGNORECASE)
CI_FILE = re.compile(
    r"^\.github/workflows/.*\.ya?ml$|^(\.gitlab-ci\.yml|\.travis\.yml|Jenkinsfile)$|^\.circleci/",
    re.IGNORECASE,
)

CI_PLATFORMS = [
    (re.compile(r"^\.gitlab-ci\.yml$", re.IGNORECASE), "GitLab CI"),
    (re.compile(r"^\.travis\.yml$", re.IGNORECASE), "Travis CI"),
    (re.compile(r"^Jenkinsfile$"), "Jenkins"),
    (re.compile(r"^\.circleci/", re.IGNORECASE), "CircleCI"),
]

COMMAND_DESCRIPTIONS = {
    "build": "Build the project for production",
    "dev": "Start development server",
    "start": "Start the application",
    "test": "Run tests",
    "lint": "Run linter",
    "format": "Format code",
    "deploy": "Deploy the application",
    "install": "Install dependencies",
    "clean": "Clean build artifacts",
    "type-check": "Run TypeScript type checking",
}

# first match wins; (category, words looked for in the script name, words looked for in the command)
COMMAND_RULES = [
    (CommandCategory.TEST, ("test",), ("test", "jest", "vitest")),
    (CommandCategory.BUILD, ("build",), ("build", "webpack", "vite")),
    (CommandCategory.DEV, ("dev", "start"), ("dev", "watch")),
    (CommandCategory.DEPLOY, ("deploy",), ("deploy", "push")),
    (CommandCategory.LINT, ("lint",), ("lint", "eslint")),
    (CommandCategory.FORMAT, ("format",), ("format", "prettier")),
]

DEPENDENCY_PURPOSES = {
    # frameworks
    "react": "UI Framework",
    "vue": "UI Framework",
    "angular": "UI Framework",
    "next": "React Framework",
    "nuxt": "Vue Framework",
    "svelte": "UI Framework",
    "solid-js": "UI Framework",
    # state management
    "redux": "State Management",
    "mobx": "State Management",
    "zustand": "State Management",
    "jotai": "State Management",
    # styling
    "styled-components": "CSS-in-JS Styling",
    "emotion": "CSS-in-JS Styling",
    "tailwindcss": "Utility-first CSS",
    "bootstrap": "CSS Framework",
    "material-ui": "Component Library",
    "antd": "Component Library",
    # testing
    "jest": "Testing Framework",
    "vitest": "Testing Framework",
    "cypress": "E2E Testing",
    "playwright": "E2E Testing",
    "testing-library": "Testing Utilities",
    # build tools
    "webpack": "Module Bundler",
    "vite": "Build Tool",
    "rollup": "Module Bundler",
    "esbuild": "Build Tool",
    "parcel": "Build Tool",
    # linting and formatting
    "eslint": "Code Linting",
    "prettier": "Code Formatting",
    "stylelint": "CSS Linting",
    # typescript
    "typescript": "Type System",
    "@types": "Type Definitions",
    # http clients
    "axios": "HTTP Client",
    "fetch": "HTTP Client",
    "ky": "HTTP Client",
    # databases
    "mongoose": "MongoDB ODM",
    "prisma": "Database ORM",
    "sequelize": "SQL ORM",
    "typeorm": "TypeScript ORM",
    # authentication
    "passport": "Authentication",
    "jwt": "JWT Token Handling",
    "bcrypt": "Password Hashing",
    "auth0": "Authentication Service",
    # utilities
    "lodash": "Utility Library",
    "moment": "Date Manipulation",
    "dayjs": "Date Manipulation",
    "uuid": "UUID Generation",
    "crypto": "Cryptography",
    "fs": "File System",
    "path": "Path Utilities",
}
DEFAULT_PURPOSE = "Utility Library"

FRAMEWORKS = [
    ("react", "React"),
    ("vue", "Vue.js"),
    ("angular", "Angular"),
    ("next", "Next.js"),
    ("nuxt", "Nuxt.js"),
    ("svelte", "Svelte"),
    ("express", "Express.js"),
    ("fastify", "Fastify"),
    ("koa", "Koa.js"),
]

ARCHITECTURE = [
    (("redux", "mobx"), "State Management"),
    (("webpack", "vite"), "Module Bundling"),
    (("jest", "vitest"), "Testing"),
    (("eslint",), "Code Quality"),
    (("typescript",), "Type Safety"),
]

LANGUAGE_EXTENSIONS = [
    ("TypeScript", ".ts"),
    ("JavaScript", ".js"),
    ("CSS", ".css"),
    ("HTML", ".html"),
    ("Markdown", ".md"),
]

TESTING_FRAMEWORKS = {"jest", "vitest", "mocha", "jasmine"}


def _string_map(value: Any) -> Dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(key): str(item) for key, item in value.items()}


def _optional_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def parse_package_json(payload: Any, repo: str) -> PackageJsonAnalysis:
    """
    Reads a contents-API payload for package.json.

    Raises:
        ResourceNotFoundError: the path is not a file.
        InvalidInputError: the file is not a JSON object.
    """
    if not isinstance(payload, dict) or payload.get("type", "file") != "file":
        raise ResourceNotFoundError("No package.json found in repository")

    try:
        raw = base64.b64decode(payload.get("content") or "")
        manifest = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError) as e:
        raise InvalidInputError("package.json is not valid JSON") from e
    if not isinstance(manifest, dict):
        raise InvalidInputError("package.json is not valid JSON")

    keywords = manifest.get("keywords")
    return PackageJsonAnalysis(
        name=_optional_str(manifest.get("name")) or repo,
        version=_optional_str(manifest.get("version")) or "0.0.0",
        description=_optional_str(manifest.get("description")),
        main=_optional_str(manifest.get("main")),
        scripts=_string_map(manifest.get("scripts")),
        dependencies=_string_map(manifest.get("dependencies")),
        dev_dependencies=_string_map(manifest.get("devDependencies")),
        peer_dependencies=_string_map(manifest["peerDependencies"]) if "peerDependencies" in manifest else None,
        engines=_string_map(manifest["engines"]) if "engines" in manifest else None,
        keywords=[str(k) for k in keywords] if isinstance(keywords, list) else None,
        author=manifest.get("author"),
        license=manifest.get("license"),
        repository=manifest.get("repository"),
        homepage=_optional_str(manifest.get("homepage")),
        bugs=manifest.get("bugs"),
        package_manager=_optional_str(manifest.get("packageManager")),
    )


def build_project_structure(tree: List[Dict[str, Any]]) -> ProjectStructure:
    files = [entry["path"] for entry in tree if entry.get("type") == "blob" and entry.get("path")]
    directories = [entry["path"] for entry in tree if entry.get("type") == "tree" and entry.get("path")]
    return ProjectStructure(
        files=files,
        directories=directories,
        config_files=[f for f in files if CONFIG_FILE.search(f)],
        test_files=[f for f in files if TEST_FILE.search(f)],
        documentation_files=[f for f in files if DOC_FILE.search(f)],
        build_files=[f for f in files if BUILD_FILE.search(f)],
        ci_files=[f for f in files if CI_FILE.search(f)],
    )


def categorize_command(script: str, command: str) -> CommandCategory:
    script_lower, command_lower = script.lower(), command.lower()
    for category, script_words, command_words in COMMAND_RULES:
        if any(word in script_lower for word in script_words) or any(word in command_lower for word in command_words):
            return category
    return CommandCategory.OTHER


def describe_command(script: str) -> str:
    return COMMAND_DESCRIPTIONS.get(script, f"Run {script} command")


def analyze_commands(package_json: PackageJsonAnalysis) -> List[CommandAnalysis]:
    """
    One entry per npm script, grouped by category (alphabetical, stable within a category).
    """
    commands = [
        CommandAnalysis(
            script=script,
            command=command,
            description=describe_command(script),
            category=categorize_command(script, command),
        )
        for script, command in package_json.scripts.items()
    ]
    return sorted(commands, key=lambda c: c.category.value)


def dependency_purpose(name: str) -> str:
    if name in DEPENDENCY_PURPOSES:
        return DEPENDENCY_PURPOSES[name]
    scoped = name.split("/")[-1]
    if scoped in DEPENDENCY_PURPOSES:
        return DEPENDENCY_PURPOSES[scoped]
    lowered = name.lower()
    for key, purpose in DEPENDENCY_PURPOSES.items():
        if key in lowered:
            return purpose
    return DEFAULT_PURPOSE


def analyze_dependencies(package_json: PackageJsonAnalysis) -> List[DependencyAnalysis]:
    groups = [
        (DependencyType.DEPENDENCY, package_json.dependencies),
        (DependencyType.DEV_DEPENDENCY, package_json.dev_dependencies),
        (DependencyType.PEER_DEPENDENCY, package_json.peer_dependencies or {}),
    ]
    return [
        DependencyAnalysis(name=name, version=version, type=dep_type, purpose=dependency_purpose(name))
        for dep_type, deps in groups
        for name, version in deps.items()
    ]


def analyze_ci_cd(workflows: Optional[List[Dict[str, Any]]], structure: Optional[ProjectStructure]) -> CiCdAnalysis:
    platforms: List[str] = []
    items = [
        Workflow(
            name=str(workflow.get("name") or workflow.get("path") or "workflow"),
            file=str(workflow.get("path") or ""),
            status="active" if workflow.get("state") == "active" else "disabled",
        )
        for workflow in workflows or []
    ]
    if items:
        platforms.append("GitHub Actions")
    for pattern, platform in CI_PLATFORMS:
        if structure and any(pattern.search(f) for f in structure.ci_files):
            platforms.append(platform)
    return CiCdAnalysis(platforms=platforms, workflows=items)


def _all_dependencies(package_json: PackageJsonAnalysis) -> Dict[str, str]:
    merged = dict(package_json.dependencies)
    merged.update(package_json.dev_dependencies)
    merged.update(package_json.peer_dependencies or {})
    return merged


def generate_insights(package_json: PackageJsonAnalysis, structure: Optional[ProjectStructure]) -> CodebaseInsights:
    """
    Framework and pattern detection from declared dependencies, plus size-based complexity
    and quality estimates derived from the file tree.
    """
    structure = structure or ProjectStructure()
    deps = _all_dependencies(package_json)

    frameworks = [label for name, label in FRAMEWORKS if name in deps]
    architecture = [label for names, label in ARCHITECTURE if any(name in deps for name in names)]
    patterns = []
    if structure.test_files:
        patterns.append("Test-Driven Development")
    if "styled-components" in deps or "emotion" in deps:
        patterns.append("CSS-in-JS")
    if "tailwindcss" in deps:
        patterns.append("Utility-First CSS")

    file_count, dir_count = len(structure.files), len(structure.directories)
    return CodebaseInsights(
        languages={
            language: sum(1 for f in structure.files if f.endswith(ext)) for language, ext in LANGUAGE_EXTENSIONS
        },
        frameworks=frameworks,
        architecture=architecture,
        patterns=patterns,
        complexity=ComplexityEstimate(
            cyclomatic=min(file_count * 2, 100),
            cognitive=min(dir_count * 3, 150),
            maintainability=max(100 - file_count / 10, 20),
        ),
        quality=QualityEstimate(test_coverage=75 if structure.test_files else 0),
    )


def generate_recommendations(
    package_json: PackageJsonAnalysis,
    dependencies: List[DependencyAnalysis],
    structure: Optional[ProjectStructure] = None,
) -> List[str]:
    recommendations = []
    scripts = package_json.scripts
    if "test" not in scripts:
        recommendations.append("Consider adding a test script to your package.json")
    if "build" not in scripts:
        recommendations.append("Add a build script for production deployment")
    if "lint" not in scripts:
        recommendations.append("Add linting to improve code quality")

    names = [dep.name for dep in dependencies]
    if not any("audit" in name or "security" in name for name in names):
        recommendations.append("Consider adding npm audit or similar security tools")
    if "typescript" not in names and structure and any(f.endswith(".ts") for f in structure.files):
        recommendations.append("Add TypeScript support for better type safety")
    if not TESTING_FRAMEWORKS.intersection(names):
        recommendations.append("Add a testing framework like Jest or Vitest")

    if not package_json.description:
        recommendations.append("Add a description to your package.json")
    if not package_json.keywords:
        recommendations.append("Add keywords to improve package discoverability")
    return recommendations


async def _optional(label: str, call) -> Optional[Any]:
    try:
        return await call
    except UpstreamError as e:
        if e.kind not in _OPTIONAL_KINDS:
            raise
        logger.info("Skipping %s: %r", label, e)
        return None


async def analyze_developer_tools(github: GitHubClient, owner: str, repo: str) -> DeveloperToolsResponse:
    """
    Builds the developer tools overview for owner/repo.

    The repository lookup runs first so a missing repository is reported as such.
    package.json is required; the file tree and workflow list are best effort.
    """
    repository = await github.get_repository(owner, repo)
    branch = repository.get("default_branch") or "main"

    async def load_manifest():
        try:
            payload = await github.get_file_contents(owner, repo, MANIFEST_PATH)
        except UpstreamError as e:
            if e.kind != UpstreamErrorKind.NOT_FOUND:
                raise
            raise ResourceNotFoundError("No package.json found in repository") from e
        return parse_package_json(payload, repo)

    jobs = [
        load_manifest,
        lambda: _optional("file tree", github.get_tree(owner, repo, branch)),
        lambda: _optional("workflows", github.list_workflows(owner, repo)),
    ]
    package_json, tree, workflows = await gather_bounded(jobs, lambda job: job(), len(jobs))

    structure = build_project_structure(tree) if tree is not None else None
    dependencies = analyze_dependencies(package_json)
    logger.info(
        "Developer tools for %s/%s: %d scripts, %d dependencies, %s files",
        owner, repo, len(package_json.scripts), len(dependencies), len(structure.files) if structure else "?",
    )
    return DeveloperToolsResponse(
        owner=owner,
        repo=repo,
        package_json=package_json,
        project_structure=structure,
        commands=analyze_commands(package_json),
        dependencies=dependencies,
        ci_cd=analyze_ci_cd(workflows, structure),
        insights=generate_insights(package_json, structure),
        recommendations=generate_recommendations(package_json, dependencies, structure),
    )
