"""
Framework and tooling detection.

Looks at config filenames first, then declared dependencies and imported
packages, then file-type counts. The results feed the summary and
quick-queries artifacts and the ``stack`` section of npm-dependencies.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Set

from .graph import DependencyGraph
from .models import FileRecord

CONFIG_FILE_FRAMEWORKS = [
    ("next.config", {"name": "Next.js", "type": "react-framework"}),
    ("nuxt.config", {"name": "Nuxt.js", "type": "vue-framework"}),
    ("angular.json", {"name": "Angular", "type": "angular-framework"}),
    ("vue.config", {"name": "Vue.js", "type": "vue-framework"}),
    ("svelte.config", {"name": "SvelteKit", "type": "svelte-framework"}),
    ("remix.config", {"name": "Remix", "type": "react-framework"}),
]

# Checked in order; meta-frameworks before the libraries they build on
PACKAGE_FRAMEWORKS = [
    ("next", {"name": "Next.js", "type": "react-framework"}),
    ("@remix-run/react", {"name": "Remix", "type": "react-framework"}),
    ("nuxt", {"name": "Nuxt.js", "type": "vue-framework"}),
    ("@sveltejs/kit", {"name": "SvelteKit", "type": "svelte-framework"}),
    ("@angular/core", {"name": "Angular", "type": "angular"}),
    ("react", {"name": "React", "type": "react"}),
    ("vue", {"name": "Vue.js", "type": "vue"}),
    ("svelte", {"name": "Svelte", "type": "svelte"}),
    ("@nestjs/core", {"name": "NestJS", "type": "node-backend"}),
    ("express", {"name": "Express", "type": "node-backend"}),
    ("fastify", {"name": "Fastify", "type": "node-backend"}),
    ("koa", {"name": "Koa", "type": "node-backend"}),
    ("django", {"name": "Django", "type": "python-backend"}),
    ("fastapi", {"name": "FastAPI", "type": "python-backend"}),
    ("flask", {"name": "Flask", "type": "python-backend"}),
]

BUILD_TOOL_FILES = [
    ("webpack.config", "Webpack"), ("vite.config", "Vite"), ("rollup.config", "Rollup"),
    ("esbuild.config", "esbuild"), ("tsup.config", "tsup"), ("turbo.json", "Turborepo"),
    ("Makefile", "Make"), ("CMakeLists.txt", "CMake"), ("build.gradle", "Gradle"), ("pom.xml", "Maven"),
    ("pyproject.toml", "pyproject"), ("setup.py", "setuptools"), ("Cargo.toml", "Cargo"), ("go.mod", "Go modules"),
]
BUNDLER_PACKAGES = [("vite", "Vite"), ("webpack", "Webpack"), ("rollup", "Rollup"), ("esbuild", "esbuild"), ("parcel", "Parcel"), ("tsup", "tsup")]

LOCK_FILES = [
    ("pnpm-lock.yaml", "pnpm"), ("yarn.lock", "yarn"), ("bun.lockb", "bun"), ("package-lock.json", "npm"),
    ("Pipfile.lock", "pipenv"), ("poetry.lock", "poetry"), ("uv.lock", "uv"), ("Cargo.lock", "cargo"), ("go.sum", "go modules"),
]

TESTING_FILES = [
    ("jest.config", "Jest"), ("vitest.config", "Vitest"), (".mocharc", "Mocha"), ("karma.conf", "Karma"),
    ("cypress.config", "Cypress"), ("cypress.json", "Cypress"), ("playwright.config", "Playwright"),
    ("pytest.ini", "Pytest"), ("conftest.py", "Pytest"), ("tox.ini", "Tox"),
]
TESTING_PACKAGES = [
    ("jest", "Jest"), ("vitest", "Vitest"), ("mocha", "Mocha"), ("@playwright/test", "Playwright"),
    ("cypress", "Cypress"), ("pytest", "Pytest"),
]

DATABASE_PACKAGES = [
    ("@prisma/client", "Prisma"), ("prisma", "Prisma"), ("mongoose", "MongoDB (Mongoose)"),
    ("mongodb", "MongoDB"), ("typeorm", "TypeORM"), ("sequelize", "Sequelize"), ("pg", "PostgreSQL"),
    ("mysql2", "MySQL"), ("mysql", "MySQL"), ("sqlite3", "SQLite"), ("better-sqlite3", "SQLite"),
    ("@supabase/supabase-js", "Supabase"), ("drizzle-orm", "Drizzle"), ("knex", "Knex"),
    ("redis", "Redis"), ("ioredis", "Redis"),
    ("sqlalchemy", "SQLAlchemy"), ("psycopg2", "PostgreSQL"), ("pymongo", "MongoDB"), ("peewee", "Peewee"),
]

STATE_PACKAGES = [
    ("@reduxjs/toolkit", "Redux"), ("redux", "Redux"), ("mobx", "MobX"), ("recoil", "Recoil"),
    ("zustand", "Zustand"), ("jotai", "Jotai"), ("@tanstack/react-query", "React Query"),
    ("vuex", "Vuex"), ("pinia", "Pinia"), ("@ngrx/store", "NgRx"),
]

ENTRY_POINT_NAMES = {
    "index.js", "index.ts", "index.jsx", "index.tsx", "main.js", "main.ts", "app.js", "app.ts",
    "app.jsx", "app.tsx", "server.js", "server.ts", "index.html", "main.py", "app.py",
    "manage.py", "wsgi.py", "asgi.py", "__main__.py", "main.go", "main.rs",
}


def _names(files: List[FileRecord]) -> List[str]:
    return [record.name for record in files]


def _first_by_prefix(names: List[str], table: List[tuple]) -> List[str]:
    found: List[str] = []
    for prefix, label in table:
        if any(name == prefix or name.startswith(prefix) for name in names) and label not in found:
            found.append(label)
    return found


def known_packages(declared: Dict[str, str], graph: Optional[DependencyGraph]) -> Set[str]:
    """Declared dependency names plus every external package actually imported."""
    names = {name.lower() for name in declared}
    if graph is not None:
        names |= {name.lower() for name in graph.external}
    return names


def detect_framework(files: List[FileRecord], packages: Set[str]) -> Dict[str, str]:
    names = [name.lower() for name in _names(files)]
    for prefix, framework in CONFIG_FILE_FRAMEWORKS:
        if any(name.startswith(prefix) for name in names):
            return dict(framework)
    for package, framework in PACKAGE_FRAMEWORKS:
        if package in packages:
            return dict(framework)

    react = sum(1 for record in files if record.file_type in {"javascript-react", "typescript-react"})
    vue = sum(1 for record in files if record.extension == "vue")
    svelte = sum(1 for record in files if record.extension == "svelte")
    angular = sum(1 for record in files if record.name.endswith((".component.ts", ".module.ts")))
    if react > 5:
        return {"name": "React", "type": "react"}
    if vue > 3:
        return {"name": "Vue.js", "type": "vue"}
    if svelte > 3:
        return {"name": "Svelte", "type": "svelte"}
    if angular > 5:
        return {"name": "Angular", "type": "angular"}
    return {"name": "Unknown", "type": "unknown"}


def detect_backend_frameworks(files: List[FileRecord], packages: Set[str]) -> List[str]:
    found = [framework["name"] for package, framework in PACKAGE_FRAMEWORKS if framework["type"].endswith("backend") and package in packages]
    for record in files:
        for endpoint in record.endpoints:
            label = endpoint.framework.capitalize() if endpoint.framework != "fastapi" else "FastAPI"
            if label not in found:
                found.append(label)
    return found


def detect_build_tools(files: List[FileRecord]) -> List[str]:
    return _first_by_prefix(_names(files), BUILD_TOOL_FILES)


def detect_package_manager(project_root: Path) -> str:
    root = Path(project_root)
    for lock_file, manager in LOCK_FILES:
        if (root / lock_file).exists():
            return manager
    if (root / "package.json").exists():
        return "npm"
    if (root / "requirements.txt").exists() or (root / "pyproject.toml").exists():
        return "pip"
    return "unknown"


def detect_testing_frameworks(files: List[FileRecord], packages: Set[str]) -> List[str]:
    found = _first_by_prefix(_names(files), TESTING_FILES)
    for package, label in TESTING_PACKAGES:
        if package in packages and label not in found:
            found.append(label)
    return found


def detect_databases(packages: Set[str]) -> List[str]:
    found: List[str] = []
    for package, label in DATABASE_PACKAGES:
        if package in packages and label not in found:
            found.append(label)
    return found


def detect_state_management(packages: Set[str]) -> List[str]:
    found: List[str] = []
    for package, label in STATE_PACKAGES:
        if package in packages and label not in found:
            found.append(label)
    return found


def detect_runtime(files: List[FileRecord], languages: Dict[str, int]) -> str:
    names = set(_names(files))
    if "package.json" in names:
        return "Node.js"
    if names & {"pyproject.toml", "requirements.txt", "setup.py"}:
        return "Python"
    if "go.mod" in names:
        return "Go"
    if "Cargo.toml" in names:
        return "Rust"
    for language, _count in sorted(languages.items(), key=lambda item: (-item[1], item[0])):
        if language in {"JavaScript", "TypeScript"}:
            return "Node.js"
        if language in {"Python", "Go", "Rust", "Java", "Ruby", "PHP"}:
            return language
    return "unknown"


def find_entry_points(files: List[FileRecord]) -> List[Dict[str, str]]:
    entries = []
    for record in files:
        lowered = record.name.lower()
        if lowered not in ENTRY_POINT_NAMES or record.role == "test":
            continue
        if "server" in lowered:
            kind = "backend"
        elif lowered == "index.html":
            kind = "web"
        elif lowered.startswith("app"):
            kind = "application"
        elif lowered in {"manage.py", "wsgi.py", "asgi.py"}:
            kind = "backend"
        else:
            kind = "main"
        entries.append({"file": record.path, "type": kind})
    # Shallow entry points first
    entries.sort(key=lambda entry: (entry["file"].count("/"), entry["file"]))
    return entries


def detect_stack(
    project_root: Path,
    files: List[FileRecord],
    packages: Set[str],
    languages: Dict[str, int],
) -> Dict[str, Any]:
    bundlers = [label for package, label in BUNDLER_PACKAGES if package in packages]
    framework = detect_framework(files, packages)
    backend = detect_backend_frameworks(files, packages)
    return {
        "runtime": detect_runtime(files, languages),
        "package_manager": detect_package_manager(project_root),
        "framework": framework["name"] if framework["type"] != "unknown" else (backend[0] if backend else "Unknown"),
        "framework_type": framework["type"],
        "backend_frameworks": backend,
        "bundler": bundlers[0] if bundlers else None,
        "testing": detect_testing_frameworks(files, packages),
        "database": detect_databases(packages),
        "state_management": detect_state_management(packages),
    }
