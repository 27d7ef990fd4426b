"""
Database schema discovery from ORM source files.

Static only: tables and columns are read from Prisma schemas, Django and
SQLAlchemy models, Sequelize definitions, TypeORM entities and Mongoose
models. Nothing connects to a live database.
"""

import logging
import re
from pathlib import Path
from typing import Any, Dict, List, Tuple

from .graph import DependencyGraph
from .models import FileRecord, ScanIssue
from .signatures.javascript import find_block_end, strip_comments
from .utils import to_snake_case

ORM_MARKERS = {
    "django-model": "Django ORM",
    "sqlalchemy-model": "SQLAlchemy",
    "sequelize-model": "Sequelize",
    "typeorm-entity": "TypeORM",
    "mongoose-model": "Mongoose",
    "mongoose-schema": "Mongoose",
}

PRISMA_MODEL_RE = re.compile(r"^model\s+(\w+)\s*\{", re.MULTILINE)
PRISMA_FIELD_RE = re.compile(r"^\s*(\w+)\s+(\w+)(\[\])?(\?)?(.*)$")
PRISMA_MAP_RE = re.compile(r"@@map\(\s*\"([^\"]+)\"\s*\)")

PY_CLASS_RE = re.compile(r"^class\s+(\w+)\s*\(([^)]*)\)\s*:", re.MULTILINE)
DJANGO_FIELD_RE = re.compile(r"^\s+(\w+)\s*=\s*models\.(\w+)\(([^)\n]*)", re.MULTILINE)
DJANGO_TABLE_RE = re.compile(r"db_table\s*=\s*['\"]([^'\"]+)['\"]")
DJANGO_RELATIONS = {"ForeignKey", "OneToOneField", "ManyToManyField"}
SQLA_TABLENAME_RE = re.compile(r"__tablename__\s*=\s*['\"]([^'\"]+)['\"]")
SQLA_COLUMN_RE = re.compile(
    r"^\s+(\w+)\s*(?::\s*Mapped\[[^\]]*\])?\s*=\s*(?:db\.|sa\.)?(?:Column|mapped_column)\(\s*(?:(?:db\.|sa\.)?(\w+))?",
    re.MULTILINE,
)
SQLA_FOREIGN_KEY_RE = re.compile(r"ForeignKey\(\s*['\"](\w+)\.\w+['\"]")
SQLA_RELATIONSHIP_RE = re.compile(r"^\s+(\w+)\s*(?::[^=]*)?=\s*(?:db\.)?relationship\(\s*['\"]?(\w+)", re.MULTILINE)

SEQUELIZE_DEFINE_RE = re.compile(r"\.define\(\s*['\"](\w+)['\"]\s*,\s*\{")
SEQUELIZE_INIT_RE = re.compile(r"(\w+)\.init\(\s*\{")
SEQUELIZE_FIELD_RE = re.compile(r"^\s*(\w+)\s*:\s*(?:\{[^}]*?type\s*:\s*)?(?:DataTypes|Sequelize)\.(\w+)", re.MULTILINE)
SEQUELIZE_TABLENAME_RE = re.compile(r"tableName\s*:\s*['\"](\w+)['\"]")

TYPEORM_ENTITY_RE = re.compile(r"@Entity\(\s*(?:['\"](\w+)['\"])?[^)]*\)\s*(?:export\s+)?(?:default\s+)?class\s+(\w+)")
TYPEORM_COLUMN_RE = re.compile(
    r"@(PrimaryGeneratedColumn|PrimaryColumn|Column|CreateDateColumn|UpdateDateColumn)\([^)]*\)\s*(\w+)[!?]?\s*:\s*([\w\[\]<>| ]+)"
)
TYPEORM_RELATION_RE = re.compile(
    r"@(ManyToOne|OneToMany|OneToOne|ManyToMany)\(\s*\(\)\s*=>\s*(\w+)[^\n]*\n\s*(\w+)[!?]?\s*:"
)

MONGOOSE_MODEL_RE = re.compile(r"model\(\s*['\"](\w+)['\"]\s*,\s*(\w+)")
MONGOOSE_SCHEMA_RE = re.compile(r"(?:const|let|var)\s+(\w+)\s*=\s*new\s+(?:mongoose\.)?Schema\(\s*\{")
MONGOOSE_FIELD_RE = re.compile(r"^\s{0,4}(\w+)\s*:\s*(?:\{\s*type\s*:\s*)?\[?\s*(\w+)", re.MULTILINE)


def _table(name: str, orm: str, record: FileRecord, line: int) -> Dict[str, Any]:
    return {"name": name, "model": "", "orm": orm, "file": record.path, "line": line, "columns": [], "relations": []}


def _line(text: str, offset: int) -> int:
    return text.count("\n", 0, offset) + 1


def _python_class_bodies(text: str) -> List[Tuple[str, str, str, int]]:
    """(class name, bases, body, line) for each top-level class."""
    matches = list(PY_CLASS_RE.finditer(text))
    bodies = []
    for index, match in enumerate(matches):
        end = matches[index + 1].start() if index + 1 < len(matches) else len(text)
        bodies.append((match.group(1), match.group(2), text[match.end():end], _line(text, match.start())))
    return bodies


def parse_prisma(text: str, record: FileRecord) -> List[Dict[str, Any]]:
    tables = []
    for match in PRISMA_MODEL_RE.finditer(text):
        close = text.find("}", match.end())
        body = text[match.end():close if close != -1 else len(text)]
        mapped = PRISMA_MAP_RE.search(body)
        table = _table(mapped.group(1) if mapped else match.group(1), "Prisma", record, _line(text, match.start()))
        table["model"] = match.group(1)
        for raw in body.splitlines():
            stripped = raw.strip()
            if not stripped or stripped.startswith(("//", "@@")):
                continue
            field = PRISMA_FIELD_RE.match(stripped)
            if not field:
                continue
            column = {
                "name": field.group(1),
                "type": field.group(2),
                "nullable": bool(field.group(4)),
                "primary_key": "@id" in field.group(5),
            }
            if "@relation" in field.group(5) or field.group(3) or field.group(2)[:1].isupper() and field.group(2) not in {"String", "Int", "Boolean", "DateTime", "Float", "Decimal", "Json", "Bytes", "BigInt"}:
                table["relations"].append({"field": field.group(1), "target": field.group(2), "many": bool(field.group(3))})
            else:
                table["columns"].append(column)
        tables.append(table)
    return tables


def parse_django(text: str, record: FileRecord) -> List[Dict[str, Any]]:
    tables = []
    for name, bases, body, line in _python_class_bodies(text):
        if "models.Model" not in bases:
            continue
        db_table = DJANGO_TABLE_RE.search(body)
        table = _table(db_table.group(1) if db_table else to_snake_case(name), "Django ORM", record, line)
        table["model"] = name
        for field in DJANGO_FIELD_RE.finditer(body):
            if field.group(2) in DJANGO_RELATIONS:
                target = field.group(3).split(",", 1)[0].strip().strip("'\"")
                table["relations"].append({"field": field.group(1), "target": target, "many": field.group(2) == "ManyToManyField"})
            else:
                table["columns"].append({"name": field.group(1), "type": field.group(2), "nullable": "null=True" in field.group(3), "primary_key": "primary_key=True" in field.group(3)})
        tables.append(table)
    return tables


def parse_sqlalchemy(text: str, record: FileRecord) -> List[Dict[str, Any]]:
    tables = []
    for name, _bases, body, line in _python_class_bodies(text):
        tablename = SQLA_TABLENAME_RE.search(body)
        if not tablename:
            continue
        table = _table(tablename.group(1), "SQLAlchemy", record, line)
        table["model"] = name
        for column in SQLA_COLUMN_RE.finditer(body):
            line_end = body.find("\n", column.end())
            rest = body[column.start():line_end if line_end != -1 else len(body)]
            table["columns"].append({
                "name": column.group(1),
                "type": column.group(2) or "",
                "nullable": "nullable=False" not in rest,
                "primary_key": "primary_key=True" in rest,
            })
            foreign = SQLA_FOREIGN_KEY_RE.search(rest)
            if foreign:
                table["relations"].append({"field": column.group(1), "target": foreign.group(1), "many": False})
        for relation in SQLA_RELATIONSHIP_RE.finditer(body):
            table["relations"].append({"field": relation.group(1), "target": relation.group(2), "many": False})
        tables.append(table)
    return tables


def _js_object_fields(code: str, open_index: int, field_re: "re.Pattern[str]") -> List[Tuple[str, str]]:
    body = code[open_index + 1:find_block_end(code, open_index)]
    return [(match.group(1), match.group(2)) for match in field_re.finditer(body)]


def parse_sequelize(text: str, record: FileRecord) -> List[Dict[str, Any]]:
    code = strip_comments(text)
    tables = []
    for match in list(SEQUELIZE_DEFINE_RE.finditer(code)) + list(SEQUELIZE_INIT_RE.finditer(code)):
        model = match.group(1)
        tail = code[match.end():]
        table_name = SEQUELIZE_TABLENAME_RE.search(tail[:2000])
        table = _table(table_name.group(1) if table_name else to_snake_case(model), "Sequelize", record, _line(code, match.start()))
        table["model"] = model
        for field, field_type in _js_object_fields(code, match.end() - 1, SEQUELIZE_FIELD_RE):
            table["columns"].append({"name": field, "type": field_type, "nullable": True, "primary_key": False})
        tables.append(table)
    return tables


def parse_typeorm(text: str, record: FileRecord) -> List[Dict[str, Any]]:
    code = strip_comments(text)
    tables = []
    matches = list(TYPEORM_ENTITY_RE.finditer(code))
    for index, match in enumerate(matches):
        end = matches[index + 1].start() if index + 1 < len(matches) else len(code)
        body = code[match.end():end]
        table = _table(match.group(1) or to_snake_case(match.group(2)), "TypeORM", record, _line(code, match.start()))
        table["model"] = match.group(2)
        for column in TYPEORM_COLUMN_RE.finditer(body):
            table["columns"].append({
                "name": column.group(2),
                "type": column.group(3).strip(),
                "nullable": "nullable: true" in column.group(0),
                "primary_key": column.group(1).startswith("Primary"),
            })
        for relation in TYPEORM_RELATION_RE.finditer(body):
            table["relations"].append({"field": relation.group(3), "target": relation.group(2), "many": relation.group(1).endswith("Many")})
        tables.append(table)
    return tables


def parse_mongoose(text: str, record: FileRecord) -> List[Dict[str, Any]]:
    code = strip_comments(text)
    schemas: Dict[str, List[Tuple[str, str]]] = {}
    for match in MONGOOSE_SCHEMA_RE.finditer(code):
        schemas[match.group(1)] = _js_object_fields(code, match.end() - 1, MONGOOSE_FIELD_RE)
    tables = []
    for match in MONGOOSE_MODEL_RE.finditer(code):
        model, schema_var = match.group(1), match.group(2)
        table = _table(to_snake_case(model) + "s", "Mongoose", record, _line(code, match.start()))
        table["model"] = model
        for field, field_type in schemas.get(schema_var, []):
            table["columns"].append({"name": field, "type": field_type, "nullable": True, "primary_key": False})
        tables.append(table)
    return tables


PARSERS = [
    ("django-model", parse_django),
    ("sqlalchemy-model", parse_sqlalchemy),
    ("sequelize-model", parse_sequelize),
    ("typeorm-entity", parse_typeorm),
    ("mongoose-model", parse_mongoose),
]


def schema_candidates(files: List[FileRecord]) -> List[FileRecord]:
    return [
        record for record in files
        if record.extension == "prisma" or any(marker in ORM_MARKERS for marker in record.markers)
    ]


def build_database_schema(project_root: Path, files: List[FileRecord]) -> Tuple[Dict[str, Any], List[ScanIssue]]:
    tables: List[Dict[str, Any]] = []
    orms: List[str] = []
    issues: List[ScanIssue] = []
    for record in schema_candidates(files):
        try:
            text = (Path(project_root) / record.path).read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            issues.append(ScanIssue(path=record.path, stage="schema", reason=str(e)))
            continue
        found: List[Dict[str, Any]] = []
        if record.extension == "prisma":
            found.extend(parse_prisma(text, record))
        for marker, parser in PARSERS:
            if marker in record.markers:
                found.extend(parser(text, record))
        for table in found:
            if table["orm"] not in orms:
                orms.append(table["orm"])
        tables.extend(found)

    tables.sort(key=lambda table: (table["name"], table["file"], table["line"]))
    logging.info("Database schema: %d tables from %d ORM(s)", len(tables), len(orms))
    return {
        "orms": sorted(orms),
        "model_files": sorted({table["file"] for table in tables}),
        "tables": tables,
        "summary": {
            "total_tables": len(tables),
            "total_columns": sum(len(table["columns"]) for table in tables),
            "total_relations": sum(len(table["relations"]) for table in tables),
        },
    }, issues


def tables_by_file(schema: Dict[str, Any]) -> Dict[str, List[str]]:
    result: Dict[str, List[str]] = {}
    for table in schema["tables"]:
        result.setdefault(table["file"], []).append(table["name"])
    return result


def build_table_module_mapping(
    schema: Dict[str, Any],
    file_modules: Dict[str, str],
    graph: DependencyGraph,
) -> Dict[str, Any]:
    """
    Tables to the modules that define or import their model files, and back.
    """
    table_to_modules: Dict[str, Dict[str, Any]] = {}
    module_to_tables: Dict[str, List[str]] = {}
    for table in schema["tables"]:
        defining = file_modules.get(table["file"])
        users = sorted({file_modules[path] for path in graph.dependents(table["file"]) if path in file_modules})
        modules = sorted(set(users) | ({defining} if defining else set()))
        entry = table_to_modules.setdefault(table["name"], {"table": table["name"], "defined_in": [], "modules": []})
        if defining and defining not in entry["defined_in"]:
            entry["defined_in"].append(defining)
        entry["modules"] = sorted(set(entry["modules"]) | set(modules))
        for module in modules:
            module_to_tables.setdefault(module, [])
            if table["name"] not in module_to_tables[module]:
                module_to_tables[module].append(table["name"])

    shared = sorted(name for name, entry in table_to_modules.items() if len(entry["modules"]) > 1)
    return {
        "tables": dict(sorted(table_to_modules.items())),
        "modules": {module: sorted(names) for module, names in sorted(module_to_tables.items())},
        "shared_tables": shared,
    }
