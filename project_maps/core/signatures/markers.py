"""
Framework markers and route endpoints.

Markers are short tags for framework-specific syntax found in a file
(``express-router``, ``django-model``, ...). The architecture detector uses
them as the third layer-assignment rule, after directory and filename.
"""

import re
from typing import List, Tuple

from ..models import Endpoint

# (marker, language family, regex); order is the precedence used for layer lookup
MARKER_RULES: List[Tuple[str, str, "re.Pattern[str]"]] = [
    ("express-router", "js", re.compile(r"express\.Router\(|\brouter\.(?:get|post|put|patch|delete|all|route)\(")),
    ("fastify-routes", "js", re.compile(r"\bfastify\.(?:get|post|put|patch|delete|route)\(")),
    ("koa-router", "js", re.compile(r"['\"](?:koa-router|@koa/router)['\"]")),
    ("nest-controller", "js", re.compile(r"@Controller\(")),
    ("nest-injectable", "js", re.compile(r"@Injectable\(")),
    ("typeorm-entity", "js", re.compile(r"@Entity\(")),
    ("mongoose-model", "js", re.compile(r"mongoose\.model\(")),
    ("mongoose-schema", "js", re.compile(r"new\s+(?:mongoose\.)?Schema\(")),
    ("sequelize-model", "js", re.compile(r"sequelize\.define\(|\bextends\s+Model\b")),
    ("zod-schema", "js", re.compile(r"\bz\.object\(")),
    ("express-middleware", "js", re.compile(r"\(\s*req\s*(?::\s*\w+)?\s*,\s*res\s*(?::\s*\w+)?\s*,\s*next\b")),
    ("flask-route", "py", re.compile(r"@\w+\.route\(")),
    ("flask-blueprint", "py", re.compile(r"\bBlueprint\(")),
    ("fastapi-router", "py", re.compile(r"\bAPIRouter\(|@\w+\.(?:get|post|put|patch|delete)\(")),
    ("django-urls", "py", re.compile(r"^urlpatterns\s*=", re.MULTILINE)),
    ("django-view", "py", re.compile(r"class\s+\w+\((?:\w+\.)*(?:APIView|ViewSet|ModelViewSet|View|TemplateView)\)")),
    ("django-model", "py", re.compile(r"class\s+\w+\(models\.Model\)")),
    ("sqlalchemy-model", "py", re.compile(r"__tablename__\s*=|class\s+\w+\(\s*(?:Base|db\.Model|DeclarativeBase)\s*\)")),
    ("pydantic-model", "py", re.compile(r"class\s+\w+\(\s*BaseModel\s*\)")),
    ("marshmallow-schema", "py", re.compile(r"class\s+\w+\(\s*(?:ma\.)?Schema\s*\)")),
    ("controller-class", "any", re.compile(r"\bclass\s+\w+Controller\b")),
    ("service-class", "any", re.compile(r"\bclass\s+\w+Service\b")),
    ("repository-class", "any", re.compile(r"\bclass\s+\w+Repository\b")),
    ("dto-class", "any", re.compile(r"\bclass\s+\w+Dto\b")),
    ("mapper-class", "any", re.compile(r"\bclass\s+\w+Mapper\b")),
]

JS_ENDPOINT_RE = re.compile(
    r"\b(app|router|server|fastify|api|\w+Router)\.(get|post|put|patch|delete|all|options|head)\(\s*['\"`]([^'\"`]+)['\"`]"
)
FLASK_ENDPOINT_RE = re.compile(r"@\w+\.route\(\s*['\"]([^'\"]+)['\"]([^)]*)\)")
FLASK_METHODS_RE = re.compile(r"methods\s*=\s*\[([^\]]*)\]")
FASTAPI_ENDPOINT_RE = re.compile(r"@\w+\.(get|post|put|patch|delete)\(\s*['\"]([^'\"]+)['\"]")


def family_for(language: str) -> str:
    if language in {"javascript", "typescript"}:
        return "js"
    if language == "python":
        return "py"
    return "other"


def detect_markers(text: str, language: str) -> List[str]:
    family = family_for(language)
    return [
        marker for marker, rule_family, pattern in MARKER_RULES
        if (rule_family == family or rule_family == "any") and pattern.search(text)
    ]


def _line(text: str, offset: int) -> int:
    return text.count("\n", 0, offset) + 1


def extract_endpoints(text: str, language: str, markers: List[str]) -> List[Endpoint]:
    family = family_for(language)
    endpoints: List[Endpoint] = []
    if family == "js":
        if "fastify-routes" in markers:
            framework = "fastify"
        elif "koa-router" in markers:
            framework = "koa"
        else:
            framework = "express"
        for match in JS_ENDPOINT_RE.finditer(text):
            endpoints.append(Endpoint(
                method=match.group(2).upper(), path=match.group(3),
                line=_line(text, match.start()), framework=framework,
            ))
    elif family == "py":
        for match in FLASK_ENDPOINT_RE.finditer(text):
            methods_match = FLASK_METHODS_RE.search(match.group(2))
            methods = (
                [m.strip().strip("'\"").upper() for m in methods_match.group(1).split(",") if m.strip()]
                if methods_match else ["GET"]
            )
            for method in methods:
                endpoints.append(Endpoint(
                    method=method, path=match.group(1), line=_line(text, match.start()), framework="flask",
                ))
        for match in FASTAPI_ENDPOINT_RE.finditer(text):
            endpoints.append(Endpoint(
                method=match.group(1).upper(), path=match.group(2),
                line=_line(text, match.start()), framework="fastapi",
            ))
    endpoints.sort(key=lambda ep: (ep.line, ep.method, ep.path))
    return endpoints
